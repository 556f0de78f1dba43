"""Plan construction, interrogation and severity evaluation."""
