"""Report building, rendering and extract export."""
