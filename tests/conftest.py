"""Shared fixtures for dqagent tests."""

from __future__ import annotations

import pandas as pd
import pytest

from dqagent.validate.config import AgentSettings, load_language


@pytest.fixture
def orders() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "order_id": list(range(1, 11)),
            "amount": [5.0, 12.5, 3.0, 40.0, 7.5, None, 18.0, 2.0, 9.0, 11.0],
            "status": ["open", "open", "closed", "open", "void", "closed", "open", "open", "closed", "open"],
            "qty": [1, 2, 3, 4, 5, 6, 7, 8, 9, 10],
        }
    )


@pytest.fixture
def settings() -> AgentSettings:
    return AgentSettings()


@pytest.fixture
def english():
    return load_language("en")
