"""Failing-row extract export helpers."""

from __future__ import annotations

import base64
import logging
from contextlib import contextmanager
from pathlib import Path
from tempfile import TemporaryDirectory
from typing import Iterator

import pandas as pd

from dqagent.validate.constants import EXTRACT_NAME_WIDTH

logger = logging.getLogger(__name__)


def extract_filename(agent_name: str, i: int) -> str:
    return f"{agent_name}_{i:0{EXTRACT_NAME_WIDTH}d}.csv".replace(":", "_")


def write_extract(extract: pd.DataFrame, agent_name: str, i: int, directory: Path) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    target = directory / extract_filename(agent_name, i)
    extract.to_csv(target, index=False)
    logger.info("Wrote %s failing rows of step %s to %s", len(extract), i, target)
    return target


@contextmanager
def extract_tempfile(extract: pd.DataFrame, agent_name: str, i: int) -> Iterator[Path]:
    """Write an extract to a temporary CSV that is removed on exit."""
    with TemporaryDirectory(prefix="dqagent-") as tmpdir:
        yield write_extract(extract, agent_name, i, Path(tmpdir))


def extract_data_uri(extract: pd.DataFrame, agent_name: str, i: int) -> str:
    with extract_tempfile(extract, agent_name, i) as path:
        payload = base64.b64encode(path.read_bytes()).decode("ascii")
    return f"data:text/csv;base64,{payload}"
