"""``.env`` support for venue credentials and engine overrides."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Dict, Iterable, List

LOGGER = logging.getLogger(__name__)


def parse_env_lines(lines: Iterable[str]) -> Dict[str, str]:
    """Parse ``KEY=value`` lines, skipping blanks and ``#`` comments.

    An ``export`` prefix and one pair of matching surrounding quotes are
    stripped. Later assignments of the same key win.
    """

    parsed: Dict[str, str] = {}
    for raw_line in lines:
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export "):].lstrip()
        key, sep, value = line.partition("=")
        key = key.strip()
        if not sep or not key:
            continue
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
            value = value[1:-1]
        parsed[key] = value
    return parsed


def load_env_file(path: str | Path = ".env") -> List[str]:
    """Export the pairs in ``path`` that the process environment lacks.

    Returns the keys that were set. A missing file is not an error since
    credentials may come from the real environment.
    """

    env_path = Path(path)
    if not env_path.is_file():
        LOGGER.debug("no env file at %s", env_path)
        return []
    try:
        content = env_path.read_text(encoding="utf-8")
    except OSError as exc:
        LOGGER.warning("could not read env file %s: %s", env_path, exc)
        return []

    applied: List[str] = []
    for key, value in parse_env_lines(content.splitlines()).items():
        if key in os.environ:
            continue
        os.environ[key] = value
        applied.append(key)
    LOGGER.debug("loaded %d variables from %s", len(applied), env_path)
    return applied


__all__ = ["load_env_file", "parse_env_lines"]
