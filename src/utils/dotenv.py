"""
.env support for pagesnap.

The scheduled job usually runs from cron or CI with its environment
already exported; a `.env` file is a convenience for local runs. Values
already present in os.environ are never replaced.

The file is located via PAGESNAP_ENV_FILE, falling back to `.env` in the
project root.
"""

import os
import re
from pathlib import Path

from src.utils.config import ENV_PREFIX, get_project_root

_LINE_RE = re.compile(r"^\s*(?:export\s+)?([A-Za-z_][A-Za-z0-9_]*)\s*=\s*(.*?)\s*$")


def _parse_value(raw: str) -> str:
    if len(raw) >= 2 and raw[0] == raw[-1] and raw[0] in ("'", '"'):
        return raw[1:-1]
    # Unquoted values may carry a trailing " # comment"
    return raw.split(" #", 1)[0].rstrip()


def parse_dotenv(text: str) -> dict[str, str]:
    """Parse KEY=VALUE lines, skipping blanks, comments and malformed lines."""
    values: dict[str, str] = {}
    for line in text.splitlines():
        if not line.strip() or line.lstrip().startswith("#"):
            continue
        match = _LINE_RE.match(line)
        if match is None:
            continue
        key, raw = match.groups()
        values[key] = _parse_value(raw)
    return values


def default_dotenv_path() -> Path:
    env_file = os.environ.get(f"{ENV_PREFIX}ENV_FILE")
    if env_file:
        return Path(env_file)
    return get_project_root() / ".env"


def load_dotenv_if_present(*, dotenv_path: Path | None = None) -> list[str]:
    """Export variables from a .env file into os.environ.

    Args:
        dotenv_path: File to read. Defaults to default_dotenv_path().

    Returns:
        Names of the variables that were set (empty if the file is missing).
    """
    path = dotenv_path or default_dotenv_path()
    if not path.is_file():
        return []

    loaded: list[str] = []
    for key, value in parse_dotenv(path.read_text(encoding="utf-8")).items():
        if key in os.environ:
            continue
        os.environ[key] = value
        loaded.append(key)
    return loaded
