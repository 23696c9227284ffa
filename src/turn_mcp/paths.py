from __future__ import annotations

import os
import tempfile
from pathlib import Path

MAILBOX_NAMESPACE = "turn-mcp"


def turn_home() -> Path:
    env = os.environ.get("TURN_MCP_HOME", "").strip()
    if env:
        return Path(env).expanduser().resolve()
    return (Path.home() / ".turn-mcp").resolve()


def ensure_home() -> Path:
    home = turn_home()
    home.mkdir(parents=True, exist_ok=True)
    return home


def default_mailbox_dir() -> Path:
    """Well-known mailbox location shared by the controller and the agent bridge."""
    env = os.environ.get("TURN_MCP_DIR", "").strip()
    if env:
        return Path(env).expanduser().resolve()
    return Path(tempfile.gettempdir()) / MAILBOX_NAMESPACE
