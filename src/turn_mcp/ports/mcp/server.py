"""
turn-mcp MCP tools

One tool is exposed to the agent:

- turn: pause, show the user what was done, and block until the user's next
  prompt arrives through the mailbox (or the wait is canceled).

The tool blocks inside this process; the controller delivers input through
the shared mailbox directory.
"""

from __future__ import annotations

import threading
from typing import Any, Dict, Optional

from pydantic import ValidationError

from ...bridge.waiter import pause_and_wait
from ...contracts.v1 import TurnArgs
from ...kernel.mailbox import Mailbox
from ...kernel.settings import load_settings

TOOL_NAME = "turn"

# Set by the stdio loop on SIGTERM so a blocked wait ends as canceled.
SHUTDOWN = threading.Event()
# Set while `turn` blocks; SIGTERM outside a call exits at once.
IN_CALL = threading.Event()


class MCPError(Exception):
    """MCP tool call error"""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}


MCP_TOOLS = [
    {
        "name": TOOL_NAME,
        "description": (
            "Pause and wait for the user's next prompt. Blocks until the user replies "
            "from the turn-mcp controller, so several conversation turns can happen "
            "inside a single request. Call it at the end of every reply, and whenever "
            "you need the user's confirmation or input. Returns the user's text, or "
            "[canceled] if the user aborted the wait."
        ),
        "inputSchema": {
            "type": "object",
            "properties": {
                "context": {
                    "type": "string",
                    "description": "Short summary of what you just did, shown to the user",
                },
                "question": {
                    "type": "string",
                    "description": "Optional question asking the user what to do next",
                },
            },
            "required": ["context"],
            "additionalProperties": False,
        },
    },
]


def turn(*, context: str, question: Optional[str] = None) -> str:
    """Block in the agent bridge until the user's next turn."""
    settings = load_settings()
    return pause_and_wait(
        Mailbox(settings.mailbox_dir),
        context,
        question,
        poll_interval=settings.poll_interval_seconds,
        heartbeat_every=settings.heartbeat_every_ticks,
        stop_event=SHUTDOWN,
    )


def handle_tool_call(name: str, arguments: Dict[str, Any]) -> str:
    """Handle MCP tool call"""
    if name != TOOL_NAME:
        raise MCPError(code="unknown_tool", message=f"unknown tool: {name}")

    try:
        args = TurnArgs.model_validate(arguments)
    except ValidationError as e:
        raise MCPError(
            code="invalid_arguments",
            message="invalid arguments for turn",
            details={"errors": [str(err.get("msg") or "") for err in e.errors()]},
        ) from e

    IN_CALL.set()
    try:
        return turn(context=args.context, question=args.question)
    except OSError as e:
        raise MCPError(code="mailbox_unavailable", message=f"cannot publish waiting state: {e}") from e
    finally:
        IN_CALL.clear()
