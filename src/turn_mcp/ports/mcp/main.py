"""
turn-mcp MCP server, stdio entry point.

Usage:
    python -m turn_mcp.ports.mcp.main

or via the CLI:
    turn-mcp mcp

stdout carries JSON-RPC only; logs go to stderr.
"""

from __future__ import annotations

import json
import logging
import signal
import sys
from typing import Any, Dict, Optional

from ... import __version__
from ...kernel.settings import load_settings
from ...util.obslog import setup_root_json_logging
from .server import IN_CALL, MCP_TOOLS, SHUTDOWN, MCPError, handle_tool_call

PROTOCOL_VERSION = "2024-11-05"

logger = logging.getLogger("turn_mcp.mcp")


def _read_message() -> Optional[Dict[str, Any]]:
    """Read one JSON-RPC message from stdin. None on EOF."""
    while True:
        line = sys.stdin.readline()
        if not line:
            return None
        line = line.strip()
        if not line:
            continue
        try:
            msg = json.loads(line)
        except ValueError:
            logger.warning("dropping non-JSON input line")
            continue
        if isinstance(msg, dict):
            return msg
        logger.warning("dropping non-object JSON-RPC message")


def _write_message(msg: Dict[str, Any]) -> None:
    sys.stdout.write(json.dumps(msg, ensure_ascii=False) + "\n")
    sys.stdout.flush()


def _make_response(id: Any, result: Any) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "id": id, "result": result}


def _make_error(id: Any, code: int, message: str, data: Any = None) -> Dict[str, Any]:
    error: Dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": "2.0", "id": id, "error": error}


def _text_result(text: str, *, is_error: bool = False) -> Dict[str, Any]:
    result: Dict[str, Any] = {"content": [{"type": "text", "text": text}]}
    if is_error:
        result["isError"] = True
    return result


def handle_request(req: Dict[str, Any]) -> Dict[str, Any]:
    """Handle one MCP JSON-RPC request. Returns {} for notifications."""
    req_id = req.get("id")
    method = str(req.get("method") or "")
    params = req.get("params") or {}
    if not isinstance(params, dict):
        params = {}

    if method == "initialize":
        return _make_response(req_id, {
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": {
                "tools": {},
                # Some MCP clients probe these even if unused; return empty lists below.
                "resources": {},
                "prompts": {},
            },
            "serverInfo": {
                "name": "turn-mcp",
                "version": __version__,
            },
        })

    if method.startswith("notifications/"):
        return {}

    if method == "tools/list":
        return _make_response(req_id, {"tools": MCP_TOOLS})

    if method == "resources/list":
        return _make_response(req_id, {"resources": []})

    if method == "prompts/list":
        return _make_response(req_id, {"prompts": []})

    if method in ("ping", "logging/setLevel"):
        return _make_response(req_id, {})

    if method == "tools/call":
        tool_name = str(params.get("name") or "")
        arguments = params.get("arguments") or {}
        if not isinstance(arguments, dict):
            arguments = {}

        try:
            return _make_response(req_id, _text_result(handle_tool_call(tool_name, arguments)))
        except MCPError as e:
            logger.warning("tool call failed: %s", e.message, extra={"op": tool_name})
            return _make_response(req_id, _text_result(
                json.dumps({"error": {"code": e.code, "message": e.message, "details": e.details}},
                           ensure_ascii=False, indent=2),
                is_error=True,
            ))
        except Exception as e:
            logger.exception("tool call crashed", extra={"op": tool_name})
            return _make_response(req_id, _text_result(
                json.dumps({"error": {"code": "internal_error", "message": str(e)}}, ensure_ascii=False, indent=2),
                is_error=True,
            ))

    return _make_error(req_id, -32601, f"Method not found: {method}")


def _install_signal_handlers() -> None:
    def _on_term(signum: int, frame: Any) -> None:
        SHUTDOWN.set()
        if not IN_CALL.is_set():
            # Idle in readline(), which would resume after the handler returns.
            raise SystemExit(0)
        # A blocked wait ends as canceled; the loop stops after replying.

    signal.signal(signal.SIGTERM, _on_term)


def main() -> int:
    """MCP server main loop (stdio)."""
    settings = load_settings()
    setup_root_json_logging(component="turn-mcp.bridge", level=settings.log_level)
    _install_signal_handlers()
    logger.info("MCP server started (mailbox: %s)", settings.mailbox_dir)

    try:
        while not SHUTDOWN.is_set():
            msg = _read_message()
            if msg is None:
                break

            resp = handle_request(msg)
            if resp:
                _write_message(resp)
    finally:
        logger.info("MCP server stopped")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
