from __future__ import annotations

import argparse
import json
import os
from dataclasses import replace
from pathlib import Path
from typing import Any

from . import __version__
from .controller import Controller
from .controller.console import run_console
from .kernel import integration
from .kernel.mailbox import Mailbox
from .kernel.settings import Settings, load_settings, load_settings_doc, save_settings
from .paths import ensure_home
from .util.obslog import setup_root_json_logging
from .util.time import ms_to_iso


def _print_json(obj: Any) -> None:
    print(json.dumps(obj, ensure_ascii=False, indent=2))


def _dir_override(args: argparse.Namespace) -> str:
    return str(getattr(args, "dir", "") or "").strip()


def _settings(args: argparse.Namespace) -> Settings:
    settings = load_settings()
    raw = _dir_override(args)
    if raw:
        settings = replace(settings, mailbox_dir=Path(raw).expanduser())
    return settings


def _mailbox(args: argparse.Namespace) -> Mailbox:
    return Mailbox(_settings(args).mailbox_dir)


def cmd_mcp(args: argparse.Namespace) -> int:
    from .ports.mcp.main import main as mcp_main

    raw = _dir_override(args)
    if raw:
        # The server reloads settings per call; the env var outranks settings.yaml.
        os.environ["TURN_MCP_DIR"] = raw
    return int(mcp_main())


def cmd_console(args: argparse.Namespace) -> int:
    settings = _settings(args)
    # stderr would tear the prompt; the console log lives next to settings.yaml.
    log_stream = (ensure_home() / "console.log").open("a", encoding="utf-8")
    setup_root_json_logging(component="turn-mcp.controller", level=settings.log_level, stream=log_stream)
    controller = Controller(Mailbox(settings.mailbox_dir), poll_interval=settings.poll_interval_seconds)
    return run_console(controller)


def cmd_status(args: argparse.Namespace) -> int:
    mb = _mailbox(args)
    record = mb.read_status()
    out: dict = {"mailbox": str(mb.root), "status": None, "input_pending": mb.has_input()}
    if record is not None:
        out["status"] = record.to_wire()
        out["written_at"] = ms_to_iso(record.timestamp)
    _print_json(out)
    return 0


def cmd_send(args: argparse.Namespace) -> int:
    """One-shot delivery, bypassing any running console's queue."""
    text = str(args.text or "").strip()
    if not text:
        print("turn-mcp: empty message")
        return 2
    mb = _mailbox(args)
    record = mb.read_status()
    if record is None or not record.waiting:
        print("turn-mcp: agent is not waiting")
        return 1
    if mb.has_input():
        print("turn-mcp: a message is already pending delivery")
        return 1
    mb.write_input(text)
    print("turn-mcp: delivered")
    return 0


def cmd_cancel(args: argparse.Namespace) -> int:
    ok = Controller(_mailbox(args)).clear_waiting()
    print("turn-mcp: wait canceled" if ok else "turn-mcp: cancel failed")
    return 0 if ok else 1


def cmd_reset(args: argparse.Namespace) -> int:
    mb = _mailbox(args)
    mb.reset()
    print(f"turn-mcp: mailbox reset ({mb.root})")
    return 0


def cmd_config(args: argparse.Namespace) -> int:
    targets = _settings(args).targets
    if args.action == "show":
        _print_json({
            "installed": integration.is_installed(targets),
            "mcp_config_path": str(targets.mcp_config_path),
            "rules_path": str(targets.rules_path),
            "snippet": integration.mcp_config_snippet(),
        })
        return 0

    if args.action == "install":
        res = integration.install(targets)
    elif args.action == "uninstall":
        res = integration.uninstall(targets)
    else:
        return 2
    _print_json({"ok": res.success, "message": res.message, "details": res.details})
    return 0 if res.success else 1


def cmd_settings(args: argparse.Namespace) -> int:
    if args.action == "show":
        _print_json(load_settings().to_dict())
        return 0
    if args.action == "init":
        if load_settings_doc() and not args.force:
            print("turn-mcp: settings.yaml already exists (use --force to overwrite)")
            return 1
        save_settings(load_settings())
        print("turn-mcp: settings.yaml written")
        return 0
    return 2


def cmd_version(_: argparse.Namespace) -> int:
    print(__version__)
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="turn-mcp", description="Pause an agent mid-session and feed it the next prompt")
    p.add_argument("--dir", default="", help="Mailbox directory (default: settings or <tmp>/turn-mcp)")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_mcp = sub.add_parser("mcp", help="Run the agent-side MCP server on stdio")
    p_mcp.set_defaults(func=cmd_mcp)

    p_console = sub.add_parser("console", help="Monitor the agent and reply/queue messages interactively")
    p_console.set_defaults(func=cmd_console)

    p_status = sub.add_parser("status", help="Show the current status record")
    p_status.set_defaults(func=cmd_status)

    p_send = sub.add_parser("send", help="Deliver one message to a waiting agent (no queueing)")
    p_send.add_argument("text", help="Message text")
    p_send.set_defaults(func=cmd_send)

    p_cancel = sub.add_parser("cancel", help="Abort the agent's current wait")
    p_cancel.set_defaults(func=cmd_cancel)

    p_reset = sub.add_parser("reset", help="Delete stale mailbox files")
    p_reset.set_defaults(func=cmd_reset)

    p_config = sub.add_parser("config", help="Register turn-mcp with the editor (MCP config + rules)")
    p_config.add_argument("action", choices=["install", "uninstall", "show"], help="Action")
    p_config.set_defaults(func=cmd_config)

    p_settings = sub.add_parser("settings", help="Show or initialize settings.yaml")
    p_settings.add_argument("action", choices=["show", "init"], help="Action")
    p_settings.add_argument("--force", action="store_true", help="Overwrite an existing settings.yaml")
    p_settings.set_defaults(func=cmd_settings)

    p_ver = sub.add_parser("version", help="Show version")
    p_ver.set_defaults(func=cmd_version)

    return p


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
