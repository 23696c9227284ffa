"""Register turn-mcp with an editor's MCP client.

Two files are touched:
- the MCP config (JSON): `mcpServers["turn-mcp"]` launches the stdio server
- the global rules (Markdown): a rules block telling the agent to call `turn`
  at the end of every reply

Both edits are idempotent and reversible.
"""
from __future__ import annotations

import json
import logging
import re
import shutil
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List

from .settings import IntegrationTargets
from ..util.fs import atomic_write_json, atomic_write_text

logger = logging.getLogger("turn_mcp.integration")

SERVER_KEY = "turn-mcp"
RULES_MARKER = "## Turn MCP Usage Rules"

RULES_TEXT = f"""
{RULES_MARKER}

**Highest-priority rule: always follow it.**

You **must** call the `turn` tool at the **end of every reply**, whatever the reply is about. No exceptions.

| Situation | Action |
|-----------|--------|
| After answering any question | call turn |
| After finishing a task | call turn |
| After editing code | call turn |
| After hitting an error or a problem | call turn |
| Anything else | call turn |

### Arguments

- `context` (required): short summary of what you just did
- `question` (optional): ask the user what to do next

### Why

`turn` pauses and waits for the user's next prompt, then returns it to you as the next instruction.
Several conversation turns can happen inside a single request this way.

### Notes

- Do not announce that you are going to call turn; just call it.
- Keep `context` brief; do not repeat the whole reply.
- If the user has nothing new, they will reply "continue" or similar.
"""


@dataclass
class IntegrationResult:
    success: bool
    message: str
    details: List[str] = field(default_factory=list)


def mcp_server_entry() -> Dict[str, Any]:
    """How the editor should launch the agent bridge."""
    return {"command": sys.executable, "args": ["-m", "turn_mcp.ports.mcp.main"]}


def mcp_config_snippet() -> Dict[str, Any]:
    return {"mcpServers": {SERVER_KEY: mcp_server_entry()}}


def _load_config(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    return json.loads(path.read_text(encoding="utf-8") or "{}")


def is_installed(targets: IntegrationTargets) -> bool:
    try:
        doc = _load_config(targets.mcp_config_path)
    except (OSError, ValueError):
        return False
    servers = doc.get("mcpServers") if isinstance(doc, dict) else None
    return isinstance(servers, dict) and SERVER_KEY in servers


def _install_server(path: Path, details: List[str]) -> None:
    try:
        doc = _load_config(path)
    except ValueError:
        backup = path.with_name(path.name + ".backup")
        shutil.copyfile(path, backup)
        details.append(f"MCP config was not valid JSON; backed up to {backup}")
        logger.warning("unparseable MCP config backed up to %s", backup)
        doc = {}
    if not isinstance(doc, dict):
        doc = {}
    servers = doc.get("mcpServers")
    if not isinstance(servers, dict):
        servers = {}
        doc["mcpServers"] = servers
    servers[SERVER_KEY] = mcp_server_entry()
    atomic_write_json(path, doc)
    details.append(f"MCP config written: {path}")


def _install_rules(path: Path, details: List[str]) -> None:
    existing = path.read_text(encoding="utf-8") if path.exists() else ""
    if RULES_MARKER in existing:
        details.append("rules already present, skipped")
        return
    atomic_write_text(path, existing + "\n" + RULES_TEXT)
    details.append(f"rules injected: {path}")


def install(targets: IntegrationTargets) -> IntegrationResult:
    details: List[str] = []
    try:
        _install_server(targets.mcp_config_path, details)
        _install_rules(targets.rules_path, details)
    except OSError as e:
        logger.error("install failed: %s", e)
        return IntegrationResult(False, f"install failed: {e}", details)
    for line in details:
        logger.info(line)
    return IntegrationResult(True, "installed; restart the editor to apply", details)


def strip_rules(text: str) -> str:
    """Remove the rules block (marker heading up to the next `## ` heading or EOF)."""
    start = text.find(RULES_MARKER)
    if start < 0:
        return text
    after = start + len(RULES_MARKER)
    m = re.search(r"\n## ", text[after:])
    end = after + m.start() if m else len(text)
    return text[:start].rstrip() + text[end:]


def uninstall(targets: IntegrationTargets) -> IntegrationResult:
    details: List[str] = []
    cfg = targets.mcp_config_path
    rules = targets.rules_path
    try:
        if cfg.exists():
            try:
                doc = _load_config(cfg)
            except ValueError:
                doc = None
                details.append("MCP config is not valid JSON, skipped")
            servers = doc.get("mcpServers") if isinstance(doc, dict) else None
            if isinstance(servers, dict) and SERVER_KEY in servers:
                del servers[SERVER_KEY]
                atomic_write_json(cfg, doc)
                details.append(f"removed {SERVER_KEY} from {cfg}")
            elif doc is not None:
                details.append(f"{SERVER_KEY} not found in MCP config")
        else:
            details.append("MCP config not found")

        if rules.exists():
            text = rules.read_text(encoding="utf-8")
            if RULES_MARKER in text:
                atomic_write_text(rules, strip_rules(text))
                details.append(f"removed rules from {rules}")
            else:
                details.append("rules not found")
        else:
            details.append("rules file not found")
    except OSError as e:
        logger.error("uninstall failed: %s", e)
        return IntegrationResult(False, f"uninstall failed: {e}", details)
    for line in details:
        logger.info(line)
    return IntegrationResult(True, "removed; restart the editor to apply", details)
