"""Global settings for turn-mcp.

Settings are stored in ~/.turn-mcp/settings.yaml (or $TURN_MCP_HOME) and
include:
- mailbox_dir: shared mailbox directory (default: <tmp>/turn-mcp, or $TURN_MCP_DIR)
- poll_interval_seconds / heartbeat_every_ticks: polling cadence
- log_level
- integration: editor config files touched by `turn-mcp config`
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml  # type: ignore

from ..paths import default_mailbox_dir, ensure_home, turn_home
from ..util.conv import coerce_float, coerce_int
from ..util.fs import atomic_write_text

DEFAULT_POLL_INTERVAL_SECONDS = 0.5
MIN_POLL_INTERVAL_SECONDS = 0.05
DEFAULT_HEARTBEAT_EVERY_TICKS = 20


def _windsurf_dir() -> Path:
    return Path.home() / ".codeium" / "windsurf"


@dataclass(frozen=True)
class IntegrationTargets:
    """Editor files that `turn-mcp config` edits."""
    mcp_config_path: Path
    rules_path: Path

    @classmethod
    def windsurf(cls) -> "IntegrationTargets":
        base = _windsurf_dir()
        return cls(
            mcp_config_path=base / "mcp_config.json",
            rules_path=base / "memories" / "global_rules.md",
        )


@dataclass(frozen=True)
class Settings:
    mailbox_dir: Path
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS
    heartbeat_every_ticks: int = DEFAULT_HEARTBEAT_EVERY_TICKS
    log_level: str = "INFO"
    integration: Optional[IntegrationTargets] = None

    @property
    def targets(self) -> IntegrationTargets:
        return self.integration or IntegrationTargets.windsurf()

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Settings":
        # $TURN_MCP_DIR outranks the file so both processes can be pointed at one dir.
        raw_dir = os.environ.get("TURN_MCP_DIR", "").strip() or str(d.get("mailbox_dir") or "").strip()
        mailbox_dir = Path(raw_dir).expanduser() if raw_dir else default_mailbox_dir()

        integ = d.get("integration")
        targets: Optional[IntegrationTargets] = None
        if isinstance(integ, dict):
            default = IntegrationTargets.windsurf()
            cfg = str(integ.get("mcp_config_path") or "").strip()
            rules = str(integ.get("rules_path") or "").strip()
            targets = IntegrationTargets(
                mcp_config_path=Path(cfg).expanduser() if cfg else default.mcp_config_path,
                rules_path=Path(rules).expanduser() if rules else default.rules_path,
            )

        return cls(
            mailbox_dir=mailbox_dir,
            poll_interval_seconds=coerce_float(
                d.get("poll_interval_seconds", DEFAULT_POLL_INTERVAL_SECONDS),
                default=DEFAULT_POLL_INTERVAL_SECONDS,
                minimum=MIN_POLL_INTERVAL_SECONDS,
            ),
            heartbeat_every_ticks=coerce_int(
                d.get("heartbeat_every_ticks", DEFAULT_HEARTBEAT_EVERY_TICKS),
                default=DEFAULT_HEARTBEAT_EVERY_TICKS,
                minimum=1,
            ),
            log_level=str(d.get("log_level") or "INFO").strip().upper() or "INFO",
            integration=targets,
        )

    def to_dict(self) -> Dict[str, Any]:
        doc: Dict[str, Any] = {
            "mailbox_dir": str(self.mailbox_dir),
            "poll_interval_seconds": self.poll_interval_seconds,
            "heartbeat_every_ticks": self.heartbeat_every_ticks,
            "log_level": self.log_level,
        }
        if self.integration is not None:
            doc["integration"] = {
                "mcp_config_path": str(self.integration.mcp_config_path),
                "rules_path": str(self.integration.rules_path),
            }
        return doc


def _settings_path() -> Path:
    return turn_home() / "settings.yaml"


def load_settings_doc() -> Dict[str, Any]:
    """Raw settings document; {} when missing or malformed."""
    p = _settings_path()
    if not p.exists():
        return {}
    try:
        doc = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError):
        return {}
    return doc if isinstance(doc, dict) else {}


def load_settings() -> Settings:
    return Settings.from_dict(load_settings_doc())


def save_settings(settings: Settings) -> None:
    p = ensure_home() / "settings.yaml"
    atomic_write_text(p, yaml.safe_dump(settings.to_dict(), allow_unicode=True, sort_keys=False))
