"""File-based mailbox shared by the controller and the agent bridge.

Layout (one directory, injected by the caller):

    <dir>/status.json   status record (JSON, fully replaced on every write)
    <dir>/input.txt     next user turn (presence of non-empty text = available)

Reads never raise: a missing, locked or torn file reads as "nothing yet".
Writes raise `OSError`; callers decide whether that is fatal.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from ..contracts.v1 import StatusRecord
from ..util.fs import atomic_write_json, atomic_write_text, read_json, read_text, remove_file

logger = logging.getLogger("turn_mcp.mailbox")

STATUS_FILENAME = "status.json"
INPUT_FILENAME = "input.txt"


@dataclass(frozen=True)
class Mailbox:
    root: Path

    @property
    def status_path(self) -> Path:
        return self.root / STATUS_FILENAME

    @property
    def input_path(self) -> Path:
        return self.root / INPUT_FILENAME

    def ensure(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------ status

    def read_status(self) -> Optional[StatusRecord]:
        doc = read_json(self.status_path)
        if doc is None:
            return None
        try:
            return StatusRecord.model_validate(doc)
        except ValidationError:
            logger.debug("ignoring malformed status record: %s", self.status_path)
            return None

    def write_status(self, record: StatusRecord) -> None:
        atomic_write_json(self.status_path, record.to_wire())

    # ------------------------------------------------------------------- input

    def read_input(self) -> Optional[str]:
        """Trimmed payload, or None when absent or blank."""
        text = read_text(self.input_path)
        if text is None:
            return None
        text = text.strip()
        return text or None

    def write_input(self, text: str) -> None:
        atomic_write_text(self.input_path, text)

    def clear_input(self) -> bool:
        return remove_file(self.input_path)

    def has_input(self) -> bool:
        return self.input_path.exists()

    # -------------------------------------------------------------- lifecycle

    def reset(self) -> None:
        """Drop both artifacts so no stale waiting state survives a restart."""
        for p in (self.status_path, self.input_path):
            try:
                remove_file(p)
            except OSError as e:
                logger.warning("could not remove stale %s: %s", p.name, e)
