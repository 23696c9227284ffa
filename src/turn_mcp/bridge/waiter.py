"""Agent-side half of the handshake.

`pause_and_wait` runs inside the agent's tool call. It announces a waiting
status, then polls the mailbox until a user turn or a cancel flag shows up.
There is no timeout: a human, or a cancel, ends the wait.
"""
from __future__ import annotations

import logging
import threading
from typing import Optional

from ..contracts.v1 import CANCELED_SENTINEL, StatusRecord
from ..kernel.mailbox import Mailbox
from ..kernel.settings import DEFAULT_HEARTBEAT_EVERY_TICKS, DEFAULT_POLL_INTERVAL_SECONDS
from ..util.conv import preview
from ..util.time import now_ms

logger = logging.getLogger("turn_mcp.bridge")


def _clear_consumed(mailbox: Mailbox) -> None:
    # The next wait clears leftovers before publishing, so a failed unlink only delays cleanup.
    try:
        mailbox.clear_input()
    except OSError as e:
        logger.warning("could not clear consumed input: %s", e, extra={"op": "clear_input"})


def _poll_once(mailbox: Mailbox, announce: StatusRecord) -> Optional[str]:
    """One tick. Returns the user turn, the cancel sentinel, or None to keep waiting."""
    status = mailbox.read_status()
    if status is not None and status.is_canceled:
        _clear_consumed(mailbox)
        return CANCELED_SENTINEL

    if status is None and not mailbox.status_path.exists():
        # A restarting controller wiped the mailbox; announce the wait again.
        try:
            mailbox.write_status(announce)
            logger.info("status record missing, waiting state republished", extra={"op": "republish"})
        except OSError as e:
            logger.warning("could not republish waiting state: %s", e, extra={"op": "republish"})

    text = mailbox.read_input()
    if text:
        _clear_consumed(mailbox)
        return text
    return None


def pause_and_wait(
    mailbox: Mailbox,
    context: str,
    question: Optional[str] = None,
    *,
    poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
    heartbeat_every: int = DEFAULT_HEARTBEAT_EVERY_TICKS,
    stop_event: Optional[threading.Event] = None,
) -> str:
    """Block until the controller delivers the next user turn.

    Returns the trimmed user text, or ``[canceled]`` when the wait was
    force-cancelled (or `stop_event` was set by the hosting process).

    Raises ValueError for an empty `context` and OSError when the waiting or
    finished status record cannot be written.
    """
    if not str(context or "").strip():
        raise ValueError("context must not be empty")

    mailbox.ensure()
    # Drop leftovers first: once `waiting: true` is visible the controller may write at any moment.
    mailbox.clear_input()
    announce = StatusRecord.waiting_for(context, question, timestamp=now_ms())
    mailbox.write_status(announce)

    logger.info("waiting for user input: %s", preview(context, 100), extra={"op": "wait_start"})
    if question:
        logger.info("question: %s", preview(question, 100), extra={"op": "wait_start"})

    stop = stop_event or threading.Event()
    ticks = 0
    try:
        while True:
            if stop.is_set():
                _clear_consumed(mailbox)
                result = CANCELED_SENTINEL
                break
            result = _poll_once(mailbox, announce)
            if result is not None:
                break
            ticks += 1
            if heartbeat_every > 0 and ticks % heartbeat_every == 0:
                logger.info(
                    "still waiting for user input (%.0fs)",
                    ticks * poll_interval,
                    extra={"op": "heartbeat", "tick": ticks},
                )
            stop.wait(poll_interval)
    finally:
        # Also runs on KeyboardInterrupt so observers see the wait end.
        mailbox.write_status(StatusRecord.idle(timestamp=now_ms()))

    if result == CANCELED_SENTINEL:
        logger.info("wait canceled", extra={"op": "wait_end"})
    else:
        logger.info("received user input: %s", preview(result, 100), extra={"op": "wait_end"})
    return result
