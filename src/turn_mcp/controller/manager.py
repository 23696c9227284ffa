"""Controller half of the handshake.

The controller polls the mailbox status, turns waiting/not-waiting edges into
notifications, owns the in-memory message queue, and is the only writer of
the input payload.

Key behavior:
- One input write per wait cycle, enforced by `SendLatch`.
- Entering a wait drains the head of the queue automatically.
- A failed write puts the message back at the head of the queue.
- `tick()` is atomic with respect to every public operation (one RLock).
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from ..contracts.v1 import StatusRecord
from ..kernel.latch import SendLatch
from ..kernel.mailbox import Mailbox
from ..kernel.queue import MessageQueue
from ..kernel.settings import DEFAULT_POLL_INTERVAL_SECONDS
from ..util.conv import preview
from ..util.time import now_ms

logger = logging.getLogger("turn_mcp.controller")


@dataclass(frozen=True)
class ControllerStatus:
    """The controller's belief about the agent bridge, derived from polling."""
    running: bool = False
    waiting: bool = False
    context: str = ""
    question: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "running": self.running,
            "waiting": self.waiting,
            "context": self.context,
            "question": self.question,
        }


class ControllerListener:
    """Subscriber interface. Override what you need.

    Callbacks run on the caller's thread (the poller thread for edges) while
    the controller lock is held; they must not block.
    """

    def on_status_change(self, status: ControllerStatus) -> None:
        pass

    def on_waiting(self, context: str, question: Optional[str]) -> None:
        pass

    def on_log(self, message: str) -> None:
        pass


class Controller:
    def __init__(self, mailbox: Mailbox, *, poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS) -> None:
        self.mailbox = mailbox
        self.poll_interval = float(poll_interval)
        self._lock = threading.RLock()
        self._status = ControllerStatus()
        self._queue = MessageQueue()
        self._latch = SendLatch()
        # (context, question) of the wait cycle currently adopted.
        self._cycle: Optional[Tuple[str, Optional[str]]] = None
        # Ticks on which the delivered input was gone but the same wait persisted.
        self._consumed_ticks = 0
        self._stalled = False
        self._listeners: List[ControllerListener] = []
        self._stop_event: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None

    # ============================================================ listeners

    def add_listener(self, listener: ControllerListener) -> None:
        with self._lock:
            if listener not in self._listeners:
                self._listeners.append(listener)

    def remove_listener(self, listener: ControllerListener) -> None:
        with self._lock:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

    def _emit(self, method: str, *args: Any) -> None:
        for listener in list(self._listeners):
            try:
                getattr(listener, method)(*args)
            except Exception:
                logger.exception("listener %s.%s failed", type(listener).__name__, method)

    def _log(self, message: str, *, level: int = logging.INFO, op: str = "") -> None:
        logger.log(level, message, extra={"op": op or None, "queue_len": len(self._queue)})
        self._emit("on_log", message)

    def _set_status(self, status: ControllerStatus) -> None:
        self._status = status
        self._emit("on_status_change", status)

    # ============================================================ lifecycle

    @property
    def is_sending(self) -> bool:
        return self._latch.is_sending

    @property
    def delivery_stalled(self) -> bool:
        """The agent consumed our input yet still shows the same wait; only a cancel frees the latch."""
        with self._lock:
            return self._stalled

    def get_status(self) -> ControllerStatus:
        with self._lock:
            return self._status

    def start(self, *, background: bool = True) -> None:
        """Reset stale mailbox state and begin polling.

        With `background=False` no thread is started; the host drives `tick()`.
        """
        with self._lock:
            if self._status.running:
                return
            self.mailbox.ensure()
            self.mailbox.reset()
            self._latch.reset()
            self._cycle = None
            self._clear_stall()
            if background:
                self._stop_event = threading.Event()
                self._thread = threading.Thread(
                    target=self._poll_loop,
                    args=(self._stop_event,),
                    name="turn-mcp-poller",
                    daemon=True,
                )
                self._thread.start()
            self._set_status(ControllerStatus(running=True, waiting=False))
            self._log(f"monitoring started: {self.mailbox.root}", op="start")

    def stop(self) -> None:
        """Stop polling. Queued messages are kept for the next start()."""
        with self._lock:
            thread, self._thread = self._thread, None
            if self._stop_event is not None:
                self._stop_event.set()
                self._stop_event = None
            was_running = self._status.running
            self._cycle = None
            self._clear_stall()
            self._set_status(ControllerStatus(running=False, waiting=False))
            if was_running:
                self._log("monitoring stopped", op="stop")
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=max(1.0, self.poll_interval * 4))

    def _poll_loop(self, stop_event: threading.Event) -> None:
        while not stop_event.is_set():
            try:
                self.tick()
            except Exception:
                logger.exception("poller tick failed")
            stop_event.wait(self.poll_interval)

    # ================================================================ polling

    def tick(self) -> None:
        """Apply one observation of the status record.

        Absent or malformed records are "no change". Only edges notify.
        """
        with self._lock:
            if not self._status.running:
                return
            # Read and apply under one lock; clear_waiting() must not interleave.
            record = self.mailbox.read_status()
            if record is None:
                return
            self._observe(record)

    def _observe(self, record: StatusRecord) -> None:
        now_waiting = record.waiting is True
        was_waiting = self._status.waiting

        if now_waiting:
            key = (record.context or "", record.question or None)
            if was_waiting and key != self._cycle:
                # The bridge finished a wait and started another between two ticks.
                self._end_wait()
                was_waiting = False
            if not was_waiting:
                self._enter_wait(*key)
            else:
                self._check_stalled()
        elif was_waiting:
            self._end_wait()

    def _enter_wait(self, context: str, question: Optional[str]) -> None:
        self._cycle = (context, question)
        self._clear_stall()
        self._set_status(ControllerStatus(running=True, waiting=True, context=context, question=question))
        self._emit("on_waiting", context, question)
        self._log(f"agent is waiting: {preview(context)}", op="wait_start")

        if self._queue and not self._latch.is_sending:
            self._log(f"{len(self._queue)} queued message(s), sending the first one", op="drain")
            self._send_next_locked()

    def _end_wait(self) -> None:
        self._latch.wait_ended()
        self._cycle = None
        self._clear_stall()
        self._set_status(ControllerStatus(running=True, waiting=False))
        self._log("wait ended", op="wait_end")

    def _clear_stall(self) -> None:
        self._consumed_ticks = 0
        self._stalled = False

    def _check_stalled(self) -> None:
        """Detect a wait that outlived its delivered input.

        An identical wait republished between two ticks looks unchanged, so the
        latch never re-arms. Writing again is unsafe (the bridge may be between
        consuming and going idle), so this only reports it.
        """
        if self._stalled:
            return
        if not self._latch.is_sending or self.mailbox.has_input():
            self._consumed_ticks = 0
            return
        self._consumed_ticks += 1
        if self._consumed_ticks < 2:
            return
        self._stalled = True
        self._log(
            "agent consumed the last message but is still waiting with the same context; "
            "new messages stay queued until the wait ends (use /cancel to reset)",
            level=logging.WARNING,
            op="stall",
        )
        self._emit("on_status_change", self._status)

    # ================================================================== input

    def submit_input(self, text: str) -> bool:
        """Deliver `text` now if the agent is waiting, otherwise queue it.

        Returns False when the direct write failed; the text is then queued.
        """
        if not str(text or "").strip():
            return False
        with self._lock:
            if not self._status.waiting or not self._latch.acquire():
                self._add_locked(text)
                return True
            try:
                self._write_input(text)
            except OSError as e:
                self._latch.write_failed()
                self._queue.append(text)
                self._log(f"submit failed, queued instead: {e}", level=logging.WARNING, op="submit")
                self._emit("on_status_change", self._status)
                return False
            self._log(f"input submitted: {preview(text)}", op="submit")
            return True

    def add_to_queue(self, text: str) -> None:
        if not str(text or "").strip():
            return
        with self._lock:
            self._add_locked(text)

    def _add_locked(self, text: str) -> None:
        self._queue.append(text)
        self._log(f"queued: {preview(text)} (queue length: {len(self._queue)})", op="enqueue")
        self._emit("on_status_change", self._status)
        if self._status.waiting:
            self._send_next_locked()

    def send_next_from_queue(self) -> bool:
        with self._lock:
            return self._send_next_locked()

    def _send_next_locked(self) -> bool:
        if self._latch.is_sending:
            return False
        message = self._queue.pop_head()
        if message is None:
            return False
        self._latch.acquire()
        try:
            self._write_input(message)
        except OSError as e:
            self._queue.push_head(message)
            self._latch.write_failed()
            self._log(f"send failed, message kept at queue head: {e}", level=logging.WARNING, op="drain")
            return False
        self._log(f"sent from queue: {preview(message)} (remaining: {len(self._queue)})", op="drain")
        self._emit("on_status_change", self._status)
        return True

    def _write_input(self, text: str) -> None:
        self.mailbox.ensure()
        self.mailbox.write_input(text)

    # ================================================================== queue

    def get_queue(self) -> List[str]:
        with self._lock:
            return self._queue.snapshot()

    def remove_from_queue(self, index: int) -> bool:
        with self._lock:
            if not self._queue.remove(index):
                return False
            self._log(f"removed queue item {index} (remaining: {len(self._queue)})", op="queue_remove")
            self._emit("on_status_change", self._status)
            return True

    def clear_queue(self) -> None:
        with self._lock:
            n = self._queue.clear()
            self._log(f"queue cleared ({n} dropped)", op="queue_clear")
            self._emit("on_status_change", self._status)

    def reorder_queue(self, from_index: int, to_index: int) -> bool:
        with self._lock:
            if not self._queue.move(from_index, to_index):
                return False
            self._log(f"queue reordered: {from_index + 1} -> {to_index + 1}", op="queue_move")
            self._emit("on_status_change", self._status)
            return True

    # ============================================================ cancellation

    def clear_waiting(self) -> bool:
        """Force-cancel the current wait; the bridge returns ``[canceled]`` on its next tick."""
        with self._lock:
            try:
                self.mailbox.ensure()
                self.mailbox.write_status(StatusRecord.cancel(timestamp=now_ms()))
            except OSError as e:
                self._log(f"failed to cancel wait: {e}", level=logging.WARNING, op="cancel")
                return False
            self._latch.reset()
            self._cycle = None
            self._clear_stall()
            self._set_status(ControllerStatus(running=self._status.running, waiting=False))
            self._log("wait canceled (bridge notified)", op="cancel")
            return True
