import tempfile
import threading
import time
import unittest
from pathlib import Path
from typing import Any, Callable, Dict
from unittest.mock import patch


def _wait_until(pred: Callable[[], bool], timeout: float = 2.0) -> bool:
    deadline = time.time() + timeout
    while time.time() < deadline:
        if pred():
            return True
        time.sleep(0.005)
    return pred()


class TestPauseAndWait(unittest.TestCase):
    def setUp(self) -> None:
        from turn_mcp.kernel.mailbox import Mailbox

        self._td = tempfile.TemporaryDirectory()
        self.addCleanup(self._td.cleanup)
        self.mb = Mailbox(Path(self._td.name) / "mailbox")
        self.out: Dict[str, Any] = {}
        self.stop = threading.Event()
        self.addCleanup(self.stop.set)

    def _start(self, context: str = "wrote file X", question=None) -> threading.Thread:
        from turn_mcp.bridge import pause_and_wait

        def _run() -> None:
            try:
                self.out["result"] = pause_and_wait(
                    self.mb, context, question, poll_interval=0.01, heartbeat_every=3, stop_event=self.stop
                )
            except BaseException as e:  # surfaced through self.out
                self.out["error"] = e

        t = threading.Thread(target=_run, daemon=True)
        t.start()
        self.assertTrue(_wait_until(self._is_waiting), "bridge never published waiting")
        return t

    def _is_waiting(self) -> bool:
        rec = self.mb.read_status()
        return rec is not None and rec.waiting

    def test_returns_trimmed_input_and_publishes_idle(self) -> None:
        t = self._start("wrote file X", "next?")
        rec = self.mb.read_status()
        assert rec is not None
        self.assertEqual(rec.context, "wrote file X")
        self.assertEqual(rec.question, "next?")

        self.mb.write_input("  continue with Y\n")
        t.join(timeout=2.0)
        self.assertFalse(t.is_alive())
        self.assertEqual(self.out.get("result"), "continue with Y")

        self.assertFalse(self.mb.has_input())
        rec = self.mb.read_status()
        assert rec is not None
        self.assertFalse(rec.waiting)
        self.assertEqual(rec.context, "")

    def test_blank_input_keeps_waiting(self) -> None:
        t = self._start()
        self.mb.write_input("   ")
        time.sleep(0.08)
        self.assertTrue(t.is_alive())
        self.mb.write_input("real")
        t.join(timeout=2.0)
        self.assertEqual(self.out.get("result"), "real")

    def test_stale_input_is_cleared_before_waiting(self) -> None:
        self.mb.write_input("left over from last turn")
        t = self._start()
        self.assertFalse(self.mb.has_input())
        time.sleep(0.05)
        self.assertTrue(t.is_alive())
        self.mb.write_input("fresh")
        t.join(timeout=2.0)
        self.assertEqual(self.out.get("result"), "fresh")

    def test_cancel_is_observed_within_a_tick(self) -> None:
        from turn_mcp.contracts.v1 import CANCELED_SENTINEL
        from turn_mcp.controller import Controller

        t = self._start()
        self.assertTrue(Controller(self.mb).clear_waiting())
        t.join(timeout=1.0)
        self.assertFalse(t.is_alive())
        self.assertEqual(self.out.get("result"), CANCELED_SENTINEL)
        self.assertFalse(self.mb.has_input())
        rec = self.mb.read_status()
        assert rec is not None
        self.assertFalse(rec.waiting)
        self.assertFalse(rec.is_canceled)

    def test_cancel_with_fractional_timestamp_ends_wait(self) -> None:
        from turn_mcp.contracts.v1 import CANCELED_SENTINEL

        t = self._start()
        self.mb.status_path.write_text(
            '{"waiting": false, "canceled": true, "timestamp": 1700000000000.5}', encoding="utf-8"
        )
        t.join(timeout=1.0)
        self.assertFalse(t.is_alive())
        self.assertEqual(self.out.get("result"), CANCELED_SENTINEL)

    def test_cancel_returns_sentinel_and_clears_stale_payload(self) -> None:
        from turn_mcp.bridge.waiter import _poll_once
        from turn_mcp.contracts.v1 import CANCELED_SENTINEL, StatusRecord

        self.mb.ensure()
        self.mb.write_status(StatusRecord.cancel(timestamp=1))
        self.mb.write_input("stale")
        announce = StatusRecord.waiting_for("ctx", None, timestamp=1)
        self.assertEqual(_poll_once(self.mb, announce), CANCELED_SENTINEL)
        self.assertFalse(self.mb.has_input())

    def test_stop_event_ends_wait_as_canceled(self) -> None:
        from turn_mcp.contracts.v1 import CANCELED_SENTINEL

        t = self._start()
        self.stop.set()
        t.join(timeout=1.0)
        self.assertEqual(self.out.get("result"), CANCELED_SENTINEL)
        self.assertFalse(self._is_waiting())

    def test_malformed_status_is_a_noop_tick(self) -> None:
        t = self._start()
        self.mb.status_path.write_text("{garbage", encoding="utf-8")
        time.sleep(0.05)
        self.assertTrue(t.is_alive())
        self.mb.write_input("still works")
        t.join(timeout=2.0)
        self.assertEqual(self.out.get("result"), "still works")

    def test_missing_status_is_republished(self) -> None:
        t = self._start("long task", "ok?")
        self.mb.reset()
        self.assertTrue(_wait_until(self._is_waiting), "waiting state was not republished")
        rec = self.mb.read_status()
        assert rec is not None
        self.assertEqual(rec.context, "long task")
        self.mb.write_input("go")
        t.join(timeout=2.0)
        self.assertEqual(self.out.get("result"), "go")

    def test_heartbeat_is_logged(self) -> None:
        with self.assertLogs("turn_mcp.bridge", level="INFO") as cm:
            t = self._start()
            time.sleep(0.1)
            self.mb.write_input("done")
            t.join(timeout=2.0)
        self.assertTrue(any("still waiting" in line for line in cm.output))

    def test_empty_context_is_rejected(self) -> None:
        from turn_mcp.bridge import pause_and_wait

        with self.assertRaises(ValueError):
            pause_and_wait(self.mb, "   ", poll_interval=0.01)
        self.assertIsNone(self.mb.read_status())

    def test_status_write_failure_propagates(self) -> None:
        from turn_mcp.bridge import pause_and_wait
        from turn_mcp.kernel.mailbox import Mailbox

        with patch.object(Mailbox, "write_status", side_effect=OSError("read-only")):
            with self.assertRaises(OSError):
                pause_and_wait(self.mb, "ctx", poll_interval=0.01)


if __name__ == "__main__":
    unittest.main()
