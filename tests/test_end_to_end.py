import tempfile
import threading
import time
import unittest
from pathlib import Path
from typing import Any, Callable, Dict, List


def _wait_until(pred: Callable[[], bool], timeout: float = 3.0) -> bool:
    deadline = time.time() + timeout
    while time.time() < deadline:
        if pred():
            return True
        time.sleep(0.005)
    return pred()


class TestHandshake(unittest.TestCase):
    def setUp(self) -> None:
        from turn_mcp.controller import Controller
        from turn_mcp.kernel.mailbox import Mailbox

        self._td = tempfile.TemporaryDirectory()
        self.addCleanup(self._td.cleanup)
        self.mb = Mailbox(Path(self._td.name) / "turn-mcp")
        self.ctl = Controller(self.mb, poll_interval=0.01)
        self.ctl.start()
        self.addCleanup(self.ctl.stop)
        self.stop = threading.Event()
        self.addCleanup(self.stop.set)

    def _agent_turn(self, context: str, out: List[str]) -> threading.Thread:
        from turn_mcp.bridge import pause_and_wait

        def _run() -> None:
            out.append(pause_and_wait(self.mb, context, poll_interval=0.01, stop_event=self.stop))

        t = threading.Thread(target=_run, daemon=True)
        t.start()
        return t

    def test_direct_reply_round_trip(self) -> None:
        replies: List[str] = []
        t = self._agent_turn("wrote file X", replies)

        self.assertTrue(_wait_until(lambda: self.ctl.get_status().waiting))
        self.assertEqual(self.ctl.get_status().context, "wrote file X")

        self.assertTrue(self.ctl.submit_input("continue with Y"))
        t.join(timeout=2.0)
        self.assertEqual(replies, ["continue with Y"])

        self.assertTrue(_wait_until(lambda: not self.ctl.get_status().waiting))
        self.assertFalse(self.ctl.is_sending)
        self.assertFalse(self.mb.has_input())

    def test_queued_messages_drain_one_per_wait(self) -> None:
        self.ctl.add_to_queue("msg1")
        self.ctl.add_to_queue("msg2")

        replies: List[str] = []
        t = self._agent_turn("turn 1", replies)
        t.join(timeout=2.0)
        self.assertEqual(replies, ["msg1"])
        self.assertEqual(self.ctl.get_queue(), ["msg2"])

        t = self._agent_turn("turn 2", replies)
        t.join(timeout=2.0)
        self.assertEqual(replies, ["msg1", "msg2"])
        self.assertEqual(self.ctl.get_queue(), [])

    def test_back_to_back_turns_with_same_context(self) -> None:
        self.ctl.add_to_queue("a")
        replies: List[str] = []
        self._agent_turn("same", replies).join(timeout=2.0)
        self.assertTrue(_wait_until(lambda: not self.ctl.is_sending))

        self.ctl.add_to_queue("b")
        self._agent_turn("same", replies).join(timeout=2.0)
        self.assertEqual(replies, ["a", "b"])

    def test_cancel_unblocks_agent(self) -> None:
        from turn_mcp.contracts.v1 import CANCELED_SENTINEL

        replies: List[str] = []
        t = self._agent_turn("stuck", replies)
        self.assertTrue(_wait_until(lambda: self.ctl.get_status().waiting))

        self.assertTrue(self.ctl.clear_waiting())
        t.join(timeout=1.0)
        self.assertEqual(replies, [CANCELED_SENTINEL])
        self.assertFalse(self.ctl.get_status().waiting)

        # The next wait is served normally.
        self.ctl.add_to_queue("after cancel")
        self._agent_turn("next", replies).join(timeout=2.0)
        self.assertEqual(replies, [CANCELED_SENTINEL, "after cancel"])

    def test_controller_restart_during_wait(self) -> None:
        replies: List[str] = []
        t = self._agent_turn("long task", replies)
        self.assertTrue(_wait_until(lambda: self.ctl.get_status().waiting))

        self.ctl.stop()
        self.ctl.start()
        self.assertTrue(_wait_until(lambda: self.ctl.get_status().waiting))
        self.ctl.submit_input("resume")
        t.join(timeout=2.0)
        self.assertEqual(replies, ["resume"])

    def test_listener_sees_edges(self) -> None:
        from turn_mcp.controller import ControllerListener

        events: List[Any] = []

        class _L(ControllerListener):
            def on_waiting(self, context, question):
                events.append(("waiting", context, question))

        self.ctl.add_listener(_L())
        replies: List[str] = []
        t = self._agent_turn("ping", replies)
        self.assertTrue(_wait_until(lambda: bool(events)))
        self.ctl.submit_input("pong")
        t.join(timeout=2.0)
        self.assertEqual(events, [("waiting", "ping", None)])


if __name__ == "__main__":
    unittest.main()
