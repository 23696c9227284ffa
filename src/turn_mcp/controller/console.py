"""Interactive terminal front-end for the controller.

Plain lines are submitted as the next user turn (queued when the agent is
busy). Slash commands edit the queue; indices are 1-based for humans.
"""
from __future__ import annotations

from typing import Callable, List, Optional

from prompt_toolkit import PromptSession
from prompt_toolkit.history import InMemoryHistory
from prompt_toolkit.patch_stdout import patch_stdout

from .manager import Controller, ControllerListener, ControllerStatus

HELP_TEXT = """[HELP]
  <text>              -> reply to the agent (queued if it is busy)
  /add <text>         -> append to the queue without replying now
  /queue              -> show queued messages
  /rm <n>             -> remove queued message n
  /mv <from> <to>     -> move queued message
  /clear              -> drop all queued messages
  /cancel             -> abort the agent's current wait ([canceled])
  /status             -> show bridge state
  /quit               -> stop monitoring and exit"""


def _parse_index(raw: str) -> Optional[int]:
    try:
        n = int(raw)
    except ValueError:
        return None
    return n - 1


class ConsolePrinter(ControllerListener):
    def __init__(self, write: Callable[[str], None] = print) -> None:
        self._write = write

    def on_waiting(self, context: str, question: Optional[str]) -> None:
        self._write(f"\n[agent] {context}")
        if question:
            self._write(f"[agent asks] {question}")

    def on_log(self, message: str) -> None:
        self._write(f"[turn] {message}")


class ConsoleCommands:
    def __init__(self, controller: Controller, write: Callable[[str], None] = print) -> None:
        self.controller = controller
        self._write = write

    def _show_queue(self) -> None:
        items = self.controller.get_queue()
        if not items:
            self._write("[queue] empty")
            return
        for i, text in enumerate(items, start=1):
            self._write(f"[queue] {i}. {text}")

    def _show_status(self) -> None:
        st = self.controller.get_status()
        state = "waiting" if st.waiting else ("busy" if st.running else "stopped")
        self._write(f"[status] {state} (queued: {len(self.controller.get_queue())})")
        if st.waiting and st.context:
            self._write(f"[status] context: {st.context}")
        if self.controller.delivery_stalled:
            self._write("[status] delivery stalled: the agent took the last message but is still waiting; /cancel to reset")

    def handle(self, line: str) -> str:
        """Run one console line. Returns "break" to leave the loop, else "continue"."""
        text = (line or "").strip()
        if not text:
            return "continue"
        if not text.startswith("/"):
            if not self.controller.submit_input(text):
                self._write("[turn] delivery failed; message queued")
            return "continue"

        parts: List[str] = text.split(maxsplit=1)
        cmd = parts[0].lower()
        rest = parts[1] if len(parts) > 1 else ""

        if cmd in ("/quit", "/q", "/exit"):
            return "break"
        if cmd in ("/help", "/h"):
            self._write(HELP_TEXT)
        elif cmd == "/status":
            self._show_status()
        elif cmd == "/queue":
            self._show_queue()
        elif cmd == "/add":
            if rest.strip():
                self.controller.add_to_queue(rest)
            else:
                self._write("Usage: /add <text>")
        elif cmd == "/rm":
            idx = _parse_index(rest.strip())
            if idx is None or not self.controller.remove_from_queue(idx):
                self._write("Usage: /rm <n>  (see /queue)")
        elif cmd == "/mv":
            args = rest.split()
            src = _parse_index(args[0]) if len(args) == 2 else None
            dst = _parse_index(args[1]) if len(args) == 2 else None
            if src is None or dst is None or not self.controller.reorder_queue(src, dst):
                self._write("Usage: /mv <from> <to>  (see /queue)")
        elif cmd == "/clear":
            self.controller.clear_queue()
        elif cmd == "/cancel":
            self.controller.clear_waiting()
        else:
            self._write(f"Unknown command: {cmd} (try /help)")
        return "continue"


def _prompt_for(status: ControllerStatus) -> str:
    return "reply> " if status.waiting else "queue> "


def run_console(controller: Controller) -> int:
    """Start monitoring and read commands until /quit or EOF."""
    printer = ConsolePrinter()
    commands = ConsoleCommands(controller)
    # refresh_interval keeps the prompt label in sync with the poller.
    session: PromptSession[str] = PromptSession(history=InMemoryHistory(), refresh_interval=controller.poll_interval)

    controller.add_listener(printer)
    controller.start()
    print("turn-mcp console. Type /help for commands.")
    try:
        with patch_stdout():
            while True:
                try:
                    line = session.prompt(lambda: _prompt_for(controller.get_status()))
                except KeyboardInterrupt:
                    continue
                except EOFError:
                    break
                if commands.handle(line) == "break":
                    break
    finally:
        controller.stop()
        controller.remove_listener(printer)
    return 0
