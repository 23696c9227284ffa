"""Stand-in agent for trying the console without an editor.

Run `turn-mcp console` in one terminal and this script in another. Each reply
typed in the console comes back here as the next "instruction"; the script
echoes it and waits again. Type `stop` to end it.
"""
import os
import sys
import time

from turn_mcp.bridge import pause_and_wait
from turn_mcp.contracts.v1 import CANCELED_SENTINEL
from turn_mcp.kernel.mailbox import Mailbox
from turn_mcp.kernel.settings import load_settings

WORK_SECONDS = float(os.environ.get("FAKE_AGENT_WORK_SECONDS", "2"))


def main() -> int:
    settings = load_settings()
    mailbox = Mailbox(settings.mailbox_dir)
    print(f"[agent] mailbox: {mailbox.root}", file=sys.stderr, flush=True)

    context = "fake agent started"
    turn = 0
    while True:
        reply = pause_and_wait(
            mailbox,
            context,
            "what next?",
            poll_interval=settings.poll_interval_seconds,
            heartbeat_every=settings.heartbeat_every_ticks,
        )
        turn += 1
        if reply == CANCELED_SENTINEL:
            print("[agent] wait canceled by the user", file=sys.stderr, flush=True)
            context = f"turn {turn}: previous wait was canceled"
            continue
        if reply.strip().lower() == "stop":
            print("[agent] bye", file=sys.stderr, flush=True)
            return 0
        print(f"[agent] working on: {reply}", file=sys.stderr, flush=True)
        time.sleep(WORK_SECONDS)
        context = f"turn {turn}: echoed {reply!r}"


if __name__ == "__main__":
    raise SystemExit(main())
