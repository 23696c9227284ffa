from __future__ import annotations

import threading
import time
from datetime import datetime, timezone
from typing import Optional

_lock = threading.Lock()
_last_ms = 0


def now_ms() -> int:
    """Wall-clock milliseconds, strictly increasing within this process."""
    global _last_ms
    with _lock:
        ms = int(time.time() * 1000)
        if ms <= _last_ms:
            ms = _last_ms + 1
        _last_ms = ms
        return ms


def ms_to_iso(ms: int) -> Optional[str]:
    try:
        dt = datetime.fromtimestamp(int(ms) / 1000.0, tz=timezone.utc)
    except (OverflowError, OSError, TypeError, ValueError):
        return None
    return dt.isoformat().replace("+00:00", "Z")
