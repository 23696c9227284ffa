from __future__ import annotations

from typing import List, Optional


class MessageQueue:
    """Ordered pending user turns, owned by the controller.

    Index-based edits come from a human-facing UI that may be stale, so
    out-of-range indices are ignored and reported as False.
    """

    def __init__(self) -> None:
        self._items: List[str] = []

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    def snapshot(self) -> List[str]:
        return list(self._items)

    def append(self, text: str) -> None:
        self._items.append(text)

    def pop_head(self) -> Optional[str]:
        if not self._items:
            return None
        return self._items.pop(0)

    def push_head(self, text: str) -> None:
        self._items.insert(0, text)

    def _in_range(self, index: int) -> bool:
        return isinstance(index, int) and not isinstance(index, bool) and 0 <= index < len(self._items)

    def remove(self, index: int) -> bool:
        if not self._in_range(index):
            return False
        del self._items[index]
        return True

    def move(self, from_index: int, to_index: int) -> bool:
        if not (self._in_range(from_index) and self._in_range(to_index)):
            return False
        item = self._items.pop(from_index)
        self._items.insert(to_index, item)
        return True

    def clear(self) -> int:
        n = len(self._items)
        self._items = []
        return n
