from __future__ import annotations

import enum


class LatchState(str, enum.Enum):
    IDLE = "idle"
    SENDING = "sending"


class SendLatch:
    """Guards "at most one input write per wait cycle".

    idle --acquire--> sending
    sending --wait_ended / write_failed / reset--> idle

    `acquire` on a sending latch is refused; nothing else moves it.
    """

    def __init__(self) -> None:
        self._state = LatchState.IDLE

    @property
    def state(self) -> LatchState:
        return self._state

    @property
    def is_sending(self) -> bool:
        return self._state is LatchState.SENDING

    def acquire(self) -> bool:
        if self._state is LatchState.SENDING:
            return False
        self._state = LatchState.SENDING
        return True

    def wait_ended(self) -> None:
        self._state = LatchState.IDLE

    def write_failed(self) -> None:
        self._state = LatchState.IDLE

    def reset(self) -> None:
        self._state = LatchState.IDLE

    def __repr__(self) -> str:
        return f"SendLatch({self._state.value})"
