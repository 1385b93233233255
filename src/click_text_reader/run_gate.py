"""Single-flight guard for pipeline runs.

A click that arrives while a run is in progress is dropped, not queued.
Dropping is a normal outcome: ``try_acquire`` simply returns False.
"""

from __future__ import annotations

import enum
import threading


class RunState(enum.Enum):
    IDLE = "idle"
    RUNNING = "running"


class RunGate:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._state = RunState.IDLE

    @property
    def state(self) -> RunState:
        with self._lock:
            return self._state

    @property
    def busy(self) -> bool:
        return self.state is RunState.RUNNING

    def try_acquire(self) -> bool:
        """IDLE -> RUNNING. Returns False (and changes nothing) if already running."""
        with self._lock:
            if self._state is RunState.RUNNING:
                return False
            self._state = RunState.RUNNING
            return True

    def release(self) -> None:
        """RUNNING -> IDLE."""
        with self._lock:
            self._state = RunState.IDLE
