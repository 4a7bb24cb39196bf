import time
from typing import Protocol


class Clock(Protocol):
    """
    Source of wall-clock time and blocking sleeps.

    Injected into every component that waits or reads the time, so tests can
    simulate elapsed time without real delays.
    """

    def time(self) -> float:
        """Seconds since the Unix epoch."""
        ...

    def sleep(self, seconds: float) -> None:
        """Block for the given number of seconds."""
        ...


class SystemClock:
    """Clock backed by the `time` module."""

    def time(self) -> float:
        return time.time()

    def sleep(self, seconds: float) -> None:
        time.sleep(seconds)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"
