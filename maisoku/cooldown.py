"""
Cooldown gate for the convert action.

After a quota/rate-limit failure the convert action is locked for a fixed
number of seconds. One ticker thread owns the countdown and decrements it
once per second; the session reads it before every convert.
"""

import logging
import threading
import time
from typing import Optional

logger = logging.getLogger(__name__)


class CooldownGate:
    """
    Integer-second countdown.

    Args:
        duration: Seconds the gate stays closed after trigger()
        auto_tick: Start a background thread that calls tick() every second.
                   Tests pass False and tick manually.
        tick_interval: Seconds between automatic ticks
    """

    def __init__(self, duration: int = 120, auto_tick: bool = True, tick_interval: float = 1.0):
        if duration < 0:
            raise ValueError(f"Cooldown duration must be >= 0, got {duration}")
        self.duration = int(duration)
        self.auto_tick = auto_tick
        self.tick_interval = tick_interval

        self._remaining = 0
        self._lock = threading.Lock()
        self._ticker: Optional[threading.Thread] = None

    @property
    def remaining(self) -> int:
        with self._lock:
            return self._remaining

    @property
    def is_active(self) -> bool:
        return self.remaining > 0

    def trigger(self) -> None:
        """Close the gate for the full duration (restarts a running countdown)."""
        with self._lock:
            self._remaining = self.duration
            if self.auto_tick and self.duration > 0 and self._ticker is None:
                self._ticker = threading.Thread(
                    target=self._run,
                    name="maisoku-cooldown",
                    daemon=True
                )
                self._ticker.start()
        logger.warning(f"Cooldown started: convert disabled for {self.duration}s")

    def tick(self) -> int:
        """
        Decrement the countdown by one second.

        Returns:
            Seconds remaining after the tick
        """
        with self._lock:
            return self._decrement()

    def reset(self) -> None:
        """Open the gate immediately; a running ticker exits on its next tick."""
        with self._lock:
            self._remaining = 0

    def _decrement(self) -> int:
        # Caller holds self._lock
        if self._remaining > 0:
            self._remaining -= 1
            if self._remaining == 0:
                logger.info("Cooldown finished: convert re-enabled")
        return self._remaining

    def _run(self) -> None:
        while True:
            time.sleep(self.tick_interval)
            with self._lock:
                if self._decrement() == 0:
                    self._ticker = None
                    return

    def __repr__(self) -> str:
        return f"CooldownGate(duration={self.duration}, remaining={self.remaining})"
