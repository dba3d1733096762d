"""Per-chain-side stall detection."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class StallTracker:
    """
    Remembers the last height seen on one side of the chain (local or network)
    and when it last increased.

    ``last_increase_at`` may be pushed into the future by a forced time check;
    a future value is pulled back to "now" on the next observation.
    """

    max_allowed_stall_seconds: float
    height: int = 0
    last_increase_at: float = 0.0

    def push_deadline(self, timestamp: float) -> None:
        self.last_increase_at = timestamp

    def observe(self, height: int, now: float, *, can_increase: bool = True, clock_untrusted: bool = False) -> bool:
        """
        Record *height* and return whether this side is still syncing.

        Args:
            height: Height reported by the current poll
            now: Current time in seconds
            can_increase: False while the side has not started receiving blocks
            clock_untrusted: True when the system clock is judged incorrect and
                time checks are not ignored; the stall timer is then held at now
        """
        is_increasing = can_increase and height > self.height
        self.height = height

        if is_increasing or self.last_increase_at > now or clock_untrusted:
            self.last_increase_at = now

        age = now - self.last_increase_at
        is_stalling = age > self.max_allowed_stall_seconds
        return is_increasing or not is_stalling


__all__ = ["StallTracker"]
