"""
Ban cooldown tracker.

WotLKDB bans aggressive clients. After a throttling signal we stop
dispatching until `banned_until`; the state decays on its own with time.
"""
import logging
import time
from datetime import datetime, timezone
from typing import Callable, Optional

from armory.core.exceptions import CooldownActiveError

logger = logging.getLogger(__name__)


class CooldownTracker:

    def __init__(self, penalty_seconds: float = 60.0, clock: Callable[[], float] = time.time):
        self.penalty_seconds = penalty_seconds
        self._clock = clock
        self.banned_until: float = 0.0

    @property
    def is_active(self) -> bool:
        return self._clock() < self.banned_until

    @property
    def remaining(self) -> float:
        return max(0.0, self.banned_until - self._clock())

    def active_until(self) -> Optional[datetime]:
        if not self.is_active:
            return None
        return datetime.fromtimestamp(self.banned_until, tz=timezone.utc)

    def trigger(self, penalty_seconds: Optional[float] = None) -> None:
        """Start (or extend) the cooldown. Never shortens an active one."""
        penalty = self.penalty_seconds if penalty_seconds is None else penalty_seconds
        self.banned_until = max(self.banned_until, self._clock() + penalty)
        logger.warning(f"[COOLDOWN] WotLKDB throttled us, pausing dispatch for {penalty:.0f}s")

    def check(self, enchantment_id: Optional[int] = None) -> None:
        """Raise CooldownActiveError while the ban window is open."""
        remaining = self.remaining
        if remaining > 0:
            raise CooldownActiveError(
                f"WotLKDB temporarily banned. Retry in {remaining:.0f}s",
                remaining=remaining,
                enchantment_id=enchantment_id,
            )

    def reset(self) -> None:
        self.banned_until = 0.0
