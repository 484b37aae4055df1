"""
In-flight request registry.

Deduplicates concurrent lookups: N callers asking for the same cold key
share one future and cause one fetch.
"""
import asyncio
import logging
from typing import Dict, Optional, Tuple

logger = logging.getLogger(__name__)


class InFlightRegistry:

    def __init__(self):
        self._pending: Dict[int, asyncio.Future] = {}

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, key: int) -> bool:
        return key in self._pending

    def get(self, key: int) -> Optional[asyncio.Future]:
        return self._pending.get(key)

    def try_register(self, key: int) -> Tuple[asyncio.Future, bool]:
        """
        Return (future, is_new). Check and insert happen without yielding to
        the event loop, so two coroutines can never both see is_new=True.
        """
        existing = self._pending.get(key)
        if existing is not None:
            logger.debug(f"[INFLIGHT] Request already in progress for {key}")
            return existing, False

        future = asyncio.get_running_loop().create_future()
        self._pending[key] = future
        return future, True

    def release(self, key: int) -> None:
        """Forget the key once its outcome is final so a later miss starts fresh."""
        self._pending.pop(key, None)

    def keys(self):
        return list(self._pending)
