"""
ComplyWatch TTL Lookups

Reference data (threat categories, compliance profiles) that is read from the
database and reloaded when it goes stale.
"""

import logging
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Generic, Optional, TypeVar

from complywatch.database import is_missing_schema_error
from complywatch.utils.helpers import utc_now

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TTLLookup(Generic[T]):
    """
    Cached async loader with an explicit refresh.

    The loader's result is kept for ttl_seconds. A failed load keeps the last
    good value (or the default on first load); a missing table is logged as a
    warning rather than an error.
    """

    def __init__(
        self,
        name: str,
        loader: Callable[[], Awaitable[Optional[T]]],
        default: Callable[[], T],
        ttl_seconds: float,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.name = name
        self._loader = loader
        self._default = default
        self._ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock
        self._value: Optional[T] = None
        self.last_updated: Optional[datetime] = None

    def is_stale(self) -> bool:
        if self._value is None or self.last_updated is None:
            return True
        return self._clock() - self.last_updated >= self._ttl

    async def get(self) -> T:
        """Current value, reloading first when stale."""
        if self.is_stale():
            await self.refresh()
        return self._value if self._value is not None else self._default()

    async def refresh(self) -> T:
        """Reload from the loader now."""
        try:
            loaded = await self._loader()
            self._value = loaded if loaded else self._default()
            logger.debug(f"Loaded {self.name}")
        except Exception as e:
            if is_missing_schema_error(e):
                logger.warning(f"{self.name} tables not provisioned, using defaults")
            else:
                logger.error(f"Failed to load {self.name}: {e}")
            if self._value is None:
                self._value = self._default()
        self.last_updated = self._clock()
        return self._value

    def invalidate(self) -> None:
        self.last_updated = None
