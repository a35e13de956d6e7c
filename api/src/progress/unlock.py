"""Sales-video unlock gate.

The landing page video reveals the offer once the visitor has really
watched ``unlock_threshold`` of it. The unlocked flag is an explicit field
of the gate, persisted through an injected ``FlagStore`` keyed per visitor,
so returning visitors see the offer immediately.
"""

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Protocol

import structlog

from src.core.redis import unlock_flag_key

from .curve import clamp_fraction, display_progress


if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = structlog.get_logger(__name__)

DEFAULT_UNLOCK_THRESHOLD = 0.5


class FlagStore(Protocol):
    """Boolean flags persisted by key."""

    async def get_flag(self, key: str) -> bool: ...

    async def set_flag(self, key: str) -> None: ...


class RedisFlagStore:
    """Flags stored as ``"true"`` string values in Redis."""

    def __init__(self, redis: "Redis", ttl_seconds: int | None = None):
        self.redis = redis
        self.ttl_seconds = ttl_seconds

    async def get_flag(self, key: str) -> bool:
        return await self.redis.get(key) == "true"

    async def set_flag(self, key: str) -> None:
        await self.redis.set(key, "true", ex=self.ttl_seconds)


class UnlockGate:
    """One-shot unlock of the sales offer for a single visitor.

    Args:
        visitor_id: Anonymous visitor identifier (cookie/device id).
        flags: Flag storage backend.
        threshold: Real fraction that unlocks the offer.
        on_unlock: Called once, the first time the threshold is reached.
    """

    def __init__(
        self,
        visitor_id: str,
        flags: FlagStore,
        threshold: float = DEFAULT_UNLOCK_THRESHOLD,
        on_unlock: Callable[[], Awaitable[None]] | None = None,
    ):
        self.visitor_id = visitor_id
        self.flags = flags
        self.threshold = threshold
        self.on_unlock = on_unlock
        self.has_unlocked = False
        self.real_progress = 0.0

    @property
    def key(self) -> str:
        return unlock_flag_key(self.visitor_id)

    @property
    def display_progress(self) -> float:
        return display_progress(self.real_progress)

    async def load(self) -> bool:
        """Restore a previously stored unlock (read failures keep it locked)."""
        try:
            if await self.flags.get_flag(self.key):
                self.has_unlocked = True
        except Exception as e:
            logger.warning(
                "unlock_flag_load_failed", visitor_id=self.visitor_id, error=str(e)
            )
        return self.has_unlocked

    async def observe(self, real_fraction: float) -> bool:
        """Record playback progress; returns True when this call unlocked."""
        self.real_progress = clamp_fraction(real_fraction)
        if self.has_unlocked or self.real_progress < self.threshold:
            return False

        self.has_unlocked = True
        try:
            await self.flags.set_flag(self.key)
        except Exception as e:
            logger.warning(
                "unlock_flag_save_failed", visitor_id=self.visitor_id, error=str(e)
            )

        logger.info("sales_video_unlocked", visitor_id=self.visitor_id)
        if self.on_unlock is not None:
            await self.on_unlock()
        return True
