"""
Per-member serialization of entry creation and overwrite.

Within one process an asyncio.Lock per member is enough. Deployments with
several workers pass a Redis client and get a distributed lock instead.
"""

import asyncio
import logging
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import Dict, Optional

logger = logging.getLogger(__name__)

LOCK_TIMEOUT_SECONDS = 30


class SubmissionLocks:
    """Hands out a lock per member id."""

    def __init__(self, redis_client=None):
        self.redis_client = redis_client
        self._locks: Dict[int, asyncio.Lock] = defaultdict(asyncio.Lock)

    @asynccontextmanager
    async def hold(self, member_id: int):
        """Serialize writes for one member"""
        if self.redis_client is not None:
            logger.debug(f"Acquiring distributed submission lock for member {member_id}")
            lock = self.redis_client.lock(
                f"fitleague:submission_lock:{member_id}",
                timeout=LOCK_TIMEOUT_SECONDS,
                blocking_timeout=LOCK_TIMEOUT_SECONDS,
            )
            async with lock:
                yield
            return

        async with self._locks[member_id]:
            yield

    def is_locked(self, member_id: int) -> bool:
        lock: Optional[asyncio.Lock] = self._locks.get(member_id)
        return bool(lock and lock.locked())
