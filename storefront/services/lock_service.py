# storefront/services/lock_service.py
import uuid
from contextlib import contextmanager
from typing import Iterable

import redis

from storefront.domain.errors import ConcurrencyConflictError
from storefront.utils.retry import redis_retry
from storefront.utils.settings import REDIS_URL, CART_LOCK_TTL_SECONDS
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

#LUA compare-and-delete, runs atomically inside redis
_RELEASE_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
else
    return 0
end
"""

#only the holder of the token can release the lock;
#a lock left behind by a crashed request expires after the TTL


class LockService:
    """
    -per-cart advisory lock (one writer per cart at a time)
    -release only by the owner token, atomically via lua
    """

    def __init__(self, url: str | None = None, ttl: int | None = None):
        self.redis = redis.Redis.from_url(
            url or REDIS_URL,
            decode_responses=True,
        )
        self.ttl = ttl or CART_LOCK_TTL_SECONDS

    @staticmethod
    def _key(cart_id: int) -> str:
        return f"cart:{cart_id}:lock"

    @redis_retry()
    def acquire_cart_lock(self, cart_id: int, token: str) -> bool:
        key = self._key(cart_id)
        logger.debug(f"Acquire lock {key}")
        #SET cart:1:lock "<token>" NX EX 30
        return bool(
            self.redis.set(
                name=key,
                value=token,
                nx=True,
                ex=self.ttl,
            )
        )

    @redis_retry()
    def release_cart_lock(self, cart_id: int, token: str) -> bool:
        key = self._key(cart_id)
        logger.debug(f"Release lock {key}")
        res = self.redis.eval(_RELEASE_LUA, 1, key, token)
        return bool(res)

    @contextmanager
    def cart_lock(self, *cart_ids: int):
        """Hold the lock of every given cart for the duration of the block.

        Carts are locked in id order so two merges never wait on each other.
        """
        token = uuid.uuid4().hex
        held = []
        try:
            for cart_id in sorted(set(cart_ids)):
                if not self.acquire_cart_lock(cart_id, token):
                    raise ConcurrencyConflictError(
                        f"Cart {cart_id} is being modified by another request, try again"
                    )
                held.append(cart_id)
            yield
        finally:
            self._release_all(held, token)

    def _release_all(self, cart_ids: Iterable[int], token: str) -> None:
        for cart_id in cart_ids:
            try:
                self.release_cart_lock(cart_id, token)
            except redis.RedisError as e:
                #the TTL frees it anyway
                logger.warning(f"Failed to release lock for cart {cart_id}: {e}")
