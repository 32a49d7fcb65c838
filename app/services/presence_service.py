import logging
import uuid
from abc import ABC, abstractmethod
from typing import Optional, Union

import redis.asyncio as aioredis

from app.configs.settings import settings

logger = logging.getLogger(__name__)

LIVE_USERS_KEY = "live_users"


class LiveUserCounter(ABC):
    """Đếm số người dùng đang online. Các backend cụ thể kế thừa lớp này."""

    @abstractmethod
    async def increment(self, user_id: Union[str, uuid.UUID]) -> None:
        """Đánh dấu user đang online."""
        pass

    @abstractmethod
    async def decrement(self, user_id: Union[str, uuid.UUID]) -> None:
        """Bỏ user khỏi danh sách online."""
        pass

    @abstractmethod
    async def count(self) -> int:
        """Số user đang online."""
        pass


class NoOpLiveUserCounter(LiveUserCounter):
    """Dùng khi tắt theo dõi online; count luôn bằng 0."""

    async def increment(self, user_id):
        return None

    async def decrement(self, user_id):
        return None

    async def count(self) -> int:
        return 0


class RedisLiveUserCounter(LiveUserCounter):
    """Lưu tập user online trong một Redis set."""

    def __init__(self, client: aioredis.Redis, key: str = LIVE_USERS_KEY):
        self.client = client
        self.key = key

    async def increment(self, user_id):
        await self.client.sadd(self.key, str(user_id))

    async def decrement(self, user_id):
        await self.client.srem(self.key, str(user_id))

    async def count(self) -> int:
        return int(await self.client.scard(self.key))


_counter: Optional[LiveUserCounter] = None


def get_live_user_counter() -> LiveUserCounter:
    """Dependency trả về counter theo PRESENCE_BACKEND."""
    global _counter
    if _counter is None:
        if settings.PRESENCE_BACKEND == "redis":
            _counter = RedisLiveUserCounter(aioredis.from_url(settings.REDIS_URL, decode_responses=True))
            logger.info("Presence tracking backed by Redis")
        else:
            _counter = NoOpLiveUserCounter()
    return _counter


async def safe_presence_call(coro) -> None:
    """Lỗi Redis không được làm hỏng luồng đăng nhập / đăng xuất."""
    try:
        await coro
    except aioredis.RedisError as e:
        logger.warning(f"Presence counter unavailable: {e}")
