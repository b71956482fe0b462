import json
import logging
from typing import Any, Dict, List, Protocol

from .redis import RedisCrudService

logger = logging.getLogger(__name__)

MESSAGES_KEY_PREFIX = "messages:"


class MessageStore(Protocol):
    async def append(self, room_id: str, record: Dict[str, Any]) -> bool: ...

    async def recent(self, room_id: str, limit: int = 20) -> List[Dict[str, Any]]: ...


class RedisMessageStore:
    """Appends message records to a per-room Redis list."""

    def __init__(self, redis_crud: RedisCrudService, ttl_seconds: int | None = None) -> None:
        self._redis = redis_crud
        self._ttl = ttl_seconds

    def _key(self, room_id: str) -> str:
        return f"{MESSAGES_KEY_PREFIX}{room_id}"

    async def append(self, room_id: str, record: Dict[str, Any]) -> bool:
        try:
            payload = json.dumps(record)
        except (TypeError, ValueError) as e:
            logger.warning("Message serialization failed for %s: %s", room_id, e)
            return False
        return await self._redis.rpush(self._key(room_id), payload, ttl_seconds=self._ttl)

    async def recent(self, room_id: str, limit: int = 20) -> List[Dict[str, Any]]:
        """Return up to ``limit`` most recent records, oldest first."""
        records = []
        for raw in await self._redis.lrange(self._key(room_id), -limit, -1):
            try:
                records.append(json.loads(raw))
            except json.JSONDecodeError as e:
                logger.warning("Skipping unreadable message in %s: %s", room_id, e)
        return records


class InMemoryMessageStore:
    def __init__(self) -> None:
        self._messages: Dict[str, List[Dict[str, Any]]] = {}

    async def append(self, room_id: str, record: Dict[str, Any]) -> bool:
        self._messages.setdefault(room_id, []).append(dict(record))
        return True

    async def recent(self, room_id: str, limit: int = 20) -> List[Dict[str, Any]]:
        return [dict(r) for r in self._messages.get(room_id, [])[-limit:]]
