import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Protocol

from ..models import DEFAULT_TOPIC, ScoreStats, SessionState, SlimMessage, empty_graph
from ..session_state import default_state
from .redis import RedisCrudService

logger = logging.getLogger(__name__)

SESSION_KEY_PREFIX = "session_state:"


def _session_to_dict(state: SessionState) -> Dict[str, Any]:
    """Serialize SessionState to a JSON-serializable dict."""
    return {
        "room_id": state.room_id,
        "topic": state.topic,
        "summary": state.summary,
        "graph": dict(state.graph),
        "scores": {
            "depth_avg": state.scores.depth_avg,
            "logic_issues": state.scores.logic_issues,
            "score_history": list(state.scores.score_history),
        },
        "participation": dict(state.participation),
        "message_count": state.message_count,
        "last_messages": [
            {
                "username": m.username,
                "content": m.content,
                "type": m.type,
                "timestamp": m.timestamp,
            }
            for m in state.last_messages
        ],
        "updated_at": datetime.now(timezone.utc).isoformat(),
    }


def _dict_to_session(data: Dict[str, Any], room_id: str) -> SessionState:
    """Build SessionState from a stored dict, filling defaults for missing fields."""
    scores = data.get("scores") or {}
    graph = empty_graph()
    graph.update({k: int(v) for k, v in (data.get("graph") or {}).items()})
    return SessionState(
        room_id=data.get("room_id") or room_id,
        topic=data.get("topic") or DEFAULT_TOPIC,
        summary=data.get("summary") or "",
        graph=graph,
        scores=ScoreStats(
            depth_avg=float(scores.get("depth_avg", 0)),
            logic_issues=int(scores.get("logic_issues", 0)),
            score_history=[float(s) for s in scores.get("score_history", [])],
        ),
        participation={k: int(v) for k, v in (data.get("participation") or {}).items()},
        message_count=int(data.get("message_count", 0)),
        last_messages=[
            SlimMessage(
                username=m["username"],
                content=m["content"],
                type=m["type"],
                timestamp=m["timestamp"],
            )
            for m in data.get("last_messages", [])
        ],
    )


class SessionStore(Protocol):
    async def get(self, room_id: str) -> SessionState: ...

    async def save(self, state: SessionState) -> bool: ...


class RedisSessionStore:
    """Keeps one JSON document per room in Redis. Last writer wins."""

    def __init__(self, redis_crud: RedisCrudService, ttl_seconds: int | None = None) -> None:
        self._redis = redis_crud
        self._ttl = ttl_seconds

    def _key(self, room_id: str) -> str:
        return f"{SESSION_KEY_PREFIX}{room_id}"

    async def get(self, room_id: str) -> SessionState:
        """Load state for room_id. Missing or unreadable records yield the default state."""
        raw = await self._redis.get(self._key(room_id))
        if raw is None:
            return default_state(room_id)
        try:
            return _dict_to_session(json.loads(raw), room_id)
        except (json.JSONDecodeError, KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning("Invalid session state for %s: %s", room_id, e)
            return default_state(room_id)

    async def save(self, state: SessionState) -> bool:
        """Upsert the full state document. Returns True on success."""
        # TODO: guard the read-modify-write with WATCH/MULTI on the room key
        try:
            payload = json.dumps(_session_to_dict(state))
        except (TypeError, ValueError) as e:
            logger.warning("Session state serialization failed for %s: %s", state.room_id, e)
            return False
        return await self._redis.set(self._key(state.room_id), payload, ttl_seconds=self._ttl)


class InMemorySessionStore:
    """Process-local store used when no Redis URL is configured."""

    def __init__(self) -> None:
        self._records: Dict[str, Dict[str, Any]] = {}

    async def get(self, room_id: str) -> SessionState:
        data = self._records.get(room_id)
        if data is None:
            return default_state(room_id)
        return _dict_to_session(data, room_id)

    async def save(self, state: SessionState) -> bool:
        # Stored as plain dicts so later mutations of ``state`` cannot leak in
        self._records[state.room_id] = _session_to_dict(state)
        return True
