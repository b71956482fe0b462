import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Union

from ..analytics import SessionAnalytics, build_session_analytics
from ..context_packet import build_context_packet, render_to_prompt
from ..errors import PersistenceError
from ..models import AI_COLUMN_TYPE, AI_USERNAME, ModeratorResponse, SessionState, SlimMessage
from ..preprocessor import is_low_quality, preprocess
from ..prompts import ModerationTask
from ..scoring import (
    SessionMetrics,
    compute_reasoning_score,
    compute_session_metrics,
    is_duplicate,
    is_novel,
)
from ..services.message_store import MessageStore
from ..services.model_client import ModelClient, request_moderation
from ..services.session_store import SessionStore
from ..session_state import ingest_message, should_summarize, with_summary
from ..vocabulary import DEFAULT_VOCABULARY, Vocabulary

logger = logging.getLogger(__name__)

CONTRADICTION_LOOKBACK = 3
NOT_NOVEL_NOTE = " [Similar idea already raised]"


@dataclass
class ModerationRequest:
    content: str
    room_id: str
    username: str = "User"
    column_type: str = "claim"
    parent_id: str | None = None


@dataclass
class ModerationResult:
    type: str
    short_feedback: str
    guiding_question: str
    contradicts: bool
    reasoning_score: float
    novel: bool
    discussion_stage: str


@dataclass
class SkippedResult:
    reason: str
    skipped: bool = True


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def select_task(state: SessionState) -> ModerationTask:
    """Check for contradictions when a counterargument is among the last three messages."""
    recent = state.last_messages[-CONTRADICTION_LOOKBACK:]
    if any(m.type == "counterargument" for m in recent):
        return ModerationTask.DETECT_CONTRADICTION
    return ModerationTask.CLASSIFY_AND_FEEDBACK


def compose_ai_content(response: ModeratorResponse, novel: bool) -> str:
    """Render the moderator reply shown in the room."""
    parts = [
        response.short_feedback + ("" if novel else NOT_NOVEL_NOTE),
        f"👉 {response.guiding_question}",
    ]
    if response.contradicts:
        parts.append(f"⚠️ Contradiction: {response.contradiction_reason}")
    return "\n\n".join(p for p in parts if p)


class ModerationService:
    """Runs one moderation cycle per incoming message.

    Concurrent cycles for the same room are not serialized: each reads the
    stored state, folds in its own messages and writes the whole record back,
    so the last writer wins.
    """

    def __init__(
        self,
        session_store: SessionStore,
        message_store: MessageStore,
        model_client: ModelClient,
        vocabulary: Vocabulary = DEFAULT_VOCABULARY,
    ) -> None:
        self._sessions = session_store
        self._messages = message_store
        self._model = model_client
        self._vocabulary = vocabulary

    def _metrics(self, state: SessionState) -> SessionMetrics:
        return compute_session_metrics(
            state.graph, state.scores, state.participation, state.message_count
        )

    async def moderate(
        self, request: ModerationRequest
    ) -> Union[ModerationResult, SkippedResult]:
        """Moderate one message.

        Returns a SkippedResult for low-quality or duplicate input (nothing is
        stored, the model is not called). Raises PersistenceError if the AI
        reply cannot be stored; session state is then left as it was.
        """
        room_id = request.room_id
        cleaned = preprocess(request.content, self._vocabulary)

        if is_low_quality(cleaned):
            logger.info("Skipping low-quality message in room %s", room_id)
            return SkippedResult(reason="low_quality")

        state = await self._sessions.get(room_id)
        existing = [m.content for m in state.last_messages]
        duplicate = is_duplicate(cleaned, existing)
        novel = is_novel(cleaned, existing)
        logger.debug(
            "Room %s: provisional score %.1f as %s, novel=%s",
            room_id,
            compute_reasoning_score(cleaned, request.column_type, self._vocabulary),
            request.column_type,
            novel,
        )

        if duplicate:
            logger.info("Skipping duplicate message in room %s", room_id)
            return SkippedResult(reason="duplicate")

        metrics = self._metrics(state)
        task = select_task(state)
        packet = build_context_packet(state, metrics, cleaned, task)
        ai_result = await request_moderation(self._model, task, render_to_prompt(packet))

        # Score against the type the model settled on
        final_score = compute_reasoning_score(cleaned, ai_result.type, self._vocabulary)
        ai_content = compose_ai_content(ai_result, novel)

        record = self._ai_message_record(request, ai_content, ai_result.type)
        if not await self._messages.append(room_id, record):
            logger.error("Failed to store AI reply %s for room %s", record["id"], room_id)
            raise PersistenceError(f"Failed to save AI response for room {room_id}")

        updated = ingest_message(
            state,
            SlimMessage(
                username=request.username,
                content=cleaned,
                type=ai_result.type,
                timestamp=_now(),
            ),
            final_score,
            logic_issue=ai_result.contradicts,
        )
        updated = ingest_message(
            updated,
            SlimMessage(
                username=AI_USERNAME,
                content=ai_content,
                type=ai_result.type,
                timestamp=_now(),
            ),
            0,
        )
        if should_summarize(updated):
            updated = with_summary(updated)
            logger.info("Room %s summarized at %d messages", room_id, updated.message_count)

        if not await self._sessions.save(updated):
            logger.error(
                "AI reply %s stored but session state save failed for room %s; "
                "bookkeeping now lags the message log",
                record["id"],
                room_id,
            )

        return ModerationResult(
            type=ai_result.type,
            short_feedback=ai_result.short_feedback,
            guiding_question=ai_result.guiding_question,
            contradicts=ai_result.contradicts,
            reasoning_score=final_score,
            novel=novel,
            discussion_stage=metrics.discussion_stage,
        )

    def _ai_message_record(
        self, request: ModerationRequest, content: str, model_type: str
    ) -> Dict[str, Any]:
        return {
            "id": str(uuid.uuid4()),
            "room_id": request.room_id,
            "parent_id": request.parent_id,
            "username": AI_USERNAME,
            "content": content,
            # Always rendered as a question; the model's type only feeds the graph
            "column_type": AI_COLUMN_TYPE,
            "model_type": model_type,
            "created_at": _now(),
        }

    async def nudge(self, room_id: str) -> Union[ModeratorResponse, SkippedResult]:
        """Ask for one Socratic question about the latest human message. Read-only."""
        state = await self._sessions.get(room_id)
        latest = next(
            (m for m in reversed(state.last_messages) if m.username != AI_USERNAME), None
        )
        if latest is None:
            return SkippedResult(reason="empty_room")
        task = ModerationTask.GENERATE_QUESTION
        packet = build_context_packet(state, self._metrics(state), latest.content, task)
        return await request_moderation(self._model, task, render_to_prompt(packet))

    async def room_state(self, room_id: str) -> tuple[SessionState, SessionMetrics]:
        state = await self._sessions.get(room_id)
        return state, self._metrics(state)

    async def room_analytics(self, room_id: str) -> SessionAnalytics:
        return build_session_analytics(await self._sessions.get(room_id))

    async def room_messages(self, room_id: str, limit: int = 20) -> List[Dict[str, Any]]:
        return await self._messages.recent(room_id, limit)
