"""Pure transitions over SessionState: ingest, summarization trigger, summary text.

Only the store adapters in ``services`` perform I/O; everything here takes a
state value and returns a new one.
"""

from typing import List

from .models import (
    AI_USERNAME,
    DEFAULT_TOPIC,
    GRAPH_KEYS,
    MAX_LAST_MESSAGES,
    MAX_SCORE_HISTORY,
    ScoreStats,
    SessionState,
    SlimMessage,
)
from .scoring import round_half_up

SUMMARY_INTERVAL = 8
TOPIC_WORDS = 7


def default_state(room_id: str) -> SessionState:
    return SessionState(room_id=room_id)


def _topic_from(content: str) -> str:
    words = " ".join(content.split()[:TOPIC_WORDS])
    return words if words.endswith("?") else words + "…"


def ingest_message(
    state: SessionState,
    message: SlimMessage,
    reasoning_score: float,
    logic_issue: bool = False,
) -> SessionState:
    """Return a new state with ``message`` folded in. ``state`` is left untouched."""
    graph = dict(state.graph)
    graph_key = GRAPH_KEYS.get(message.type)
    if graph_key is not None:
        graph[graph_key] = graph.get(graph_key, 0) + 1

    participation = dict(state.participation)
    if message.username != AI_USERNAME:
        participation[message.username] = participation.get(message.username, 0) + 1

    last_messages = [*state.last_messages, message][-MAX_LAST_MESSAGES:]

    history = [*state.scores.score_history, reasoning_score][-MAX_SCORE_HISTORY:]
    scores = ScoreStats(
        depth_avg=round_half_up(sum(history) / len(history)),
        logic_issues=state.scores.logic_issues + (1 if logic_issue else 0),
        score_history=history,
    )

    topic = state.topic
    if topic == DEFAULT_TOPIC and message.type in ("claim", "question"):
        topic = _topic_from(message.content)

    return SessionState(
        room_id=state.room_id,
        topic=topic,
        summary=state.summary,
        graph=graph,
        scores=scores,
        participation=participation,
        message_count=state.message_count + 1,
        last_messages=last_messages,
    )


def should_summarize(state: SessionState) -> bool:
    return state.message_count > 0 and state.message_count % SUMMARY_INTERVAL == 0


def _format_number(value: float) -> str:
    return f"{value:g}"


def build_backend_summary(state: SessionState) -> str:
    """Template a short factual digest of the room. No model involved."""
    graph = state.graph
    parts: List[str] = [f'Topic: "{state.topic}".']

    if graph.get("claims", 0) > 0:
        parts.append(f"{graph['claims']} claim(s) made.")
    if graph.get("evidence", 0) > 0:
        parts.append(f"{graph['evidence']} evidence point(s) provided.")
    if graph.get("counterarguments", 0) > 0:
        parts.append(f"{graph['counterarguments']} counterargument(s) raised.")
    if graph.get("questions", 0) > 0:
        parts.append(f"{graph['questions']} open question(s) outstanding.")
    if graph.get("synthesis", 0) > 0:
        parts.append(f"{graph['synthesis']} synthesis node(s) connecting ideas.")

    if state.participation:
        # sorted() is stable, so ties go to the earliest participant
        top = sorted(state.participation, key=lambda name: -state.participation[name])[0]
        parts.append(f"Most active: {top} ({state.participation[top]} msgs).")

    parts.append(f"Avg reasoning depth: {_format_number(state.scores.depth_avg)}/10.")
    parts.append(f"Total messages: {state.message_count}.")
    return " ".join(parts)


def with_summary(state: SessionState) -> SessionState:
    """Return a copy of ``state`` whose summary is rebuilt from its counters."""
    return SessionState(
        room_id=state.room_id,
        topic=state.topic,
        summary=build_backend_summary(state),
        graph=dict(state.graph),
        scores=ScoreStats(
            depth_avg=state.scores.depth_avg,
            logic_issues=state.scores.logic_issues,
            score_history=list(state.scores.score_history),
        ),
        participation=dict(state.participation),
        message_count=state.message_count,
        last_messages=list(state.last_messages),
    )
