"""Thin context packet: the only view of a room the language model ever gets.

The packet carries a short summary, ten scalar metrics, at most five trimmed
recent messages and the new message. Full history never crosses this boundary.
"""

from dataclasses import dataclass
from typing import Dict, List, Union

from .models import AI_USERNAME, SessionState
from .prompts import ModerationTask
from .scoring import SessionMetrics

RECENT_MESSAGES = 5
RECENT_MESSAGE_WORDS = 30
SUMMARY_WORDS = 40
NEW_MESSAGE_WORDS = 80
ELLIPSIS = "…"

MetricValue = Union[int, float, str]


@dataclass
class RecentMessage:
    role: str
    text: str


@dataclass
class ContextPacket:
    task: ModerationTask
    session_summary: str
    metrics: Dict[str, MetricValue]
    recent_messages: List[RecentMessage]
    new_message: str


def trim_to_words(text: str, max_words: int) -> str:
    """Cut ``text`` to ``max_words`` whitespace-separated words plus an ellipsis."""
    words = text.split()
    if len(words) <= max_words:
        return text.strip()
    return " ".join(words[:max_words]) + ELLIPSIS


def compact_metrics(metrics: SessionMetrics) -> Dict[str, MetricValue]:
    return {
        "claims": metrics.num_claims,
        "evidence": metrics.num_evidence,
        "counters": metrics.num_counterarguments,
        "questions": metrics.num_questions,
        "synthesis": metrics.num_synthesis,
        "avg_score": metrics.avg_reasoning_score,
        "participation": metrics.participation_imbalance,
        "unresolved": metrics.unresolved_conflicts,
        "total_msgs": metrics.total_contributions,
        "stage": metrics.discussion_stage,
    }


def build_context_packet(
    state: SessionState,
    metrics: SessionMetrics,
    new_message: str,
    task: ModerationTask,
) -> ContextPacket:
    recent_messages = [
        RecentMessage(
            role="assistant" if m.username == AI_USERNAME else "user",
            text=trim_to_words(m.content, RECENT_MESSAGE_WORDS),
        )
        for m in state.last_messages[-RECENT_MESSAGES:]
    ]

    if state.summary:
        session_summary = trim_to_words(state.summary, SUMMARY_WORDS)
    else:
        session_summary = (
            f'Discussion: "{state.topic}". '
            f"{metrics.total_contributions} messages exchanged."
        )

    return ContextPacket(
        task=task,
        session_summary=session_summary,
        metrics=compact_metrics(metrics),
        recent_messages=recent_messages,
        new_message=trim_to_words(new_message, NEW_MESSAGE_WORDS),
    )


def _format_value(value: MetricValue) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def render_to_prompt(packet: ContextPacket) -> str:
    """Serialize the packet to the flat text sent to the model."""
    metrics_line = ", ".join(f"{k}={_format_value(v)}" for k, v in packet.metrics.items())
    lines = [
        f"CTX: {packet.session_summary}",
        f"METRICS: {metrics_line}",
    ]
    if packet.recent_messages:
        history = "\n".join(f"[{m.role}]: {m.text}" for m in packet.recent_messages)
        lines.append(f"HISTORY:\n{history}")
    lines.append(f"NEW: {packet.new_message}")
    lines.append(f"TASK: {packet.task.value}")
    return "\n".join(lines)
