"""Deterministic room analytics derived from the stored session state."""

from dataclasses import dataclass, field
from typing import Dict, List

from .models import GRAPH_KEYS, SessionState
from .scoring import compute_discussion_stage, round_half_up

DOMINANT_PERCENTAGE = 40
MAX_INSIGHTS = 3


@dataclass
class ParticipantStats:
    name: str
    contribution_count: int
    percentage: int
    is_dominant: bool


@dataclass
class SessionAnalytics:
    total_contributions: int
    contribution_breakdown: Dict[str, int]
    participants: List[ParticipantStats]
    reasoning_balance_score: int
    discussion_stage: str
    insights: List[str] = field(default_factory=list)


def contribution_breakdown(state: SessionState) -> Dict[str, int]:
    """Counts per message type, keyed by the singular type name."""
    return {t: state.graph.get(key, 0) for t, key in GRAPH_KEYS.items()}


def participant_stats(state: SessionState) -> List[ParticipantStats]:
    total = sum(state.participation.values())
    stats = []
    for name, count in state.participation.items():
        percentage = int(round_half_up(count / total * 100, 0)) if total > 0 else 0
        stats.append(
            ParticipantStats(
                name=name,
                contribution_count=count,
                percentage=percentage,
                is_dominant=percentage > DOMINANT_PERCENTAGE,
            )
        )
    return sorted(stats, key=lambda p: -p.contribution_count)


def reasoning_balance_score(breakdown: Dict[str, int]) -> int:
    """100 for a well-mixed discussion; penalises missing and lopsided types."""
    score = 100
    score -= 15 * sum(1 for count in breakdown.values() if count == 0)
    if breakdown.get("counterargument", 0) == 0:
        score -= 30
    total = sum(breakdown.values())
    if total > 0 and max(breakdown.values()) / total > 0.5:
        score -= 20
    return max(0, score)


def generate_insights(
    breakdown: Dict[str, int], participants: List[ParticipantStats]
) -> List[str]:
    insights = []
    # Echo chamber
    if breakdown.get("counterargument", 0) == 0:
        insights.append("No counterarguments present. Discussion may lack critical evaluation.")
    dominant = next((p for p in participants if p.is_dominant), None)
    if dominant is not None:
        insights.append(f"One participant ({dominant.name}) dominates the discussion.")
    if breakdown.get("evidence", 0) < breakdown.get("claim", 0):
        insights.append("Evidence usage is lower than claims.")
    return insights[:MAX_INSIGHTS]


def build_session_analytics(state: SessionState) -> SessionAnalytics:
    breakdown = contribution_breakdown(state)
    participants = participant_stats(state)
    return SessionAnalytics(
        total_contributions=state.message_count,
        contribution_breakdown=breakdown,
        participants=participants,
        reasoning_balance_score=reasoning_balance_score(breakdown),
        discussion_stage=compute_discussion_stage(
            state.message_count, breakdown["claim"], breakdown["counterargument"]
        ),
        insights=generate_insights(breakdown, participants),
    )
