"""Deterministic scoring: reasoning quality, duplicates, novelty, session metrics.

None of these values come from the language model.
"""

import re
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List, Literal, Mapping, Sequence

from .models import ScoreStats
from .vocabulary import DEFAULT_VOCABULARY, Vocabulary

DiscussionStage = Literal["opening", "developing", "maturing", "closing"]

DUPLICATE_WINDOW = 10
NOVELTY_WINDOW = 5
NOVELTY_OVERLAP_THRESHOLD = 0.65
MEANINGFUL_WORD_MIN_LEN = 5

_NON_ALNUM_RE = re.compile(r"[^a-z0-9\s]")


def round_half_up(value: float, places: int = 2) -> float:
    """Round with halves going up (0.125 -> 0.13), unlike the built-in round()."""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def compute_reasoning_score(
    content: str, message_type: str, vocabulary: Vocabulary = DEFAULT_VOCABULARY
) -> float:
    """Additive 0-10 heuristic over length, evidence, logic and hedge markers."""
    lower = content.lower()
    word_count = len(lower.split())

    score = 0.0
    if word_count >= 10:
        score += 2
    if word_count >= 20:
        score += 1
    if word_count > 80:
        score -= 1

    evidence_hits = sum(1 for marker in vocabulary.evidence_markers if marker in lower)
    score += min(evidence_hits, 2)

    logic_hits = sum(1 for marker in vocabulary.logic_connectors if marker in lower)
    score += min(logic_hits * 1.5, 2)

    hedge_hits = sum(1 for marker in vocabulary.hedge_words if marker in lower)
    if hedge_hits > 2:
        score -= 1

    if message_type == "synthesis":
        score += 1.5
    if message_type == "evidence":
        score += 0.5

    return max(0.0, min(10.0, round_half_up(score, 1)))


def _normalized_words(text: str) -> List[str]:
    return _NON_ALNUM_RE.sub("", text.lower()).split()


def _fingerprint(text: str) -> str:
    # Order-insensitive bag of words
    return "|".join(sorted(_normalized_words(text)))


def is_duplicate(content: str, existing: Sequence[str]) -> bool:
    fingerprint = _fingerprint(content)
    return any(_fingerprint(e) == fingerprint for e in existing[-DUPLICATE_WINDOW:])


def _keywords(text: str) -> set[str]:
    return {w for w in _normalized_words(text) if len(w) >= MEANINGFUL_WORD_MIN_LEN}


def is_novel(content: str, existing: Sequence[str]) -> bool:
    """False when a recent message already covers most of this one's keywords."""
    if not existing:
        return True
    new_keywords = _keywords(content)
    if not new_keywords:
        return True
    for previous in existing[-NOVELTY_WINDOW:]:
        overlap = len(new_keywords & _keywords(previous))
        if overlap / len(new_keywords) > NOVELTY_OVERLAP_THRESHOLD:
            return False
    return True


def compute_participation_imbalance(participation: Mapping[str, int]) -> float:
    """0 when perfectly even, approaching (n-1)/n as one participant dominates."""
    counts = list(participation.values())
    if len(counts) < 2:
        return 0.0
    total = sum(counts)
    if total == 0:
        return 0.0
    return round_half_up(max(counts) / total - 1 / len(counts))


def compute_discussion_stage(
    message_count: int, claim_count: int, counter_count: int
) -> DiscussionStage:
    if message_count <= 4:
        return "opening"
    if message_count <= 12 and counter_count < 2:
        return "developing"
    if counter_count >= 2 or claim_count >= 4:
        return "maturing"
    return "closing"


@dataclass
class SessionMetrics:
    avg_reasoning_score: float
    num_claims: int
    num_evidence: int
    num_counterarguments: int
    num_questions: int
    num_synthesis: int
    participation_imbalance: float
    # Counterarguments not yet answered by a synthesis
    unresolved_conflicts: int
    total_contributions: int
    discussion_stage: DiscussionStage


def compute_session_metrics(
    graph: Mapping[str, int],
    scores: ScoreStats,
    participation: Dict[str, int],
    message_count: int,
) -> SessionMetrics:
    claims = graph.get("claims", 0)
    counters = graph.get("counterarguments", 0)
    synthesis = graph.get("synthesis", 0)
    return SessionMetrics(
        avg_reasoning_score=scores.depth_avg,
        num_claims=claims,
        num_evidence=graph.get("evidence", 0),
        num_counterarguments=counters,
        num_questions=graph.get("questions", 0),
        num_synthesis=synthesis,
        participation_imbalance=compute_participation_imbalance(participation),
        unresolved_conflicts=max(0, counters - synthesis),
        total_contributions=message_count,
        discussion_stage=compute_discussion_stage(message_count, claims, counters),
    )
