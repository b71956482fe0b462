from dataclasses import dataclass, field
from typing import Dict, List

MESSAGE_TYPES: tuple[str, ...] = (
    "claim",
    "evidence",
    "counterargument",
    "question",
    "synthesis",
)

# Message type -> key in SessionState.graph
GRAPH_KEYS: Dict[str, str] = {
    "claim": "claims",
    "evidence": "evidence",
    "counterargument": "counterarguments",
    "question": "questions",
    "synthesis": "synthesis",
}

AI_USERNAME = "AI-Moderator"
# Display category of every AI-authored message, whatever the model classified.
AI_COLUMN_TYPE = "question"

DEFAULT_TOPIC = "Untitled Discussion"

MAX_LAST_MESSAGES = 8
MAX_SCORE_HISTORY = 20


def empty_graph() -> Dict[str, int]:
    return {key: 0 for key in GRAPH_KEYS.values()}


@dataclass(frozen=True)
class SlimMessage:
    """A preprocessed message kept in the rolling window."""

    username: str
    content: str
    type: str
    timestamp: str


@dataclass
class ScoreStats:
    """Running reasoning-score aggregate for a room."""

    depth_avg: float = 0.0
    logic_issues: int = 0
    score_history: List[float] = field(default_factory=list)


@dataclass
class SessionState:
    """Per-room rolling state (counts, window, participation, score average)."""

    room_id: str
    topic: str = DEFAULT_TOPIC
    summary: str = ""
    graph: Dict[str, int] = field(default_factory=empty_graph)
    scores: ScoreStats = field(default_factory=ScoreStats)
    participation: Dict[str, int] = field(default_factory=dict)
    message_count: int = 0
    last_messages: List[SlimMessage] = field(default_factory=list)


@dataclass
class ModeratorResponse:
    """Validated model output."""

    type: str
    short_feedback: str
    guiding_question: str
    contradicts: bool = False
    contradiction_reason: str = ""
