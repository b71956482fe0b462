"""Moderation pipeline: preprocessing, gating, scoring, context packet, model call, state update.

The service owns no global state; stores and the model client are injected by
the hosting process.
"""

from .service import (
    ModerationRequest,
    ModerationResult,
    ModerationService,
    SkippedResult,
    compose_ai_content,
    select_task,
)

__all__ = [
    "ModerationRequest",
    "ModerationResult",
    "ModerationService",
    "SkippedResult",
    "compose_ai_content",
    "select_task",
]
