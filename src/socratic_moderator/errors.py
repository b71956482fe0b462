class ModerationError(Exception):
    """Base class for failures that abort a moderation cycle."""


class PersistenceError(ModerationError):
    """The AI-authored message could not be stored."""
