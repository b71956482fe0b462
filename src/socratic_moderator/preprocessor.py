"""Message cleanup and the low-quality gate.

Runs before any scoring or model call so the context packet stays small.
Pure functions, no I/O.
"""

import re

from .vocabulary import DEFAULT_VOCABULARY, Vocabulary

MIN_RESULT_CHARS = 3
LONG_SENTENCE_WORDS = 40
COMPRESSED_SENTENCE_WORDS = 30
ELLIPSIS = "…"

_SENTENCE_RE = re.compile(r"[^.!?]+[.!?]*")
_SENTENCE_BOUNDARY_RE = re.compile(r"(?<=[.!?])\s+")
_WHITESPACE_RE = re.compile(r"\s+")
_MULTI_SPACE_RE = re.compile(r"\s{2,}")
_REPEATED_CHAR_RE = re.compile(r"(.)\1{4,}")
_SYMBOLS_ONLY_RE = re.compile(r"[^a-zA-Z0-9]+")


def strip_fillers(text: str, vocabulary: Vocabulary = DEFAULT_VOCABULARY) -> str:
    """Remove greeting/hedge prefixes (repeatedly) and inline filler phrases."""
    changed = True
    while changed:
        changed = False
        for pattern in vocabulary.leading_fillers:
            stripped = pattern.sub("", text, count=1).lstrip()
            if stripped != text:
                text = stripped
                changed = True
    for pattern in vocabulary.inline_fillers:
        text = pattern.sub(" ", text)
    return text


def deduplicate_sentences(text: str) -> str:
    sentences = _SENTENCE_RE.findall(text) or [text]
    seen: set[str] = set()
    unique: list[str] = []
    for sentence in sentences:
        key = _WHITESPACE_RE.sub(" ", sentence.strip().lower())
        if len(key) < MIN_RESULT_CHARS:
            continue
        if key not in seen:
            seen.add(key)
            unique.append(sentence.strip())
    return " ".join(unique)


def compress_long_sentences(text: str) -> str:
    """Cut sentences over 40 words down to their first 30 words."""
    compressed = []
    for sentence in _SENTENCE_BOUNDARY_RE.split(text):
        words = sentence.strip().split()
        if len(words) > LONG_SENTENCE_WORDS:
            compressed.append(" ".join(words[:COMPRESSED_SENTENCE_WORDS]) + ELLIPSIS)
        else:
            compressed.append(sentence)
    return " ".join(compressed)


def preprocess(raw: str, vocabulary: Vocabulary = DEFAULT_VOCABULARY) -> str:
    """Strip noise from a raw message.

    Steps run in a fixed order: emoji, filler phrases, whitespace, duplicate
    sentences, long-sentence compression. If less than three characters
    survive, the trimmed original is returned instead.
    """
    text = raw.strip()
    text = vocabulary.emoji.sub("", text).strip()
    text = strip_fillers(text, vocabulary)
    text = _MULTI_SPACE_RE.sub(" ", text).strip()
    text = deduplicate_sentences(text)
    text = compress_long_sentences(text)
    text = text.strip()
    return text if len(text) >= MIN_RESULT_CHARS else raw.strip()


def is_low_quality(cleaned: str) -> bool:
    """Return True for spam or degenerate input that should skip moderation."""
    if len(cleaned) < 8:
        return True
    if _REPEATED_CHAR_RE.fullmatch(cleaned):
        return True
    if _SYMBOLS_ONLY_RE.fullmatch(cleaned):
        return True
    if len(cleaned.split()) < 2:
        return True
    return False
