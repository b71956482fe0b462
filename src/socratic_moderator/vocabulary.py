"""Lexical vocabularies that drive preprocessing and scoring.

These lists are the tunable parameters of the moderation heuristics. They are
kept in one immutable, versioned value so tests can pin exact behaviour and
retuning never touches control flow.
"""

import re
from dataclasses import dataclass
from typing import Pattern


@dataclass(frozen=True)
class Vocabulary:
    version: str
    evidence_markers: tuple[str, ...]
    logic_connectors: tuple[str, ...]
    hedge_words: tuple[str, ...]
    # Anchored at the start of the message; stripped repeatedly.
    leading_fillers: tuple[Pattern[str], ...]
    # Stripped wherever they occur.
    inline_fillers: tuple[Pattern[str], ...]
    emoji: Pattern[str]


def _leading(alternatives: str) -> Pattern[str]:
    return re.compile(rf"^({alternatives})\b[,!.\s]*", re.IGNORECASE)


def _inline(phrase: str) -> Pattern[str]:
    return re.compile(rf"\b({phrase})\b", re.IGNORECASE)


DEFAULT_VOCABULARY = Vocabulary(
    version="1",
    evidence_markers=(
        "because",
        "since",
        "according to",
        "study",
        "data",
        "evidence",
        "shows",
        "demonstrates",
        "proves",
        "found that",
        "research",
        "statistics",
        "percentage",
        "report",
        "cited",
        "source",
    ),
    logic_connectors=(
        "therefore",
        "however",
        "thus",
        "consequently",
        "although",
        "nevertheless",
        "furthermore",
        "in contrast",
        "on the other hand",
        "despite",
        "as a result",
        "given that",
        "it follows that",
    ),
    hedge_words=(
        "maybe",
        "perhaps",
        "possibly",
        "might",
        "could be",
        "i think",
        "i feel",
        "seems",
        "appears",
        "probably",
    ),
    leading_fillers=(
        _leading(r"hi+|hey+|hello+|yo+|sup|hiya|howdy"),
        _leading(r"okay|ok|k|yep|yeah|yup|sure|right|alright|gotcha"),
        _leading(r"bro|dude|man|guys?|folks?"),
        _leading(r"lol|lmao|haha|hehe|xd"),
        _leading(r"hmm+|uhh?|umm?|err+|ugh"),
        _leading(r"so+|well|like|basically|honestly"),
    ),
    inline_fillers=(
        _inline(r"i think maybe|i feel like|sort of|kind of|kinda|sorta"),
        _inline(r"i guess"),
        _inline(r"you know"),
        _inline(r"to be honest"),
        _inline(r"if you ask me"),
        _inline(r"just saying"),
        _inline(r"like i said"),
        _inline(r"tbh"),
        _inline(r"imo"),
        _inline(r"imho"),
        _inline(r"ngl"),
    ),
    emoji=re.compile(
        "["
        "\U0001F300-\U0001F9FF"
        "\u2600-\u26FF"
        "\u2700-\u27BF"
        "\U0001FA00-\U0001FA9F"
        "\uFE00-\uFE0F"
        "\U0001F000-\U0001F02F"
        "]+"
    ),
)
