"""Keyword-based sentiment heuristic over recent customer messages."""

import unicodedata
from collections.abc import Sequence
from dataclasses import dataclass

BASELINE_SCORE = 3
MIN_SCORE = 1
MAX_SCORE = 5
DEFAULT_WINDOW = 3


@dataclass(frozen=True, slots=True)
class SentimentLexicon:
    negative: tuple[str, ...]
    positive: tuple[str, ...]


DEFAULT_LEXICON = SentimentLexicon(
    negative=("tệ", "chán", "thất vọng", "không hài lòng", "lừa đảo"),
    positive=("tốt", "tuyệt vời", "cảm ơn", "hài lòng", "thích"),
)


def score(
    customer_messages: Sequence[str],
    window: int = DEFAULT_WINDOW,
    lexicon: SentimentLexicon = DEFAULT_LEXICON,
) -> int:
    """Score the tone of the last ``window`` customer messages from 1 to 5.

    Every negative keyword found lowers the baseline by one and every positive
    keyword raises it by one; both lists are applied, so a message can be
    pulled in both directions. Keywords are matched as substrings of the
    lower-cased text, which means "không hài lòng" also counts as "hài lòng".
    """
    recent = list(customer_messages)[-window:] if window > 0 else []
    text = unicodedata.normalize("NFC", " ".join(recent).lower())

    result = BASELINE_SCORE
    for keyword in lexicon.negative:
        if unicodedata.normalize("NFC", keyword) in text:
            result = max(MIN_SCORE, result - 1)
    for keyword in lexicon.positive:
        if unicodedata.normalize("NFC", keyword) in text:
            result = min(MAX_SCORE, result + 1)
    return result
