"""Pure mapping from raw classifier output to categories and display text."""

from __future__ import annotations

from dataclasses import dataclass

from .models import ClassificationOutcome, SentimentCategory

# Strictly greater: a score of exactly 0.5 is treated as undecided.
DECISION_THRESHOLD = 0.5


@dataclass(frozen=True)
class Presentation:
    category: SentimentCategory
    label: str
    icon: str
    css_class: str
    confidence_text: str


_DISPLAY: dict[SentimentCategory, tuple[str, str]] = {
    SentimentCategory.POSITIVE: ("POSITIVE", "fa-thumbs-up"),
    SentimentCategory.NEGATIVE: ("NEGATIVE", "fa-thumbs-down"),
    SentimentCategory.NEUTRAL: ("NEUTRAL", "fa-question-circle"),
}


def categorize(raw_label: str, raw_score: float) -> SentimentCategory:
    """
    Bucket a raw classifier label/score pair into a sentiment category.

    Labels are compared case-insensitively; anything other than a confident
    POSITIVE or NEGATIVE falls back to NEUTRAL.
    """
    normalized = (raw_label or "").upper()
    if normalized == "POSITIVE" and raw_score > DECISION_THRESHOLD:
        return SentimentCategory.POSITIVE
    if normalized == "NEGATIVE" and raw_score > DECISION_THRESHOLD:
        return SentimentCategory.NEGATIVE
    return SentimentCategory.NEUTRAL


def format_confidence(score: float) -> str:
    """Render a score in [0, 1] as e.g. "93.0% confidence"."""
    return f"{score * 100:.1f}% confidence"


def present(category: SentimentCategory, outcome: ClassificationOutcome) -> Presentation:
    label, icon = _DISPLAY[category]
    return Presentation(
        category=category,
        label=label,
        icon=icon,
        css_class=category.value,
        confidence_text=format_confidence(outcome.raw_score),
    )
