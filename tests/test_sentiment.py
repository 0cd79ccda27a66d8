import pytest

from review_sentiment.models import ClassificationOutcome, SentimentCategory
from review_sentiment.sentiment import categorize, format_confidence, present


@pytest.mark.parametrize(
    "label,score,expected",
    [
        ("POSITIVE", 0.93, SentimentCategory.POSITIVE),
        ("positive", 0.51, SentimentCategory.POSITIVE),
        ("NEGATIVE", 0.99, SentimentCategory.NEGATIVE),
        ("Negative", 0.6, SentimentCategory.NEGATIVE),
        ("POSITIVE", 0.5, SentimentCategory.NEUTRAL),
        ("NEGATIVE", 0.5, SentimentCategory.NEUTRAL),
        ("POSITIVE", 0.2, SentimentCategory.NEUTRAL),
        ("LABEL_1", 0.99, SentimentCategory.NEUTRAL),
        ("", 1.0, SentimentCategory.NEUTRAL),
    ],
)
def test_categorize_buckets_labels(label, score, expected):
    assert categorize(label, score) is expected


def test_categorize_is_pure():
    first = categorize("NEGATIVE", 0.75)
    second = categorize("NEGATIVE", 0.75)
    assert first is second is SentimentCategory.NEGATIVE


def test_present_positive_result():
    outcome = ClassificationOutcome(raw_label="POSITIVE", raw_score=0.93)
    presentation = present(categorize(outcome.raw_label, outcome.raw_score), outcome)

    assert presentation.category is SentimentCategory.POSITIVE
    assert presentation.label == "POSITIVE"
    assert presentation.icon == "fa-thumbs-up"
    assert presentation.css_class == "positive"
    assert presentation.confidence_text == "93.0% confidence"


def test_present_neutral_keeps_raw_score():
    outcome = ClassificationOutcome(raw_label="NEGATIVE", raw_score=0.5)
    presentation = present(categorize(outcome.raw_label, outcome.raw_score), outcome)

    assert presentation.label == "NEUTRAL"
    assert presentation.icon == "fa-question-circle"
    assert presentation.confidence_text == "50.0% confidence"


def test_format_confidence_rounds_to_one_decimal():
    assert format_confidence(0.98765) == "98.8% confidence"
    assert format_confidence(1.0) == "100.0% confidence"
