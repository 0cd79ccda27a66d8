"""Load reviews from a TSV file, falling back to built-in samples."""

from __future__ import annotations

import asyncio
import csv
import logging
from pathlib import Path
from typing import Iterable, List

import pandas as pd

from .errors import SourceLoadError
from .models import ReviewBatch

logger = logging.getLogger(__name__)

TEXT_COLUMN_NAMES = ("text", "review")

FALLBACK_REVIEWS: tuple[str, ...] = (
    "This product is absolutely amazing! The quality exceeded my expectations and it was worth every penny.",
    "Terrible experience. The product broke after just 2 days of use and customer service was unhelpful.",
    "It's okay for the price, but nothing special. Does the job but I expected better quality.",
    "I love this product! It has completely changed how I approach my daily routine. Highly recommended!",
    "The worst purchase I've ever made. Save your money and look elsewhere.",
    "Decent product with some flaws. The design could be improved but overall it works fine.",
    "Excellent value for money. The features are robust and the performance is outstanding.",
    "Very disappointed with this purchase. The product arrived damaged and the replacement was just as bad.",
    "Good quality and reasonable price. I would buy this again.",
    "Not sure how I feel about this. Some aspects are great but others are frustrating.",
)


def _clean(values: Iterable[object]) -> List[str]:
    """Keep non-blank strings, trimmed, preserving order."""
    cleaned: List[str] = []
    for value in values:
        if not isinstance(value, str):
            continue
        text = value.strip()
        if text:
            cleaned.append(text)
    return cleaned


def _text_column(columns: Iterable[object]) -> object | None:
    for column in columns:
        if str(column).strip().lower() in TEXT_COLUMN_NAMES:
            return column
    return None


def extract_reviews(frame: pd.DataFrame) -> List[str]:
    """
    Pull review strings out of a parsed table.

    Prefers the first column headed "text" or "review" (any case). When no
    such column exists, or it holds only blanks, the first column is used.
    """
    if frame.empty or len(frame.columns) == 0:
        return []
    column = _text_column(frame.columns)
    reviews = _clean(frame[column]) if column is not None else []
    if not reviews:
        reviews = _clean(frame.iloc[:, 0])
    return reviews


def read_review_table(source: str | Path) -> List[str]:
    """Read and parse a TSV source synchronously; raise SourceLoadError on failure."""
    try:
        frame = pd.read_csv(
            source,
            sep="\t",
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            quoting=csv.QUOTE_MINIMAL,
            on_bad_lines="warn",
        )
    except FileNotFoundError as exc:
        raise SourceLoadError(
            f"File {source} not found. Please ensure it exists."
        ) from exc
    except (OSError, ValueError) as exc:
        # pandas parser and empty-data errors are ValueError subclasses.
        raise SourceLoadError(f"Failed to load TSV file {source}: {exc}") from exc

    reviews = extract_reviews(frame)
    if not reviews:
        raise SourceLoadError(
            f"No valid reviews found in {source}. Please check the format."
        )
    return reviews


def fallback_batch() -> ReviewBatch:
    return ReviewBatch(reviews=list(FALLBACK_REVIEWS), origin="fallback", from_fallback=True)


async def load_reviews(source: str | Path) -> ReviewBatch:
    """
    Load reviews without ever failing.

    Parsing runs in a worker thread. Any SourceLoadError is logged and the
    built-in sample reviews are returned instead.
    """
    logger.info("Loading reviews from %s", source)
    try:
        reviews = await asyncio.to_thread(read_review_table, source)
    except SourceLoadError as exc:
        logger.warning("Failed to load reviews, using samples: %s", exc)
        return fallback_batch()
    logger.info("Loaded %d reviews from %s", len(reviews), source)
    return ReviewBatch(reviews=reviews, origin=str(source))
