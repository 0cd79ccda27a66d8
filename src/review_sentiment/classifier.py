"""
Sentiment classifier backed by a Hugging Face text-classification pipeline.

The pipeline is created lazily in a worker thread so model download and
weight loading never block the event loop. Tests inject a fake factory.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any, Callable, Optional

from pydantic import ValidationError

from .errors import ClassifierInitError, InferenceError
from .models import ClassificationOutcome

PipelineFn = Callable[[str], Any]
PipelineFactory = Callable[[str, str], PipelineFn]


def build_pipeline(model_id: str, revision: str) -> PipelineFn:
    """Create the transformers pipeline; separated for easier testing."""
    try:
        from transformers import pipeline
    except ImportError as exc:
        raise ClassifierInitError(
            "transformers and torch are required for the sentiment model. "
            "Install with: pip install 'review-sentiment[model]'"
        ) from exc

    import transformers

    prev_verbosity = transformers.logging.get_verbosity()
    transformers.logging.set_verbosity_error()
    try:
        return pipeline("text-classification", model=model_id, revision=revision)
    finally:
        transformers.logging.set_verbosity(prev_verbosity)


def parse_top_result(raw: Any) -> ClassificationOutcome:
    """
    Validate pipeline output and return its first (most confident) entry.

    Raises InferenceError when the output is empty or not shaped like
    ``[{"label": str, "score": float}, ...]``.
    """
    if not isinstance(raw, (list, tuple)) or not raw:
        raise InferenceError("Invalid response from sentiment analysis model.")
    top = raw[0]
    # Batched calls nest one list per input.
    if isinstance(top, (list, tuple)):
        return parse_top_result(top)
    if not isinstance(top, Mapping):
        raise InferenceError("Invalid response from sentiment analysis model.")
    label = top.get("label")
    score = top.get("score")
    if not isinstance(label, str) or isinstance(score, bool) or not isinstance(score, (int, float)):
        raise InferenceError(f"Malformed classifier result: {dict(top)!r}")
    try:
        return ClassificationOutcome(raw_label=label, raw_score=float(score))
    except ValidationError as exc:
        raise InferenceError(f"Classifier score out of range: {score!r}") from exc


class SentimentClassifier:
    """Wraps the inference pipeline with explicit load/classify/unload steps."""

    def __init__(
        self,
        model_id: str,
        revision: str = "main",
        *,
        timeout: Optional[float] = None,
        pipeline_factory: Optional[PipelineFactory] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.model_id = model_id
        self.revision = revision
        self.timeout = timeout if timeout and timeout > 0 else None
        self._factory = pipeline_factory or build_pipeline
        self._logger = logger or logging.getLogger(__name__)
        self._pipeline: Optional[PipelineFn] = None

    def is_loaded(self) -> bool:
        return self._pipeline is not None

    async def load(self) -> None:
        """Load the model; raise ClassifierInitError on any failure."""
        if self._pipeline is not None:
            return
        self._logger.info("Loading sentiment model %s (%s)...", self.model_id, self.revision)
        try:
            self._pipeline = await asyncio.to_thread(self._factory, self.model_id, self.revision)
        except ClassifierInitError:
            raise
        except Exception as exc:
            raise ClassifierInitError(f"Failed to load sentiment model: {exc}") from exc
        self._logger.info("Sentiment model %s is ready", self.model_id)

    async def classify(self, text: str) -> ClassificationOutcome:
        """Run one text through the model and return the top label/score."""
        if self._pipeline is None:
            raise InferenceError("Sentiment model not loaded.")
        try:
            raw = await asyncio.wait_for(
                asyncio.to_thread(self._pipeline, text), timeout=self.timeout
            )
        except asyncio.TimeoutError as exc:
            raise InferenceError(
                f"Sentiment model did not answer within {self.timeout:g}s."
            ) from exc
        except Exception as exc:
            raise InferenceError(f"Sentiment model failed: {exc}") from exc
        return parse_top_result(raw)

    def unload(self) -> None:
        if self._pipeline is None:
            return
        self._pipeline = None
        self._logger.info("Sentiment model %s unloaded", self.model_id)
