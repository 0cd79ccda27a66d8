"""Orchestration of the random-review sentiment flow.

One ``ReviewSentimentFlow`` per session owns the loaded reviews, the model
handle and the two readiness flags. All state changes happen on the event
loop thread; blocking work (file parsing, model calls, HTTP) runs in worker
threads behind the collaborators.

Lifecycle: IDLE -> INITIALIZING -> READY <-> ANALYZING, with FAILED when the
model cannot load and DISPOSED after shutdown.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Awaitable, Callable, Optional

from .classifier import SentimentClassifier
from .config import Settings
from .errors import (
    AnalysisInProgressError,
    ClassifierInitError,
    FlowDisposedError,
    InferenceError,
    ModelNotReadyError,
    NoDataError,
    ReportingError,
    ReviewSentimentError,
)
from .models import (
    ClassificationOutcome,
    ClientHints,
    LogRecord,
    ReviewBatch,
    SentimentCategory,
)
from .presenter import Presenter
from .reporting import ReportingSink, build_client_metadata, build_log_record
from .sentiment import Presentation, categorize, present
from .sources import load_reviews
from .storage import TOKEN_KEY, KeyValueStore

logger = logging.getLogger(__name__)

ReviewLoader = Callable[[str | Path], Awaitable[ReviewBatch]]


class FlowState(str, Enum):
    IDLE = "idle"
    INITIALIZING = "initializing"
    READY = "ready"
    ANALYZING = "analyzing"
    FAILED = "failed"
    DISPOSED = "disposed"


@dataclass
class AnalysisResult:
    review: str
    outcome: ClassificationOutcome
    category: SentimentCategory
    presentation: Presentation
    report_task: Optional[asyncio.Task] = None


class ReviewSentimentFlow:
    """Coordinates review loading, classification, presentation and reporting."""

    def __init__(
        self,
        *,
        source: str | Path,
        classifier: SentimentClassifier,
        sink: ReportingSink,
        presenter: Presenter | None = None,
        loader: ReviewLoader = load_reviews,
        rng: random.Random | None = None,
    ):
        self._source = source
        self._classifier = classifier
        self._sink = sink
        self._presenter = presenter or Presenter()
        self._loader = loader
        self._rng = rng or random.Random()

        self._state = FlowState.IDLE
        self._reviews: tuple[str, ...] = ()
        self._reviews_from_fallback = False
        self._reviews_ready = False
        self._model_ready = False
        self._model_error: str | None = None
        self._pending_reports: set[asyncio.Task] = set()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        presenter: Presenter | None = None,
        store: KeyValueStore | None = None,
    ) -> "ReviewSentimentFlow":
        store = store or KeyValueStore(settings.store_path)
        classifier = SentimentClassifier(
            settings.model_id,
            settings.model_revision,
            timeout=settings.inference_timeout,
        )
        sink = ReportingSink(
            settings.reporting_url,
            timeout=settings.reporting_timeout,
            token_provider=lambda: store.get(TOKEN_KEY),
        )
        return cls(
            source=settings.reviews_source,
            classifier=classifier,
            sink=sink,
            presenter=presenter,
        )

    # --- Read-only state ------------------------------------------------

    @property
    def state(self) -> FlowState:
        return self._state

    @property
    def reviews(self) -> tuple[str, ...]:
        return self._reviews

    @property
    def reviews_ready(self) -> bool:
        return self._reviews_ready

    @property
    def model_ready(self) -> bool:
        return self._model_ready

    @property
    def reviews_from_fallback(self) -> bool:
        return self._reviews_from_fallback

    @property
    def model_error(self) -> str | None:
        return self._model_error

    @property
    def can_analyze(self) -> bool:
        return (
            self._state is FlowState.READY
            and self._reviews_ready
            and self._model_ready
            and bool(self._reviews)
        )

    @property
    def pending_reports(self) -> int:
        return len(self._pending_reports)

    # --- Presentation helpers ---------------------------------------------

    def _status(self, message: str, *, error: bool = False) -> None:
        if error:
            logger.error(message)
        else:
            logger.info(message)
        self._presenter.status(message, error=error)

    def _refresh_trigger(self) -> None:
        if (
            self._state is FlowState.INITIALIZING
            and self._reviews_ready
            and self._model_ready
        ):
            self._state = FlowState.READY
        self._presenter.trigger_enabled(self.can_analyze)

    def _reject(self, exc: ReviewSentimentError) -> None:
        self._presenter.show_error(str(exc))
        raise exc

    # --- Initialization -----------------------------------------------

    async def initialize(self) -> None:
        """Load reviews and the model concurrently. Calling it again is a no-op."""
        if self._state is not FlowState.IDLE:
            return
        self._state = FlowState.INITIALIZING
        self._presenter.trigger_enabled(False)
        self._status("Starting application initialization...")

        await asyncio.gather(self._load_reviews(), self._load_model())

        if self._state is FlowState.DISPOSED:
            return
        if not self._model_ready:
            self._state = FlowState.FAILED
            self._presenter.trigger_enabled(False)
            self._status("Failed to load sentiment model.", error=True)
            return
        self._refresh_trigger()
        self._status('Application ready! Click "Analyze Random Review" to start.')

    async def _load_reviews(self) -> None:
        batch = await self._loader(self._source)
        if self._state is FlowState.DISPOSED:
            return
        self._reviews = tuple(batch.reviews)
        self._reviews_from_fallback = batch.from_fallback
        self._reviews_ready = bool(self._reviews)
        suffix = " (sample)" if batch.from_fallback else ""
        self._presenter.review_stats(f"Reviews loaded: {len(self._reviews)}{suffix}")
        if batch.from_fallback:
            self._status(f"Loaded {len(self._reviews)} sample reviews.")
        else:
            self._status(f"Successfully loaded {len(self._reviews)} reviews from {batch.origin}.")
        self._refresh_trigger()

    async def _load_model(self) -> None:
        self._presenter.model_status("Model status: Loading...")
        self._status("Loading sentiment analysis model... (this may take a moment)")
        try:
            await self._classifier.load()
        except ClassifierInitError as exc:
            self._model_error = str(exc)
            self._model_ready = False
            self._presenter.model_status("Model status: Failed to load")
            self._presenter.show_error(str(exc))
            logger.error("Sentiment model failed to load: %s", exc)
            return
        if self._state is FlowState.DISPOSED:
            return
        self._model_ready = True
        self._presenter.model_status("Model status: Ready")
        self._status("Sentiment analysis model is ready!")
        self._refresh_trigger()

    # --- Analysis -------------------------------------------------------

    async def trigger_analysis(
        self,
        *,
        hints: ClientHints | None = None,
        user_agent: str | None = None,
    ) -> AnalysisResult:
        """
        Classify one randomly chosen review, present it and report it.

        Rejected without touching state when the flow is busy or not ready.
        Raises InferenceError when the model call fails; the flow returns to
        READY either way. Reporting runs in the background and never fails
        the analysis.
        """
        if self._state is FlowState.DISPOSED:
            raise FlowDisposedError("The sentiment flow has been shut down.")
        if self._state is FlowState.ANALYZING:
            raise AnalysisInProgressError("An analysis is already running.")

        self._presenter.clear_error()
        if not self._reviews_ready or not self._reviews:
            self._reject(NoDataError("Reviews not loaded yet. Please wait."))
        if not self._model_ready:
            message = (
                f"Sentiment model unavailable: {self._model_error}"
                if self._model_error
                else "Sentiment model not ready yet. Please wait."
            )
            self._reject(ModelNotReadyError(message))

        self._state = FlowState.ANALYZING
        self._presenter.trigger_enabled(False, busy=True)
        try:
            review = self._rng.choice(self._reviews)
            self._presenter.show_review(review)
            self._status("Analyzing sentiment...")

            outcome = await self._classifier.classify(review)
            category = categorize(outcome.raw_label, outcome.raw_score)
            presentation = present(category, outcome)
            self._presenter.show_result(presentation)

            record = self._build_record(review, outcome, category, hints, user_agent)
            report_task = self._dispatch_report(record)
            self._status("Analysis complete!")
            return AnalysisResult(
                review=review,
                outcome=outcome,
                category=category,
                presentation=presentation,
                report_task=report_task,
            )
        except InferenceError as exc:
            self._presenter.show_error(f"Analysis failed: {exc}")
            self._status("Analysis failed.", error=True)
            raise
        finally:
            if self._state is FlowState.ANALYZING:
                self._state = FlowState.READY
            self._refresh_trigger()

    def _build_record(
        self,
        review: str,
        outcome: ClassificationOutcome,
        category: SentimentCategory,
        hints: ClientHints | None,
        user_agent: str | None,
    ) -> LogRecord:
        metadata = build_client_metadata(
            reviews_count=len(self._reviews),
            model=self._classifier.model_id,
            hints=hints,
            user_agent=user_agent,
        )
        return build_log_record(
            review, outcome, category, metadata, token=self._sink.current_token()
        )

    def _dispatch_report(self, record: LogRecord) -> Optional[asyncio.Task]:
        if not self._sink.enabled:
            logger.debug("Reporting disabled; analysis not logged.")
            return None
        task = asyncio.create_task(self._report(record))
        self._pending_reports.add(task)
        task.add_done_callback(self._pending_reports.discard)
        return task

    async def _report(self, record: LogRecord) -> bool:
        try:
            await self._sink.report(record)
        except ReportingError as exc:
            logger.warning("Failed to save analysis log: %s", exc)
            self._presenter.notice("Failed to save analysis log", error=True)
            return False
        except Exception:
            logger.exception("Unexpected error while saving analysis log")
            self._presenter.notice("Failed to save analysis log", error=True)
            return False
        self._presenter.notice("Analysis log saved successfully")
        return True

    # --- Shutdown ---------------------------------------------------------

    async def drain_reports(self) -> None:
        """Wait for every in-flight report to settle."""
        while self._pending_reports:
            await asyncio.gather(*list(self._pending_reports), return_exceptions=True)

    async def dispose(self) -> None:
        if self._state is FlowState.DISPOSED:
            return
        self._state = FlowState.DISPOSED
        self._presenter.trigger_enabled(False)
        await self.drain_reports()
        self._classifier.unload()
        logger.info("Sentiment flow disposed")
