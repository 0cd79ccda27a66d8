import asyncio
import random

import pytest

from review_sentiment.errors import (
    AnalysisInProgressError,
    ClassifierInitError,
    FlowDisposedError,
    InferenceError,
    ModelNotReadyError,
    NoDataError,
    ReportingError,
)
from review_sentiment.flow import FlowState, ReviewSentimentFlow
from review_sentiment.models import ClassificationOutcome, ReviewBatch, SentimentCategory
from review_sentiment.presenter import Presenter, StatusBoard

REVIEWS = ["Loved it.", "Hated it.", "It was fine."]


class FakeClassifier:
    model_id = "fake/model"

    def __init__(self, label="POSITIVE", score=0.93, fail_load=False, errors=None):
        self.label = label
        self.score = score
        self.fail_load = fail_load
        self.errors = list(errors or [])
        self.calls = []
        self.gate = None
        self.unloaded = False

    async def load(self):
        if self.fail_load:
            raise ClassifierInitError("Failed to load sentiment model: weights missing")

    async def classify(self, text):
        self.calls.append(text)
        if self.gate is not None:
            await self.gate.wait()
        if self.errors:
            raise self.errors.pop(0)
        return ClassificationOutcome(raw_label=self.label, raw_score=self.score)

    def unload(self):
        self.unloaded = True


class FakeSink:
    def __init__(self, enabled=True, error=None):
        self.enabled = enabled
        self.error = error
        self.records = []

    def current_token(self):
        return "tok"

    async def report(self, record):
        self.records.append(record)
        if self.error:
            raise self.error
        return True


class RecordingPresenter(Presenter):
    def __init__(self):
        self.events = []

    def status(self, message, *, error=False):
        self.events.append(("status", message, error))

    def show_error(self, message):
        self.events.append(("error", message))

    def trigger_enabled(self, enabled, *, busy=False):
        self.events.append(("trigger", enabled, busy))

    def show_review(self, review):
        self.events.append(("review", review))

    def show_result(self, presentation):
        self.events.append(("result", presentation.label, presentation.confidence_text))

    def notice(self, message, *, error=False):
        self.events.append(("notice", message, error))

    def kinds(self):
        return [event[0] for event in self.events]


async def _loader(source):
    return ReviewBatch(reviews=list(REVIEWS), origin=str(source))


def _flow(classifier=None, sink=None, presenter=None, loader=_loader):
    return ReviewSentimentFlow(
        source="reviews_test.tsv",
        classifier=classifier or FakeClassifier(),
        sink=sink or FakeSink(),
        presenter=presenter or RecordingPresenter(),
        loader=loader,
        rng=random.Random(7),
    )


def test_initialize_enables_trigger_when_both_ready():
    presenter = RecordingPresenter()
    flow = _flow(presenter=presenter)

    asyncio.run(flow.initialize())

    assert flow.state is FlowState.READY
    assert flow.reviews_ready and flow.model_ready
    assert flow.reviews == tuple(REVIEWS)
    assert flow.can_analyze
    triggers = [e for e in presenter.events if e[0] == "trigger"]
    assert triggers[0] == ("trigger", False, False)
    assert triggers[-1] == ("trigger", True, False)


def test_initialize_is_idempotent():
    calls = []

    async def counting_loader(source):
        calls.append(source)
        return await _loader(source)

    flow = _flow(loader=counting_loader)

    async def scenario():
        await flow.initialize()
        await flow.initialize()

    asyncio.run(scenario())
    assert calls == ["reviews_test.tsv"]


def test_model_failure_leaves_flow_failed_and_rejects_trigger():
    classifier = FakeClassifier(fail_load=True)
    presenter = RecordingPresenter()
    flow = _flow(classifier=classifier, presenter=presenter)

    async def scenario():
        await flow.initialize()
        with pytest.raises(ModelNotReadyError, match="weights missing"):
            await flow.trigger_analysis()

    asyncio.run(scenario())

    assert flow.state is FlowState.FAILED
    assert flow.reviews_ready is True
    assert flow.model_ready is False
    assert classifier.calls == []
    assert ("trigger", True, False) not in presenter.events


def test_trigger_before_initialize_is_rejected_without_state_change():
    classifier = FakeClassifier()
    presenter = RecordingPresenter()
    flow = _flow(classifier=classifier, presenter=presenter)

    with pytest.raises(NoDataError):
        asyncio.run(flow.trigger_analysis())

    assert flow.state is FlowState.IDLE
    assert classifier.calls == []
    assert ("error", "Reviews not loaded yet. Please wait.") in presenter.events


def test_positive_review_end_to_end():
    sink = FakeSink()
    presenter = RecordingPresenter()
    flow = _flow(sink=sink, presenter=presenter)

    async def scenario():
        await flow.initialize()
        result = await flow.trigger_analysis()
        await result.report_task
        return result

    result = asyncio.run(scenario())

    assert result.review in REVIEWS
    assert result.category is SentimentCategory.POSITIVE
    assert result.presentation.confidence_text == "93.0% confidence"
    assert flow.state is FlowState.READY

    assert len(sink.records) == 1
    record = sink.records[0]
    assert record.review_text == result.review
    assert record.category is SentimentCategory.POSITIVE
    assert record.raw_score == pytest.approx(0.93)
    assert record.client_metadata.reviews_count == len(REVIEWS)
    assert record.client_metadata.model == "fake/model"
    assert record.token == "tok"

    kinds = presenter.kinds()
    assert kinds.index("review") < kinds.index("result") < kinds.index("notice")


def test_boundary_score_is_neutral_and_keeps_raw_values():
    sink = FakeSink()
    flow = _flow(classifier=FakeClassifier(label="NEGATIVE", score=0.5), sink=sink)

    async def scenario():
        await flow.initialize()
        result = await flow.trigger_analysis()
        await flow.drain_reports()
        return result

    result = asyncio.run(scenario())

    assert result.category is SentimentCategory.NEUTRAL
    assert result.presentation.label == "NEUTRAL"
    assert sink.records[0].raw_label == "NEGATIVE"
    assert sink.records[0].raw_score == 0.5


def test_overlapping_trigger_is_rejected():
    classifier = FakeClassifier()
    flow = _flow(classifier=classifier)

    async def scenario():
        await flow.initialize()
        classifier.gate = asyncio.Event()
        first = asyncio.create_task(flow.trigger_analysis())
        while not classifier.calls:
            await asyncio.sleep(0)
        assert flow.state is FlowState.ANALYZING
        assert not flow.can_analyze
        with pytest.raises(AnalysisInProgressError):
            await flow.trigger_analysis()
        classifier.gate.set()
        return await first

    result = asyncio.run(scenario())

    assert result.category is SentimentCategory.POSITIVE
    assert len(classifier.calls) == 1
    assert flow.state is FlowState.READY


def test_failing_sink_does_not_affect_analysis():
    sink = FakeSink(error=ReportingError("endpoint unreachable"))
    board = StatusBoard(notice_seconds=60)
    flow = _flow(sink=sink, presenter=board)

    async def scenario():
        await flow.initialize()
        result = await flow.trigger_analysis()
        ok = await result.report_task
        return result, ok

    result, ok = asyncio.run(scenario())

    assert ok is False
    assert result.category is SentimentCategory.POSITIVE
    assert flow.state is FlowState.READY
    snapshot = board.snapshot()
    assert snapshot.error is None
    assert snapshot.result is not None
    assert snapshot.result.confidence_text == "93.0% confidence"
    assert snapshot.status == "Analysis complete!"
    assert snapshot.trigger_enabled is True
    assert snapshot.notice is not None and snapshot.notice.error is True


def test_report_failure_is_logged_as_warning(caplog):
    flow = _flow(sink=FakeSink(error=ReportingError("endpoint unreachable")))

    async def scenario():
        await flow.initialize()
        result = await flow.trigger_analysis()
        await result.report_task

    with caplog.at_level("WARNING", logger="review_sentiment.flow"):
        asyncio.run(scenario())

    assert any(
        rec.levelname == "WARNING" and "endpoint unreachable" in rec.getMessage()
        for rec in caplog.records
    )


def test_unexpected_sink_exception_is_contained():
    sink = FakeSink(error=RuntimeError("bug in sink"))
    flow = _flow(sink=sink)

    async def scenario():
        await flow.initialize()
        result = await flow.trigger_analysis()
        return await result.report_task

    assert asyncio.run(scenario()) is False
    assert flow.state is FlowState.READY


def test_inference_error_returns_flow_to_ready():
    classifier = FakeClassifier(errors=[InferenceError("Invalid response from sentiment analysis model.")])
    board = StatusBoard()
    flow = _flow(classifier=classifier, presenter=board)

    async def scenario():
        await flow.initialize()
        with pytest.raises(InferenceError):
            await flow.trigger_analysis()
        assert flow.state is FlowState.READY
        assert board.snapshot().error.startswith("Analysis failed:")
        return await flow.trigger_analysis()

    result = asyncio.run(scenario())

    assert result.category is SentimentCategory.POSITIVE
    assert board.snapshot().error is None
    assert board.snapshot().trigger_enabled is True


def test_disabled_sink_skips_reporting():
    sink = FakeSink(enabled=False)
    flow = _flow(sink=sink)

    async def scenario():
        await flow.initialize()
        return await flow.trigger_analysis()

    result = asyncio.run(scenario())
    assert result.report_task is None
    assert sink.records == []


def test_dispose_drains_reports_and_blocks_further_use():
    classifier = FakeClassifier()
    sink = FakeSink()
    flow = _flow(classifier=classifier, sink=sink)

    async def scenario():
        await flow.initialize()
        await flow.trigger_analysis()
        await flow.dispose()
        assert flow.pending_reports == 0
        with pytest.raises(FlowDisposedError):
            await flow.trigger_analysis()

    asyncio.run(scenario())

    assert flow.state is FlowState.DISPOSED
    assert classifier.unloaded is True
    assert len(sink.records) == 1
