"""Exception hierarchy for the review sentiment flow."""


class ReviewSentimentError(Exception):
    """Base class for all flow errors."""


class SourceLoadError(ReviewSentimentError):
    """The review file is missing, unparseable, or holds no usable reviews."""


class ClassifierInitError(ReviewSentimentError):
    """The sentiment model could not be loaded."""


class NoDataError(ReviewSentimentError):
    """Analysis was requested before any reviews were available."""


class ModelNotReadyError(ReviewSentimentError):
    """Analysis was requested before the sentiment model was ready."""


class AnalysisInProgressError(ReviewSentimentError):
    """Analysis was requested while another one is still running."""


class InferenceError(ReviewSentimentError):
    """The classifier failed or returned output that cannot be used."""


class ReportingError(ReviewSentimentError):
    """A log record could not be delivered to the reporting endpoint."""


class FlowDisposedError(ReviewSentimentError):
    """The flow was used after it was shut down."""
