"""Random review sentiment analysis with best-effort spreadsheet logging."""

__version__ = "0.1.0"

__all__ = ["config", "models", "sentiment", "sources", "classifier", "reporting", "flow"]
