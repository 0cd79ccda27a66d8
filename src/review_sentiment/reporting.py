"""Best-effort delivery of analysis log records to a spreadsheet endpoint."""

from __future__ import annotations

import asyncio
import logging
import platform
import time
from datetime import datetime, timezone
from typing import Callable, Optional

import requests

from . import __version__
from .errors import ReportingError
from .models import (
    ClassificationOutcome,
    ClientHints,
    ClientMetadata,
    LogRecord,
    SentimentCategory,
)
from .schema import validate_log_payload

DEFAULT_USER_AGENT = f"review-sentiment/{__version__}"

TokenProvider = Callable[[], Optional[str]]


def _local_timezone() -> str | None:
    return datetime.now().astimezone().tzname()


def build_client_metadata(
    *,
    reviews_count: int,
    model: str,
    hints: ClientHints | None = None,
    user_agent: str | None = None,
) -> ClientMetadata:
    """Merge client-supplied hints with details known on this side."""
    hints = hints or ClientHints()
    return ClientMetadata(
        user_agent=user_agent or DEFAULT_USER_AGENT,
        platform=hints.platform or platform.platform(),
        language=hints.language,
        screen_resolution=hints.screen_resolution,
        timezone=hints.timezone or _local_timezone(),
        reviews_count=reviews_count,
        model=model,
        timestamp_client=int(time.time() * 1000),
    )


def build_log_record(
    review: str,
    outcome: ClassificationOutcome,
    category: SentimentCategory,
    metadata: ClientMetadata,
    *,
    token: str | None = None,
) -> LogRecord:
    return LogRecord(
        timestamp=datetime.now(timezone.utc),
        review_text=review,
        category=category,
        raw_label=outcome.raw_label,
        raw_score=outcome.raw_score,
        client_metadata=metadata,
        token=token,
    )


class ReportingSink:
    """
    One-way HTTP POST of log records.

    The response body is never read and failed deliveries are not retried.
    A sink without a URL is disabled and silently drops records.
    """

    def __init__(
        self,
        url: str | None,
        *,
        timeout: float = 10.0,
        token_provider: TokenProvider | None = None,
        session: requests.Session | None = None,
        logger: logging.Logger | None = None,
    ):
        self.url = url
        self.timeout = timeout
        self._token_provider = token_provider
        self._session = session
        self._logger = logger or logging.getLogger(__name__)

    @property
    def enabled(self) -> bool:
        return bool(self.url)

    def current_token(self) -> str | None:
        if self._token_provider is None:
            return None
        try:
            return self._token_provider()
        except (OSError, ValueError) as exc:
            self._logger.warning("Could not read stored token: %s", exc)
            return None

    def send(self, record: LogRecord) -> None:
        """POST one record synchronously; raise ReportingError on failure."""
        if not self.url:
            return
        try:
            payload = validate_log_payload(record.to_payload())
        except ValueError as exc:
            raise ReportingError(str(exc)) from exc
        poster = self._session.post if self._session is not None else requests.post
        try:
            poster(self.url, json=payload, timeout=self.timeout)
        except requests.RequestException as exc:
            raise ReportingError(f"Failed to send log record: {exc}") from exc
        self._logger.info("Log record sent to %s", self.url)

    async def report(self, record: LogRecord) -> bool:
        """Send a record from a worker thread; return False when disabled."""
        if not self.enabled:
            self._logger.debug("Reporting disabled; dropping log record.")
            return False
        await asyncio.to_thread(self.send, record)
        return True
