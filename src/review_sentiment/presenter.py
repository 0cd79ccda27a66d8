"""Surfaces that display flow progress: the web page board and the terminal."""

from __future__ import annotations

import time
from typing import Callable, Optional

from pydantic import BaseModel
from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from .sentiment import Presentation

_STYLES = {"positive": "green", "negative": "red", "neutral": "yellow"}


class Presenter:
    """Receives display events from the flow. Every hook defaults to a no-op."""

    def status(self, message: str, *, error: bool = False) -> None:
        pass

    def show_error(self, message: str) -> None:
        pass

    def clear_error(self) -> None:
        pass

    def review_stats(self, text: str) -> None:
        pass

    def model_status(self, text: str) -> None:
        pass

    def trigger_enabled(self, enabled: bool, *, busy: bool = False) -> None:
        pass

    def show_review(self, review: str) -> None:
        pass

    def show_result(self, presentation: Presentation) -> None:
        pass

    def notice(self, message: str, *, error: bool = False) -> None:
        pass


class ResultView(BaseModel):
    category: str
    label: str
    icon: str
    css_class: str
    confidence_text: str


class NoticeView(BaseModel):
    message: str
    error: bool = False


class BoardSnapshot(BaseModel):
    status: str = ""
    status_is_error: bool = False
    error: Optional[str] = None
    review_stats: str = ""
    model_status: str = ""
    trigger_enabled: bool = False
    busy: bool = False
    review: Optional[str] = None
    result: Optional[ResultView] = None
    notice: Optional[NoticeView] = None


class StatusBoard(Presenter):
    """
    In-memory page state polled by the browser.

    Reporting notices hide themselves after ``notice_seconds``.
    """

    def __init__(
        self,
        notice_seconds: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._state = BoardSnapshot()
        self._notice_seconds = notice_seconds
        self._clock = clock
        self._notice_expires_at: float | None = None

    def status(self, message: str, *, error: bool = False) -> None:
        self._state.status = message
        self._state.status_is_error = error

    def show_error(self, message: str) -> None:
        self._state.error = message

    def clear_error(self) -> None:
        self._state.error = None

    def review_stats(self, text: str) -> None:
        self._state.review_stats = text

    def model_status(self, text: str) -> None:
        self._state.model_status = text

    def trigger_enabled(self, enabled: bool, *, busy: bool = False) -> None:
        self._state.trigger_enabled = enabled
        self._state.busy = busy

    def show_review(self, review: str) -> None:
        self._state.review = review

    def show_result(self, presentation: Presentation) -> None:
        self._state.result = ResultView(
            category=presentation.category.value,
            label=presentation.label,
            icon=presentation.icon,
            css_class=presentation.css_class,
            confidence_text=presentation.confidence_text,
        )

    def notice(self, message: str, *, error: bool = False) -> None:
        self._state.notice = NoticeView(message=message, error=error)
        self._notice_expires_at = self._clock() + self._notice_seconds

    def snapshot(self) -> BoardSnapshot:
        if self._notice_expires_at is not None and self._clock() >= self._notice_expires_at:
            self._state.notice = None
            self._notice_expires_at = None
        return self._state.model_copy(deep=True)


class ConsolePresenter(Presenter):
    """Render reviews and results in the terminal with rich."""

    def __init__(self, console: Console | None = None):
        self.console = console or Console()

    def show_error(self, message: str) -> None:
        self.console.print(message, style="red", markup=False)

    def review_stats(self, text: str) -> None:
        self.console.print(f"[cyan]{text}[/cyan]")

    def model_status(self, text: str) -> None:
        self.console.print(f"[cyan]{text}[/cyan]")

    def show_review(self, review: str) -> None:
        self.console.print(Panel(Text(review), title="Review", expand=False))

    def show_result(self, presentation: Presentation) -> None:
        style = _STYLES.get(presentation.css_class, "white")
        self.console.print(
            f"[bold {style}]{presentation.label}[/bold {style}] "
            f"({presentation.confidence_text})"
        )

    def notice(self, message: str, *, error: bool = False) -> None:
        self.console.print(message, style="red" if error else "green", markup=False)
