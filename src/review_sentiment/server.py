"""FastAPI service that serves the analysis page and its JSON API."""

from __future__ import annotations

import asyncio
import logging
import os
from contextlib import asynccontextmanager, suppress
from pathlib import Path
from typing import Any, Callable, Dict, Optional
from urllib.parse import urlsplit

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse
from pydantic import BaseModel

from .config import Settings, get_settings
from .errors import (
    AnalysisInProgressError,
    FlowDisposedError,
    InferenceError,
    ModelNotReadyError,
    NoDataError,
)
from .flow import ReviewSentimentFlow
from .models import ClientHints
from .presenter import StatusBoard
from .storage import TOKEN_KEY, KeyValueStore, mask_token

logger = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).resolve().parent / "static"

FlowFactory = Callable[[Settings, StatusBoard, KeyValueStore], ReviewSentimentFlow]


class TokenPayload(BaseModel):
    token: str


def _add_cors(app: FastAPI) -> None:
    """
    Allow pages served from other origins to call the API.

    Cross-origin access is opt-in: without CORS_ALLOW_ALL or
    CORS_ALLOW_ORIGINS no CORS headers are sent.
    """
    allow_all = os.getenv("CORS_ALLOW_ALL", "false").lower() == "true"
    origins_env = os.getenv("CORS_ALLOW_ORIGINS", "")
    origins = [o.strip() for o in origins_env.split(",") if o.strip()]
    allow_credentials = (
        os.getenv("CORS_ALLOW_CREDENTIALS", "true").lower() == "true"
    )
    if allow_all:
        origins = ["*"]
    elif not origins:
        return
    if origins == ["*"] and allow_credentials:
        # Starlette/FastAPI disallow wildcard origins when credentials are enabled.
        allow_credentials = False
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )


def _build_flow(
    settings: Settings, board: StatusBoard, store: KeyValueStore
) -> ReviewSentimentFlow:
    return ReviewSentimentFlow.from_settings(settings, presenter=board, store=store)


def _log_init_failure(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Flow initialization crashed: %s", exc, exc_info=exc)


def _same_origin_only(request: Request) -> None:
    """Reject token requests sent by pages from another origin."""
    origin = request.headers.get("origin")
    if origin is None:
        return
    if urlsplit(origin).netloc != request.headers.get("host", ""):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Token access is limited to the page served by this app.",
        )


def _accept_language(request: Request) -> Optional[str]:
    header = request.headers.get("accept-language", "")
    first = header.split(",")[0].split(";")[0].strip()
    return first or None


def create_app(
    *,
    flow_factory: FlowFactory | None = None,
    store: KeyValueStore | None = None,
    background_init: bool = True,
) -> FastAPI:
    """
    Build the application.

    The flow starts initializing when the app starts; with
    ``background_init`` the page is served while the model is still loading.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        settings = get_settings()
        board = StatusBoard(notice_seconds=settings.notice_seconds)
        kv_store = store or KeyValueStore(settings.store_path)
        factory = flow_factory or _build_flow
        flow = factory(settings, board, kv_store)
        app.state.settings = settings
        app.state.board = board
        app.state.store = kv_store
        app.state.flow = flow

        init_task: asyncio.Task | None = None
        if background_init:
            init_task = asyncio.create_task(flow.initialize())
            init_task.add_done_callback(_log_init_failure)
        else:
            await flow.initialize()
        try:
            yield
        finally:
            if init_task is not None and not init_task.done():
                init_task.cancel()
                with suppress(asyncio.CancelledError):
                    await init_task
            await flow.dispose()

    app = FastAPI(title="Review Sentiment", lifespan=lifespan)
    _add_cors(app)

    @app.get("/", response_class=HTMLResponse)
    def index() -> HTMLResponse:
        return HTMLResponse((STATIC_DIR / "index.html").read_text(encoding="utf-8"))

    @app.get("/health")
    def health() -> Dict[str, str]:
        return {"status": "ok"}

    @app.get("/api/state")
    async def read_state(request: Request) -> Dict[str, Any]:
        flow: ReviewSentimentFlow = request.app.state.flow
        board: StatusBoard = request.app.state.board
        return {
            "state": flow.state.value,
            "reviews_ready": flow.reviews_ready,
            "model_ready": flow.model_ready,
            "reviews_count": len(flow.reviews),
            "reviews_from_fallback": flow.reviews_from_fallback,
            "board": board.snapshot().model_dump(),
        }

    @app.post("/api/analyze")
    async def analyze(request: Request, hints: Optional[ClientHints] = None) -> Dict[str, Any]:
        flow: ReviewSentimentFlow = request.app.state.flow
        hints = hints or ClientHints()
        if not hints.language:
            hints = hints.model_copy(update={"language": _accept_language(request)})
        try:
            result = await flow.trigger_analysis(
                hints=hints, user_agent=request.headers.get("user-agent")
            )
        except AnalysisInProgressError as exc:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT, detail=str(exc)
            ) from exc
        except (NoDataError, ModelNotReadyError, FlowDisposedError) as exc:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)
            ) from exc
        except InferenceError as exc:
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY, detail=f"Analysis failed: {exc}"
            ) from exc

        presentation = result.presentation
        return {
            "review": result.review,
            "category": result.category.value,
            "label": result.outcome.raw_label,
            "score": result.outcome.raw_score,
            "presentation": {
                "label": presentation.label,
                "icon": presentation.icon,
                "css_class": presentation.css_class,
                "confidence_text": presentation.confidence_text,
            },
            "reporting": "queued" if result.report_task is not None else "disabled",
        }

    token_guard = [Depends(_same_origin_only)]

    @app.get("/api/token", dependencies=token_guard)
    def read_token(request: Request) -> Dict[str, Any]:
        kv_store: KeyValueStore = request.app.state.store
        token = kv_store.get(TOKEN_KEY)
        return {
            "stored": token is not None,
            "masked": mask_token(token) if token is not None else None,
        }

    @app.put("/api/token", dependencies=token_guard)
    def store_token(payload: TokenPayload, request: Request) -> Dict[str, str]:
        token = payload.token.strip()
        if not token:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail="token must not be empty."
            )
        kv_store: KeyValueStore = request.app.state.store
        kv_store.set(TOKEN_KEY, token)
        return {"status": "stored"}

    @app.delete("/api/token", dependencies=token_guard)
    def clear_token(request: Request) -> Dict[str, str]:
        kv_store: KeyValueStore = request.app.state.store
        removed = kv_store.delete(TOKEN_KEY)
        return {"status": "cleared" if removed else "absent"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "review_sentiment.server:app",
        host=os.getenv("SENTIMENT_HOST", "127.0.0.1"),
        port=int(os.getenv("SENTIMENT_PORT", "8000")),
        reload=os.getenv("SENTIMENT_RELOAD", "false").lower() == "true",
    )
