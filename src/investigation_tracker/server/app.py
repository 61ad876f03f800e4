"""FastAPI app factory.

Endpoints are intentionally thin wrappers over the tracker's event handlers.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from investigation_tracker import __version__
from investigation_tracker.server.config import ServerSettings
from investigation_tracker.server.models import (
    ApiQueueItem,
    InvestigateRequest,
    InvestigateResponse,
    StatusResponse,
)
from investigation_tracker.server.webhooks import router as webhook_router
from investigation_tracker.tracker.factory import build_tracker
from investigation_tracker.tracker.handlers import InvestigationTracker
from investigation_tracker.tracker.validation import InvalidRequest

logger = logging.getLogger(__name__)


def create_app(
    settings: ServerSettings | None = None,
    *,
    tracker: InvestigationTracker | None = None,
) -> FastAPI:
    settings = settings or ServerSettings()
    tracker = tracker or build_tracker(settings)

    app = FastAPI(
        title="Issue Investigation Tracker",
        version=__version__,
        description="Queues issue investigations and keeps an investigation worker running.",
    )

    # Expose settings and the tracker for request handlers that want to read them.
    app.state.settings = settings
    app.state.tracker = tracker

    @app.exception_handler(InvalidRequest)
    async def invalid_request(_request: Request, exc: InvalidRequest) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.exception_handler(RequestValidationError)
    async def invalid_body(_request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": "Invalid request body"})

    app.include_router(webhook_router)

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "version": __version__}

    @app.post("/investigate", response_model=InvestigateResponse)
    def investigate(req: InvestigateRequest) -> InvestigateResponse:
        outcome = tracker.investigate(req.repo, req.issue)
        return InvestigateResponse.from_outcome(outcome)

    @app.get("/status", response_model=StatusResponse)
    def status() -> StatusResponse:
        return StatusResponse(
            queue=[ApiQueueItem.from_item(item) for item in tracker.state.queue.snapshot()],
            ledger=tracker.state.ledger.snapshot(),
            worker_alive=tracker.supervisor.is_alive(),
        )

    logger.info(
        "Investigation tracker app created",
        extra={"state_dir": str(settings.agent_state_path)},
    )
    return app
