"""Webhook HTTP ingress.

``POST /api/webhook/pr`` acknowledges immediately and hands the event to
the dispatcher; all cloning, parsing and analysis happen off the request.
"""

from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, PlainTextResponse

from impactgraph import __version__
from impactgraph.config import ProjectConfig
from impactgraph.exceptions import PayloadError
from impactgraph.github.events import PingEvent, PullRequestEvent, parse_event
from impactgraph.github.impact_bot import ImpactPipeline
from impactgraph.server.dispatcher import EventDispatcher

logger = logging.getLogger("impactgraph.server")

STATUS_TEXT = "ImpactGraph change-impact API is running!"


def create_app(
    config: ProjectConfig | None = None,
    pipeline: ImpactPipeline | None = None,
    dispatcher: EventDispatcher | None = None,
) -> FastAPI:
    """Build the FastAPI application around one pipeline and one dispatcher."""
    config = config or ProjectConfig()
    pipeline = pipeline or ImpactPipeline(config)
    dispatcher = dispatcher or EventDispatcher(config.workers)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        dispatcher.shutdown(wait=False)

    app = FastAPI(title="ImpactGraph", version=__version__, lifespan=lifespan)
    app.state.pipeline = pipeline
    app.state.dispatcher = dispatcher

    @app.exception_handler(PayloadError)
    async def payload_error(request: Request, exc: PayloadError) -> JSONResponse:
        logger.warning(f"Rejected webhook payload: {exc}")
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.post("/api/webhook/pr")
    async def webhook(request: Request) -> dict:
        try:
            payload = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise PayloadError("Body is not valid JSON") from e

        event = parse_event(payload)

        if isinstance(event, PingEvent):
            repo = event.repository.full_name
            logger.info(f"Ping received for {repo}")
            await run_in_threadpool(dispatcher.submit, f"ping {repo}", pipeline.process_ping, event)
            return {
                "status": "accepted",
                "message": "Webhook configured, baseline processing started",
                "repo": repo,
            }

        if isinstance(event, PullRequestEvent):
            repo = event.repository.full_name
            logger.info(f"PR #{event.pr_number} ({event.action}) received for {repo}")
            # caller-runs overflow blocks; keep it off the event loop
            accepted = await run_in_threadpool(
                dispatcher.submit,
                f"pr {repo}#{event.pr_number}",
                pipeline.process_pull_request,
                event,
                dedup_key=event.dedup_key,
            )
            return {
                "status": "accepted" if accepted else "duplicate",
                "message": (
                    "PR received, impact analysis in progress"
                    if accepted
                    else "PR head already analysed"
                ),
                "pr_number": event.pr_number,
                "repo": repo,
            }

        return {"status": "ignored", "message": "Unrecognized event"}

    @app.get("/api/status", response_class=PlainTextResponse)
    async def status() -> str:
        return STATUS_TEXT

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    return app
