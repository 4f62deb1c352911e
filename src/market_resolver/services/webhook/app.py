"""FastAPI application for webhook ingress, manual triggers and health."""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any, AsyncIterator, Awaitable, Callable

import structlog
from fastapi import APIRouter, FastAPI, Header, Request
from fastapi.responses import JSONResponse

from market_resolver.chain import Web3ChainGateway
from market_resolver.config import Settings, get_settings
from market_resolver.datasource import HyperliquidDataSource
from market_resolver.errors import AuthenticationError
from market_resolver.resolution.queue import ResolutionQueue
from market_resolver.resolution.state_machine import ResolutionStateMachine
from market_resolver.services.base import create_app
from market_resolver.services.webhook.ingress import WebhookIngress

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get("/health", tags=["Health"])
async def health(request: Request) -> dict[str, Any]:
    """Liveness plus queue depth."""

    queue: ResolutionQueue = request.app.state.queue
    return {
        "status": "healthy",
        "timestamp": datetime.now(UTC).isoformat(),
        "queueSize": queue.size,
        "queuePending": queue.pending,
        "queueScheduled": queue.scheduled,
        "draining": queue.closed,
        "stats": queue.stats(),
    }


@router.post("/webhook/market", tags=["Resolution"])
async def receive_market_event(
    request: Request,
    x_signature: str | None = Header(default=None),
    x_goldsky_signature: str | None = Header(default=None),
) -> Any:
    """Authenticate a change event and queue the market if it can be resolved."""

    ingress: WebhookIngress = request.app.state.ingress
    body = await request.body()
    try:
        queued = ingress.handle(body, x_signature or x_goldsky_signature)
    except AuthenticationError as exc:
        logger.warning("webhook_signature_rejected", error=str(exc))
        return JSONResponse(status_code=401, content={"success": False, "error": "Invalid signature"})
    except Exception:
        logger.exception("webhook_processing_failed")
        return JSONResponse(status_code=500, content={"success": False, "error": "Internal server error"})
    return {"success": True, "queued": queued}


@router.post("/resolve/{market_id}", tags=["Resolution"])
async def trigger_resolution(market_id: str, request: Request) -> Any:
    """Queue a market for resolution regardless of webhook state."""

    ingress: WebhookIngress = request.app.state.ingress
    if ingress.queue.closed:
        return JSONResponse(status_code=503, content={"success": False, "error": "Queue is draining"})
    try:
        admitted = ingress.trigger(market_id)
    except Exception:
        logger.exception("manual_resolution_failed", market_id=market_id)
        return JSONResponse(status_code=500, content={"success": False, "error": "Failed to queue resolution"})
    message = "Resolution queued" if admitted else "Resolution already in progress"
    return {"success": True, "message": message}


def build_resolution_queue(settings: Settings) -> tuple[ResolutionQueue, list[Callable[[], Awaitable[None]]]]:
    """Wire gateway, data source and state machine behind a queue.

    Returns the queue and the close hooks to run after it drains.
    """

    chain = Web3ChainGateway(settings.chain, settings.private_key)
    data_source = HyperliquidDataSource(
        settings.data_source.base_url,
        timeout=settings.data_source.timeout_seconds,
        cache_ttl_seconds=settings.data_source.cache_ttl_seconds,
    )
    machine = ResolutionStateMachine(
        chain=chain,
        data_source=data_source,
        retry_attempts=settings.retry.attempts,
        retry_delay_ms=settings.retry.delay_ms,
    )
    queue = ResolutionQueue(
        machine.resolve,
        concurrency=settings.queue.concurrency,
        interval_seconds=settings.queue.interval_seconds,
    )
    return queue, [data_source.close]


def build_app(settings: Settings | None = None, *, queue: ResolutionQueue | None = None) -> FastAPI:
    """Return configured FastAPI application.

    The queue starts with the app and is drained on shutdown.
    """

    settings = settings or get_settings()
    closers: list[Callable[[], Awaitable[None]]] = []
    if queue is None:
        queue, closers = build_resolution_queue(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        queue.start()
        try:
            yield
        finally:
            await queue.drain()
            for close in closers:
                await close()

    app = create_app("webhook", settings, lifespan=lifespan)
    app.state.queue = queue
    app.state.ingress = WebhookIngress(queue, secret=settings.webhook_secret)
    app.include_router(router)
    return app


__all__ = ["build_app", "build_resolution_queue", "router"]
