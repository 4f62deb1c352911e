"""Common helpers for FastAPI-based services."""

from __future__ import annotations

from typing import Any, AsyncContextManager, Callable

from fastapi import FastAPI

from market_resolver.config import Settings
from market_resolver.logging import configure_logging

SERVICE_DESCRIPTION = {
    "webhook": "Receives indexer change events and queues market resolutions.",
}


def create_app(
    service_name: str,
    settings: Settings,
    *,
    lifespan: Callable[[FastAPI], AsyncContextManager[Any]] | None = None,
) -> FastAPI:
    """Create a FastAPI app configured for the given service."""

    configure_logging(settings.logging.level)

    return FastAPI(
        title=f"Market Resolver {service_name.title()} Service",
        description=SERVICE_DESCRIPTION.get(service_name, ""),
        lifespan=lifespan,
    )
