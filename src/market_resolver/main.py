"""Main entry point for running the resolver service."""

import uvicorn

from market_resolver.config import get_settings
from market_resolver.logging import get_logger
from market_resolver.services.webhook import build_app

logger = get_logger(__name__)


def main() -> None:
    """Run the webhook server; the resolution queue drains on shutdown."""
    settings = get_settings()
    app = build_app(settings)
    logger.info(
        "resolver_starting",
        host=settings.webhook.host,
        port=settings.webhook.port,
        concurrency=settings.queue.concurrency,
    )
    uvicorn.run(
        app,
        host=settings.webhook.host,
        port=settings.webhook.port,
        log_level=settings.logging.level.lower(),
    )


if __name__ == "__main__":
    main()
