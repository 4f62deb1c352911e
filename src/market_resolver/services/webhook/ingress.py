"""Authentication and eligibility filtering of change-data-capture deliveries."""

from __future__ import annotations

import hashlib
import hmac
import time
from typing import Callable

import pydantic
import structlog

from market_resolver.domain.markets import Market, is_eligible
from market_resolver.errors import AuthenticationError, ValidationError
from market_resolver.events.models import ChangeOp, WebhookPayload
from market_resolver.resolution.queue import ResolutionQueue

logger = structlog.get_logger(__name__)

MARKET_ENTITY = "Market"
_RESOLVABLE_OPS = {ChangeOp.INSERT, ChangeOp.UPDATE}


def sign_body(secret: str, body: bytes) -> str:
    """Hex HMAC-SHA256 of ``body`` keyed with ``secret``."""

    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


class WebhookIngress:
    """Turns raw webhook deliveries into resolution queue submissions."""

    def __init__(
        self,
        queue: ResolutionQueue,
        *,
        secret: str | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.queue = queue
        self.secret = secret or None
        self.clock = clock

    def verify_signature(self, body: bytes, signature: str | None) -> None:
        """Raise ``AuthenticationError`` unless ``signature`` matches ``body``.

        Without a configured secret every delivery is accepted.
        """

        if self.secret is None:
            return
        if not signature:
            raise AuthenticationError("missing webhook signature")
        expected = sign_body(self.secret, body)
        if not hmac.compare_digest(expected, signature.strip().lower()):
            raise AuthenticationError("webhook signature mismatch")

    def parse(self, body: bytes) -> WebhookPayload:
        try:
            return WebhookPayload.model_validate_json(body)
        except pydantic.ValidationError as exc:
            raise ValidationError(f"malformed webhook payload: {exc.error_count()} errors") from exc

    def market_from(self, payload: WebhookPayload) -> Market:
        """Return the eligible market carried by ``payload`` or raise ``ValidationError``."""

        if payload.entity != MARKET_ENTITY:
            raise ValidationError(f"ignoring entity {payload.entity}")
        if payload.op not in _RESOLVABLE_OPS:
            raise ValidationError(f"ignoring op {payload.op.value}")
        if payload.data.new is None:
            raise ValidationError("change event has no new row image")
        try:
            return Market.model_validate(payload.data.new)
        except pydantic.ValidationError as exc:
            raise ValidationError(f"malformed market row: {exc.error_count()} errors") from exc

    def handle(self, body: bytes, signature: str | None) -> bool:
        """Authenticate, filter and enqueue one delivery.

        Returns True when a resolution job was admitted. Irrelevant or
        malformed events are dropped and return False; a bad signature raises
        ``AuthenticationError``.
        """

        self.verify_signature(body, signature)

        try:
            payload = self.parse(body)
            log = logger.bind(
                webhook_id=payload.webhook_id,
                webhook_name=payload.webhook_name,
                op=payload.op.value,
                entity=payload.entity,
            )
            market = self.market_from(payload)
        except ValidationError as exc:
            logger.debug("webhook_event_ignored", reason=str(exc))
            return False

        log = log.bind(market_id=market.id)
        if not is_eligible(market, int(self.clock())):
            log.debug(
                "market_not_eligible",
                resolved=market.resolved,
                cancelled=market.cancelled,
                resolve_time=market.resolve_time,
            )
            return False

        log.info("market_ready_for_resolution", title=market.title, resolve_time=market.resolve_time)
        return self.queue.submit(market.id)

    def trigger(self, market_id: str) -> bool:
        """Operator-initiated resolution; skips signature and eligibility checks."""

        logger.info("manual_resolution_triggered", market_id=market_id)
        return self.queue.submit(market_id)


__all__ = ["MARKET_ENTITY", "WebhookIngress", "sign_body"]
