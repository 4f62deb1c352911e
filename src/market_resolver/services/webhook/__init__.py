"""Webhook ingress service."""

from market_resolver.services.webhook.app import build_app
from market_resolver.services.webhook.ingress import WebhookIngress, sign_body

__all__ = ["WebhookIngress", "build_app", "sign_body"]
