"""Push-notification handling: signature verification and cache invalidation."""

from __future__ import annotations

import hashlib
import hmac
import logging
import os
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping

    from ruleweave.infrastructure.resolver import ConfigResolver

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Hub-Signature-256"
EVENT_HEADER = "X-GitHub-Event"
WEBHOOK_SECRET_ENV = "RULEWEAVE_WEBHOOK_SECRET"


def compute_signature(secret: str, body: bytes) -> str:
    """Return the ``sha256=<hex>`` signature of *body* under *secret*."""
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return f"sha256={digest}"


def verify_signature(secret: str, body: bytes, signature: str | None) -> bool:
    """Constant-time check of a ``sha256=<hex>`` signature."""
    if not secret or not signature:
        return False
    return hmac.compare_digest(compute_signature(secret, body), signature)


def _header(headers: Mapping[str, str], name: str) -> str | None:
    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return value
    return None


def handle_push_event(
    headers: Mapping[str, str],
    body: bytes,
    secret: str | None,
    resolver: ConfigResolver,
) -> tuple[int, str]:
    """Process one webhook delivery and return ``(http_status, message)``.

    A correctly signed ``push`` event invalidates every cached archetype,
    rule and exemption list.  Other signed events are acknowledged and
    ignored.  An empty *secret* falls back to the ``RULEWEAVE_WEBHOOK_SECRET``
    environment variable.
    """
    secret = secret or os.environ.get(WEBHOOK_SECRET_ENV, "")
    if not secret:
        logger.error("Webhook secret is not configured (%s)", WEBHOOK_SECRET_ENV)
        return 500, "Webhook secret not configured"

    if not verify_signature(secret, body, _header(headers, SIGNATURE_HEADER)):
        logger.warning("Rejected webhook delivery with invalid signature")
        return 403, "Invalid signature"

    event = _header(headers, EVENT_HEADER)
    if event != "push":
        logger.debug("Ignoring webhook event %s", event)
        return 200, f"Ignored event: {event}"

    resolver.invalidate()
    logger.info("Push event received; configuration cache cleared")
    return 200, "Cache cleared"
