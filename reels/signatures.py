"""
Webhook signature verification.

The provider signs each push with HMAC-SHA256 over the raw request body using
RUNWAY_WEBHOOK_SECRET, hex-encoded, sent in X-RunwayML-Signature
(an optional "sha256=" prefix is accepted).

Without a configured secret, development accepts any non-empty header;
every other environment refuses to run unauthenticated.
"""

import hashlib
import hmac
import logging
import secrets
from typing import Optional

from .errors import AuthError, ConfigurationError

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-RunwayML-Signature"


def compute_signature(body: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_signature(
    body: bytes,
    signature: Optional[str],
    secret: str,
    allow_unsigned: bool = False,
):
    if not signature:
        raise AuthError("Missing webhook signature")

    if not secret:
        if allow_unsigned:
            logger.warning("RUNWAY_WEBHOOK_SECRET not set — accepting webhook on header presence only")
            return
        raise ConfigurationError("Webhook secret not configured")

    provided = signature.strip()
    if provided.startswith("sha256="):
        provided = provided[len("sha256="):]

    # Constant-time compare avoids timing attacks
    if not secrets.compare_digest(provided.lower(), compute_signature(body, secret)):
        raise AuthError("Invalid webhook signature")
