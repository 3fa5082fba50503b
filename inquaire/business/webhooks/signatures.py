from __future__ import annotations

import base64
import hashlib
import hmac
import logging

logger = logging.getLogger("inquaire.webhooks")

INSTAGRAM_SIGNATURE_PREFIX = "sha256="


def compute_signature(body: bytes, secret: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def compute_instagram_signature(body: bytes, secret: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return f"{INSTAGRAM_SIGNATURE_PREFIX}{digest}"


def _matches(expected: str, provided: str) -> bool:
    return hmac.compare_digest(expected.encode("utf-8"), provided.encode("utf-8"))


def verify_line_signature(body: bytes, signature: str | None, secret: str | None) -> bool:
    """LINE signs every delivery, so a missing secret or header is a failure."""

    if not secret:
        logger.warning("webhook.signature_unconfigured", extra={"platform": "LINE"})
        return False
    if not signature:
        return False
    return _matches(compute_signature(body, secret), signature)


def verify_optional_signature(platform: str, body: bytes, signature: str | None, secret: str | None) -> bool:
    """Kakao and Naver signatures are only enforced once a secret is configured."""

    if not secret:
        logger.debug("webhook.signature_skipped", extra={"platform": platform})
        return True
    if not signature:
        return False
    return _matches(compute_signature(body, secret), signature)


def verify_instagram_signature(body: bytes, signature: str | None, app_secret: str | None) -> bool:
    if not app_secret:
        logger.debug("webhook.signature_skipped", extra={"platform": "INSTAGRAM"})
        return True
    if not signature:
        return False
    return _matches(compute_instagram_signature(body, app_secret), signature)
