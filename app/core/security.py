"""Webhook authenticity checks.

Every incoming webhook is verified before its payload is parsed.  Both
checks use ``hmac.compare_digest`` for constant-time comparison.

- GitHub signs the raw body: ``X-Hub-Signature-256: sha256=<hex digest>``.
- GitLab echoes a shared secret in ``X-Gitlab-Token``.
"""

from __future__ import annotations

import hashlib
import hmac
import logging

from fastapi import HTTPException

logger = logging.getLogger(__name__)

_SIGNATURE_PREFIX = "sha256="


def _reject(status_code: int, detail: str) -> HTTPException:
    logger.warning("Webhook rejected: %s", detail)
    return HTTPException(status_code=status_code, detail=detail)


def verify_github_signature(body: bytes, secret: str, signature_header: str | None) -> None:
    """Verify the HMAC-SHA256 signature GitHub computed over ``body``.

    Raises:
        HTTPException(403): If the signature is missing, malformed, or invalid.
    """
    if not signature_header:
        raise _reject(403, "Missing X-Hub-Signature-256 header")
    if not signature_header.startswith(_SIGNATURE_PREFIX):
        raise _reject(403, "Invalid signature format — expected sha256= prefix")

    expected = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    received = signature_header.removeprefix(_SIGNATURE_PREFIX)
    if not hmac.compare_digest(expected, received):
        raise _reject(403, "Invalid webhook signature")


def verify_gitlab_token(expected_token: str, token_header: str | None) -> None:
    """Check the ``X-Gitlab-Token`` header against the configured secret.

    An empty configured secret disables the check, as GitLab webhooks
    may be registered without one.

    Raises:
        HTTPException(401): If a secret is configured and the header differs.
    """
    if not expected_token:
        return
    if not token_header or not hmac.compare_digest(expected_token, token_header):
        raise _reject(401, "Invalid or missing X-Gitlab-Token")
