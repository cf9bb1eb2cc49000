"""
Signed one-click unsubscribe links for notification emails.

Tokens carry only the user id, are signed with UNSUBSCRIBE_SECRET_KEY and
expire after UNSUBSCRIBE_TOKEN_MAX_AGE_DAYS. Nothing is stored server-side.
"""

import hashlib
import os
from urllib.parse import quote

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

UNSUBSCRIBE_SALT = "stalebot-unsubscribe"
UNSUBSCRIBE_TOKEN_MAX_AGE_DAYS = 90


def _get_serializer() -> URLSafeTimedSerializer:
    """
    Build the serializer used to sign and verify tokens.

    Raises:
        ValueError: If UNSUBSCRIBE_SECRET_KEY is not set
    """
    secret_key = os.getenv("UNSUBSCRIBE_SECRET_KEY")
    if not secret_key:
        raise ValueError("UNSUBSCRIBE_SECRET_KEY environment variable must be set.")

    return URLSafeTimedSerializer(
        secret_key,
        salt=UNSUBSCRIBE_SALT,
        signer_kwargs={"digest_method": hashlib.sha256},
    )


def generate_unsubscribe_token(user_id: str) -> str:
    """Sign a user id into a URL-safe token (payload.timestamp.signature)."""
    return _get_serializer().dumps(user_id)


def validate_unsubscribe_token(
    token: str, max_age_days: int = UNSUBSCRIBE_TOKEN_MAX_AGE_DAYS
) -> str | None:
    """
    Verify a token and return the user id it was issued to.

    Never raises - returns None for tampered, expired or malformed tokens,
    and when no secret key is configured.
    """
    try:
        user_id = _get_serializer().loads(token, max_age=max_age_days * 24 * 60 * 60)
    except (BadSignature, SignatureExpired, ValueError, TypeError):
        return None
    return user_id if isinstance(user_id, str) else None


def build_unsubscribe_url(user_id: str) -> str:
    """Unsubscribe link for email footers and the List-Unsubscribe header."""
    base_url = os.getenv("FRONTEND_BASE_URL", "https://stalebot.dev").rstrip("/")
    token = generate_unsubscribe_token(user_id)
    return f"{base_url}/unsubscribe?token={quote(token)}"
