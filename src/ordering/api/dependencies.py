"""Request-scoped dependencies for the Ordering API."""

import hmac

from fastapi import Header, HTTPException

from ordering import config
from ordering.errors import AuthorizationError


def current_user(x_user_id: str | None = Header(default=None)) -> str:
    """Identity is issued upstream; the gateway forwards it as X-User-ID."""
    if not x_user_id:
        raise AuthorizationError("Unauthenticated", "X-User-ID header is required")
    return x_user_id


def verified_gateway(x_gateway_signature: str = Header(default="")) -> None:
    """Payment callbacks must carry the secret shared with the payment gateway."""
    secret = config.payment_webhook_secret()
    if not secret or not hmac.compare_digest(x_gateway_signature, secret):
        raise HTTPException(status_code=401, detail="Invalid webhook signature")
