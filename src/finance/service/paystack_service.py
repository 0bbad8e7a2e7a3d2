"""Paystack API client.

Only the two calls checkout needs plus webhook signature checking. Amounts
cross this boundary in minor units (kobo/pesewas).
"""

import hashlib
import hmac
import typing as t

import httpx
import structlog
from django.conf import settings

from finance.exceptions import PaymentGatewayError

logger = structlog.get_logger(__name__)


def _headers() -> dict[str, str]:
    return {
        "Authorization": f"Bearer {settings.PAYSTACK_SECRET_KEY}",
        "Content-Type": "application/json",
    }


def _url(path: str) -> str:
    return f"{settings.PAYSTACK_BASE_URL.rstrip('/')}/{path.lstrip('/')}"


def _unwrap(response: httpx.Response, operation: str, reference: str) -> dict[str, t.Any]:
    try:
        response.raise_for_status()
        body = response.json()
    except (httpx.HTTPStatusError, ValueError) as e:
        logger.error(
            "paystack_request_failed",
            operation=operation,
            reference=reference,
            status_code=response.status_code,
            error=str(e),
        )
        raise PaymentGatewayError(f"Paystack {operation} failed for {reference}.") from e
    if not body.get("status"):
        logger.error("paystack_request_rejected", operation=operation, reference=reference, message=body.get("message"))
        raise PaymentGatewayError(body.get("message") or f"Paystack rejected {operation} for {reference}.")
    return t.cast(dict[str, t.Any], body.get("data") or {})


def initialize_transaction(
    *,
    email: str,
    amount_minor: int,
    currency: str,
    reference: str,
    callback_url: str | None = None,
    metadata: dict[str, t.Any] | None = None,
    subaccount: str | None = None,
) -> dict[str, t.Any]:
    """Start a transaction and return Paystack's ``data`` (authorization_url, access_code, reference)."""
    payload: dict[str, t.Any] = {
        "email": email,
        "amount": amount_minor,
        "currency": currency,
        "reference": reference,
        "metadata": metadata or {},
    }
    if callback_url:
        payload["callback_url"] = callback_url
    if subaccount:
        payload["subaccount"] = subaccount

    try:
        response = httpx.post(
            _url("/transaction/initialize"),
            json=payload,
            headers=_headers(),
            timeout=settings.PAYSTACK_TIMEOUT_SECONDS,
        )
    except httpx.RequestError as e:
        logger.error("paystack_unreachable", operation="initialize", reference=reference, error=str(e))
        raise PaymentGatewayError("Paystack could not be reached.") from e
    return _unwrap(response, "initialize", reference)


def verify_transaction(reference: str) -> dict[str, t.Any]:
    """Fetch the gateway's view of a transaction.

    The returned ``data`` carries ``status`` ("success", "failed", "abandoned", ...),
    ``amount`` in minor units, ``currency``, ``channel`` and ``paid_at``.
    """
    try:
        response = httpx.get(
            _url(f"/transaction/verify/{reference}"),
            headers=_headers(),
            timeout=settings.PAYSTACK_TIMEOUT_SECONDS,
        )
    except httpx.RequestError as e:
        logger.error("paystack_unreachable", operation="verify", reference=reference, error=str(e))
        raise PaymentGatewayError("Paystack could not be reached.") from e
    return _unwrap(response, "verify", reference)


def compute_signature(payload: bytes) -> str:
    """HMAC-SHA512 of the raw request body with the secret key."""
    return hmac.new(settings.PAYSTACK_SECRET_KEY.encode(), payload, hashlib.sha512).hexdigest()


def is_valid_signature(payload: bytes, signature: str | None) -> bool:
    """Check the ``X-Paystack-Signature`` header of a webhook call."""
    if not signature or not settings.PAYSTACK_SECRET_KEY:
        return False
    return hmac.compare_digest(compute_signature(payload), signature)
