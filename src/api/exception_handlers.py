"""Exception handlers for the API."""

import traceback
import typing as t
from copy import deepcopy

import orjson
import structlog
from django.conf import settings
from django.core.exceptions import ValidationError
from django.http import HttpRequest
from ninja.responses import Response

from events.exceptions import ReservationError, TierSoldOutError
from finance.exceptions import (
    IncompleteFeeSnapshotError,
    InsufficientPayoutBalanceError,
    InvalidFeeInputError,
    InvalidFeeRatesError,
    InvalidPayoutStateError,
    MissingFeeConfigurationError,
    PaymentAmountMismatchError,
    PaymentGatewayError,
    PaymentVerificationError,
    PayoutAlreadyPendingError,
)

logger = structlog.get_logger(__name__)


def handle_general_exception(request: HttpRequest, exc: Exception | t.Type[Exception]) -> Response:
    """Handle a general exception.

    Args:
        request: The incoming HTTP request.
        exc: The exception.

    Returns:
        The response.
    """
    is_staff = getattr(request, "user", None) and request.user.is_staff
    json_payload = None
    if request.method in ("POST", "PUT", "PATCH") and request.headers.get("Content-Type") == "application/json":
        try:
            body = orjson.loads(request.body)
            json_payload = obfuscate(body) if isinstance(body, dict) else body
        except orjson.JSONDecodeError:  # pragma: no cover
            json_payload = None
    logger.exception(
        "INTERNAL_SERVER_ERROR",
        method=request.method,
        path=request.path,
        headers=obfuscate(dict(request.headers)),
        query=obfuscate(request.GET.dict()),
        json_payload=json_payload,
        user=str(request.user) if getattr(request, "user", None) else None,
    )
    data = {"detail": "Internal Server Error."}
    if settings.DEBUG or is_staff:  # pragma: no cover
        data["traceback"] = traceback.format_exc()
    return Response(status=500, data=data)


def handle_django_validation_error(request: HttpRequest, exc: ValidationError | t.Type[ValidationError]) -> Response:
    """Handle a validation error.

    Args:
        request: The incoming HTTP request.
        exc: The exception.
    """
    logger.warning("VALIDATION_ERROR", path=request.path, messages=exc.messages)  # type: ignore[union-attr]
    if hasattr(exc, "error_dict"):
        error_dict = {k: [ee for e in v for ee in e] for k, v in exc.error_dict.items()}
    else:
        error_dict = {"__all__": exc.messages}  # type: ignore[union-attr]
    return Response(status=400, data={"errors": error_dict})


def handle_reservation_error(request: HttpRequest, exc: ReservationError | t.Type[ReservationError]) -> Response:
    """Handle a basket the guest has to change."""
    return Response(status=400, data={"detail": str(exc)})


def handle_tier_sold_out_error(request: HttpRequest, exc: TierSoldOutError | t.Type[TierSoldOutError]) -> Response:
    """Handle a sold-out tier."""
    return Response(status=429, data={"detail": str(exc)})


def handle_invalid_fee_error(
    request: HttpRequest, exc: InvalidFeeRatesError | InvalidFeeInputError | t.Type[Exception]
) -> Response:
    """Handle fee rates or amounts that cannot be used."""
    return Response(status=400, data={"detail": str(exc)})


def handle_missing_fee_configuration_error(
    request: HttpRequest, exc: MissingFeeConfigurationError | t.Type[MissingFeeConfigurationError]
) -> Response:
    """Handle a platform without fee configuration: nothing can be priced."""
    logger.error("fee_configuration_unavailable", path=request.path, error=str(exc))
    return Response(status=503, data={"detail": "Fees are not configured. Please try again later."})


def handle_incomplete_fee_snapshot_error(
    request: HttpRequest, exc: IncompleteFeeSnapshotError | t.Type[IncompleteFeeSnapshotError]
) -> Response:
    """Handle a settled transaction that cannot be reconciled."""
    reference = getattr(exc, "reference", None)
    logger.error("fee_snapshot_incomplete", path=request.path, reference=reference)
    return Response(
        status=500,
        data={"detail": "A transaction is missing its fee snapshot and needs manual review.", "reference": reference},
    )


def handle_payout_conflict_error(
    request: HttpRequest, exc: PayoutAlreadyPendingError | InvalidPayoutStateError | t.Type[Exception]
) -> Response:
    """Handle a payout request or transition that conflicts with the payout's state."""
    return Response(status=409, data={"detail": str(exc)})


def handle_insufficient_payout_balance_error(
    request: HttpRequest, exc: InsufficientPayoutBalanceError | t.Type[InsufficientPayoutBalanceError]
) -> Response:
    """Handle a payout request above what is due."""
    return Response(status=400, data={"detail": str(exc)})


def handle_payment_gateway_error(
    request: HttpRequest, exc: PaymentGatewayError | t.Type[PaymentGatewayError]
) -> Response:
    """Handle the payment gateway failing or refusing a call."""
    return Response(status=502, data={"detail": "The payment provider could not process the request."})


def handle_payment_verification_error(
    request: HttpRequest, exc: PaymentVerificationError | t.Type[PaymentVerificationError]
) -> Response:
    """Handle a payment the gateway does not confirm."""
    return Response(status=400, data={"detail": str(exc)})


def handle_payment_amount_mismatch_error(
    request: HttpRequest, exc: PaymentAmountMismatchError | t.Type[PaymentAmountMismatchError]
) -> Response:
    """Handle a settled amount that differs from the quote."""
    return Response(status=409, data={"detail": "The paid amount does not match the order and needs manual review."})


SENSITIVE_KEYS = {"password", "token", "x-api-key", "authorization", "authentication", "x-paystack-signature"}


def obfuscate(data: dict[str, t.Any]) -> dict[str, t.Any]:
    """Obfuscate sensitive data in payloads and headers."""
    new_data = deepcopy(data)
    for key in data.keys():
        if key.lower() in SENSITIVE_KEYS:
            new_data[key] = "********"
    return new_data
