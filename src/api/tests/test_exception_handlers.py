"""Tests for mapping domain errors to HTTP responses."""

import orjson
import pytest
from django.contrib.auth.models import AnonymousUser
from django.core.exceptions import ValidationError
from django.test import RequestFactory

from api import exception_handlers as handlers
from events.exceptions import InvalidDiscountCodeError, TierSoldOutError
from finance.exceptions import (
    IncompleteFeeSnapshotError,
    InsufficientPayoutBalanceError,
    InvalidFeeRatesError,
    InvalidPayoutStateError,
    MissingFeeConfigurationError,
    PaymentAmountMismatchError,
    PaymentGatewayError,
    PayoutAlreadyPendingError,
)


@pytest.fixture
def request_factory() -> RequestFactory:
    return RequestFactory()


@pytest.mark.parametrize(
    "handler,exc,status",
    [
        (handlers.handle_reservation_error, InvalidDiscountCodeError("bad code"), 400),
        (handlers.handle_tier_sold_out_error, TierSoldOutError("gone"), 429),
        (handlers.handle_invalid_fee_error, InvalidFeeRatesError("too high"), 400),
        (handlers.handle_missing_fee_configuration_error, MissingFeeConfigurationError("none"), 503),
        (handlers.handle_payout_conflict_error, PayoutAlreadyPendingError("pending"), 409),
        (handlers.handle_payout_conflict_error, InvalidPayoutStateError("paid"), 409),
        (handlers.handle_insufficient_payout_balance_error, InsufficientPayoutBalanceError("too much"), 400),
        (handlers.handle_payment_gateway_error, PaymentGatewayError("down"), 502),
        (handlers.handle_payment_amount_mismatch_error, PaymentAmountMismatchError("short"), 409),
    ],
)
def test_domain_error_status_codes(
    request_factory: RequestFactory, handler: object, exc: Exception, status: int
) -> None:
    request = request_factory.get("/api/anything")

    response = handler(request, exc)  # type: ignore[operator]

    assert response.status_code == status
    assert "detail" in orjson.loads(response.content)


def test_incomplete_snapshot_exposes_reference(request_factory: RequestFactory) -> None:
    request = request_factory.get("/api/organizers/x/events/y/finance")

    response = handlers.handle_incomplete_fee_snapshot_error(request, IncompleteFeeSnapshotError("GP-123"))

    assert response.status_code == 500
    assert orjson.loads(response.content)["reference"] == "GP-123"


def test_django_validation_error_with_field_errors(request_factory: RequestFactory) -> None:
    request = request_factory.get("/api/admin/finance/fees")
    exc = ValidationError({"platform_fee_percent": ["Ensure this value is less than or equal to 99.99."]})

    response = handlers.handle_django_validation_error(request, exc)

    assert response.status_code == 400
    assert orjson.loads(response.content) == {
        "errors": {"platform_fee_percent": ["Ensure this value is less than or equal to 99.99."]}
    }


def test_django_validation_error_without_fields(request_factory: RequestFactory) -> None:
    request = request_factory.get("/api/admin/finance/fees")

    response = handlers.handle_django_validation_error(request, ValidationError("Nope."))

    assert orjson.loads(response.content) == {"errors": {"__all__": ["Nope."]}}


def test_general_exception_hides_details(request_factory: RequestFactory, settings: object) -> None:
    settings.DEBUG = False  # type: ignore[attr-defined]
    request = request_factory.post(
        "/api/checkout/verify", data={"reference": "GP-1", "password": "hunter2"}, content_type="application/json"
    )
    request.user = AnonymousUser()

    response = handlers.handle_general_exception(request, RuntimeError("boom"))

    assert response.status_code == 500
    assert orjson.loads(response.content) == {"detail": "Internal Server Error."}


def test_obfuscate_masks_sensitive_keys() -> None:
    data = {"Authorization": "Bearer abc", "X-Paystack-Signature": "sig", "reference": "GP-1"}

    result = handlers.obfuscate(data)

    assert result == {"Authorization": "********", "X-Paystack-Signature": "********", "reference": "GP-1"}
    assert data["Authorization"] == "Bearer abc"
