from django.conf import settings
from django.core.exceptions import ValidationError
from django.http import HttpRequest
from ninja_extra import NinjaExtraAPI
from ninja_jwt.controller import NinjaJWTDefaultController

from common.schema import ResponseOk, VersionResponse
from events.controllers import EventController
from events.exceptions import ReservationError, TierSoldOutError
from finance.controllers import FINANCE_CONTROLLERS
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

from .exception_handlers import (
    handle_django_validation_error,
    handle_general_exception,
    handle_incomplete_fee_snapshot_error,
    handle_insufficient_payout_balance_error,
    handle_invalid_fee_error,
    handle_missing_fee_configuration_error,
    handle_payment_amount_mismatch_error,
    handle_payment_gateway_error,
    handle_payment_verification_error,
    handle_payout_conflict_error,
    handle_reservation_error,
    handle_tier_sold_out_error,
)

api = NinjaExtraAPI(
    title="GatePass Backend API",
    docs_url="/docs",
    version=settings.VERSION,
    description=f"GatePass API {settings.VERSION}",
    app_name=f"gatepass-api-{settings.VERSION}",
    urls_namespace="api",
    servers=[
        {"url": settings.SERVICE_URL, "description": settings.SERVICE_DESCRIPTION},
    ],
)


@api.get("/version", tags=["Version"], response={200: VersionResponse})
def version(request: HttpRequest) -> tuple[int, VersionResponse]:
    """Get the API version."""
    return 200, VersionResponse(version=settings.VERSION)


@api.get("/healthcheck", tags=["Healthcheck"], response={200: ResponseOk})
def healthcheck(request: HttpRequest) -> tuple[int, ResponseOk]:
    """Check the health of the API."""
    return 200, ResponseOk()


api.register_controllers(
    NinjaJWTDefaultController,
    EventController,
    *FINANCE_CONTROLLERS,
)

EXCEPTION_HANDLERS = {
    Exception: handle_general_exception,
    ValidationError: handle_django_validation_error,
    ReservationError: handle_reservation_error,
    TierSoldOutError: handle_tier_sold_out_error,
    InvalidFeeRatesError: handle_invalid_fee_error,
    InvalidFeeInputError: handle_invalid_fee_error,
    MissingFeeConfigurationError: handle_missing_fee_configuration_error,
    IncompleteFeeSnapshotError: handle_incomplete_fee_snapshot_error,
    PayoutAlreadyPendingError: handle_payout_conflict_error,
    InvalidPayoutStateError: handle_payout_conflict_error,
    InsufficientPayoutBalanceError: handle_insufficient_payout_balance_error,
    PaymentGatewayError: handle_payment_gateway_error,
    PaymentVerificationError: handle_payment_verification_error,
    PaymentAmountMismatchError: handle_payment_amount_mismatch_error,
}

for exc, handler in EXCEPTION_HANDLERS.items():
    api.add_exception_handler(exc, handler)  # type: ignore[arg-type]
