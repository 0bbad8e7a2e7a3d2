"""Finance schemas: payments, payouts, reconciliation and fee configuration."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from ninja import ModelSchema, Schema
from pydantic import Field

from common.schema import StrippedString
from events.models import MAX_FEE_PERCENT, Event, Organizer
from finance.models import Payout, Transaction
from finance.service.fee_service import FeeRates
from finance.service.reconciliation_service import PayoutLine


class InitializePaymentSchema(Schema):
    callback_url: str | None = None


class PaymentInitializedSchema(Schema):
    reference: str
    authorization_url: str | None
    amount: Decimal
    currency: str
    status: Transaction.Status


class VerifyPaymentSchema(Schema):
    reference: StrippedString = Field(..., min_length=1, max_length=100)


class TransactionStatusSchema(ModelSchema):
    status: Transaction.Status
    reservation_id: UUID

    class Meta:
        model = Transaction
        fields = ["reference", "amount", "currency", "channel", "paid_at"]


class TransactionSchema(Schema):
    """A transaction with its reconciled payout line."""

    id: UUID
    reference: str
    reservation_id: UUID
    status: Transaction.Status
    currency: str
    channel: str
    paid_at: datetime | None
    created_at: datetime
    fee_bearer: Event.FeeBearer
    ticket_subtotal: Decimal
    addon_subtotal: Decimal
    discount_amount: Decimal
    gross: Decimal
    platform_fee: Decimal
    processor_fee: Decimal
    net: Decimal
    is_estimate: bool

    @classmethod
    def from_line(cls, transaction: Transaction, line: PayoutLine) -> "TransactionSchema":
        """Combine a transaction with its payout line."""
        return cls(
            id=transaction.pk,
            reference=transaction.reference,
            reservation_id=transaction.reservation_id,
            status=Transaction.Status(transaction.status),
            currency=transaction.currency,
            channel=transaction.channel,
            paid_at=transaction.paid_at,
            created_at=transaction.created_at,
            fee_bearer=Event.FeeBearer(transaction.fee_bearer),
            ticket_subtotal=transaction.ticket_subtotal,
            addon_subtotal=transaction.addon_subtotal,
            discount_amount=transaction.discount_amount,
            gross=line.gross,
            platform_fee=line.platform_fee,
            processor_fee=line.processor_fee,
            net=line.net,
            is_estimate=line.is_estimate,
        )


class EventFinanceSummarySchema(Schema):
    event_id: UUID
    currency: str
    transaction_count: int
    gross: Decimal
    platform_fees: Decimal
    processor_fees: Decimal
    net_payout: Decimal
    paid_out: Decimal
    pending_payout: Decimal
    remaining_due: Decimal


class PlatformFinanceSummarySchema(Schema):
    transaction_count: int
    gross_volume: Decimal
    platform_revenue: Decimal
    processor_fees: Decimal
    organizer_net: Decimal
    paid_out: Decimal
    outstanding: Decimal


class PayoutSchema(ModelSchema):
    event_id: UUID
    organizer_id: UUID
    status: Payout.Status

    class Meta:
        model = Payout
        fields = ["id", "amount", "currency", "reference", "notes", "paid_at", "created_at"]


class PayoutRequestSchema(Schema):
    amount: Decimal | None = Field(None, gt=0, max_digits=12, decimal_places=2)


class PayoutApproveSchema(Schema):
    reference: StrippedString | None = Field(None, max_length=100)


class PayoutRejectSchema(Schema):
    reason: StrippedString = Field(..., min_length=1, max_length=500)


class SystemFeesSchema(Schema):
    """Stored system rates and the rates actually in effect after deployment defaults."""

    platform_fee_percent: Decimal | None
    processor_fee_percent: Decimal | None
    effective_platform_fee_percent: Decimal
    effective_processor_fee_percent: Decimal
    updated_at: datetime | None = None

    @classmethod
    def build(
        cls, platform: Decimal | None, processor: Decimal | None, rates: FeeRates, updated_at: datetime | None
    ) -> "SystemFeesSchema":
        """Combine stored and effective rates."""
        return cls(
            platform_fee_percent=platform,
            processor_fee_percent=processor,
            effective_platform_fee_percent=rates.platform_fee_percent,
            effective_processor_fee_percent=rates.processor_fee_percent,
            updated_at=updated_at,
        )


class SystemFeesUpdateSchema(Schema):
    platform_fee_percent: Decimal | None = Field(None, ge=0, le=MAX_FEE_PERCENT, decimal_places=2)
    processor_fee_percent: Decimal | None = Field(None, ge=0, le=MAX_FEE_PERCENT, decimal_places=2)


class FeeOverrideSchema(Schema):
    """``null`` clears the override, ``0`` waives the platform fee."""

    platform_fee_percent: Decimal | None = Field(..., ge=0, le=MAX_FEE_PERCENT, decimal_places=2)


class FeeBearerSchema(Schema):
    fee_bearer: Event.FeeBearer


class EventFeeSchema(ModelSchema):
    fee_bearer: Event.FeeBearer

    class Meta:
        model = Event
        fields = ["id", "title", "slug", "platform_fee_percent"]


class OrganizerFeeSchema(ModelSchema):
    class Meta:
        model = Organizer
        fields = ["id", "name", "slug", "platform_fee_percent"]
