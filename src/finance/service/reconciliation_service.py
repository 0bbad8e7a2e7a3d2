"""Payout reconciliation.

Every place that needs "gross minus fees" goes through ``reconcile_transaction``.
Transactions are reconciled from their own fee snapshot only; current fee
configuration is consulted for reservations that never reached the gateway.
"""

import typing as t
from dataclasses import dataclass
from decimal import Decimal

import structlog
from django.db.models import QuerySet, Sum
from django.db.models.functions import Coalesce

from events.models import Event, Reservation
from finance.exceptions import IncompleteFeeSnapshotError
from finance.models import Payout, Transaction
from finance.service.fee_service import ZERO, FeeRates, quantize_money

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PayoutLine:
    reference: str
    gross: Decimal
    platform_fee: Decimal
    processor_fee: Decimal
    net: Decimal
    is_estimate: bool = False


@dataclass(frozen=True)
class EventFinanceSummary:
    event_id: t.Any
    currency: str
    transaction_count: int
    gross: Decimal
    platform_fees: Decimal
    processor_fees: Decimal
    net_payout: Decimal
    paid_out: Decimal
    pending_payout: Decimal
    remaining_due: Decimal


@dataclass(frozen=True)
class PlatformFinanceSummary:
    transaction_count: int
    gross_volume: Decimal
    platform_revenue: Decimal
    processor_fees: Decimal
    organizer_net: Decimal
    paid_out: Decimal
    outstanding: Decimal


def _snapshot_fee(stored: Decimal | None, rate: Decimal | None, base: Decimal) -> Decimal | None:
    if stored is not None:
        return stored
    if rate is not None:
        return quantize_money(base * rate)
    return None


def reconcile_transaction(transaction: Transaction) -> PayoutLine:
    """Compute the payout line of a single transaction from its own snapshot.

    The stored fee amounts are used as recorded; a stored zero is a real value.
    When an amount is missing but the rate it was charged at is on record, the
    amount is derived from that rate. With neither, the transaction cannot be
    reconciled. Current fee configuration is never consulted.

    Pending transactions are reconciled the same way, since the gateway can only
    settle the snapshotted amount, but the line is flagged as an estimate.
    Failed transactions never moved money and reconcile to zero.
    """
    if transaction.status == Transaction.Status.FAILED:
        return PayoutLine(
            reference=transaction.reference,
            gross=ZERO,
            platform_fee=ZERO,
            processor_fee=ZERO,
            net=ZERO,
        )

    ticket_subtotal = transaction.ticket_subtotal
    platform_fee = _snapshot_fee(transaction.platform_fee, transaction.applied_fee_rate, ticket_subtotal)
    processor_fee = _snapshot_fee(
        transaction.applied_processor_fee,
        transaction.applied_processor_rate,
        ticket_subtotal + transaction.addon_subtotal,
    )
    if platform_fee is None or processor_fee is None:
        logger.error(
            "transaction_fee_snapshot_incomplete",
            reference=transaction.reference,
            missing_platform_fee=platform_fee is None,
            missing_processor_fee=processor_fee is None,
        )
        raise IncompleteFeeSnapshotError(transaction.reference)

    return PayoutLine(
        reference=transaction.reference,
        gross=transaction.amount,
        platform_fee=platform_fee,
        processor_fee=processor_fee,
        net=transaction.amount - platform_fee - processor_fee,
        is_estimate=transaction.status == Transaction.Status.PENDING,
    )


def estimate_reservation_payout(reservation: Reservation, rates: FeeRates | None = None) -> PayoutLine:
    """Estimate the payout of an unpaid reservation at the current effective rates."""
    from events.service.reservation_service import price_reservation

    quote = price_reservation(reservation, rates=rates)
    breakdown = quote.breakdown
    return PayoutLine(
        reference=str(reservation.pk),
        gross=breakdown.customer_total,
        platform_fee=breakdown.platform_fee,
        processor_fee=breakdown.processor_fee,
        net=breakdown.organizer_net,
        is_estimate=True,
    )


def _sum_lines(lines: list[PayoutLine]) -> tuple[Decimal, Decimal, Decimal, Decimal]:
    gross = sum((line.gross for line in lines), ZERO)
    platform_fees = sum((line.platform_fee for line in lines), ZERO)
    processor_fees = sum((line.processor_fee for line in lines), ZERO)
    net = sum((line.net for line in lines), ZERO)
    return gross, platform_fees, processor_fees, net


def _payout_total(queryset: QuerySet[Payout]) -> Decimal:
    return t.cast(Decimal, queryset.aggregate(total=Coalesce(Sum("amount"), ZERO))["total"])


def event_finance_summary(event: Event) -> EventFinanceSummary:
    """Aggregate the succeeded transactions and payouts of an event.

    ``remaining_due`` is what the organizer can still request: net payout minus
    what has been paid and what is already requested.
    """
    transactions = Transaction.objects.settled().for_event(event).select_related("reservation__event")
    lines = [reconcile_transaction(transaction) for transaction in transactions]
    gross, platform_fees, processor_fees, net = _sum_lines(lines)

    payouts = Payout.objects.filter(event=event)
    paid_out = _payout_total(payouts.paid())
    pending_payout = _payout_total(payouts.in_flight())

    return EventFinanceSummary(
        event_id=event.pk,
        currency=event.currency,
        transaction_count=len(lines),
        gross=gross,
        platform_fees=platform_fees,
        processor_fees=processor_fees,
        net_payout=net,
        paid_out=paid_out,
        pending_payout=pending_payout,
        remaining_due=net - paid_out - pending_payout,
    )


def platform_finance_summary() -> PlatformFinanceSummary:
    """Aggregate every succeeded transaction on the platform."""
    transactions = Transaction.objects.settled().select_related("reservation__event")
    lines = [reconcile_transaction(transaction) for transaction in transactions.iterator()]
    gross, platform_fees, processor_fees, net = _sum_lines(lines)
    paid_out = _payout_total(Payout.objects.paid())

    return PlatformFinanceSummary(
        transaction_count=len(lines),
        gross_volume=gross,
        platform_revenue=platform_fees,
        processor_fees=processor_fees,
        organizer_net=net,
        paid_out=paid_out,
        outstanding=net - paid_out,
    )
