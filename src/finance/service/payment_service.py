"""Checkout payments through Paystack.

A Transaction is created when payment is initialized and carries the fee
snapshot of the quote the guest accepted. The gateway later settles it via
the webhook, the verify endpoint or the polling task; all three go through
``process_successful_payment``, which is idempotent.
"""

import typing as t
import uuid

import structlog
from django.conf import settings
from django.db import transaction as db_transaction
from django.db.models import F
from django.utils import timezone
from django.utils.dateparse import parse_datetime
from ninja.errors import HttpError

from events.exceptions import ReservationNotPayableError
from events.models import Discount, Reservation, Ticket, TicketTier
from events.service.reservation_service import AddonLine, CheckoutQuote, price_reservation
from finance.exceptions import PaymentAmountMismatchError
from finance.models import Transaction
from finance.service import paystack_service
from finance.service.fee_service import ZERO, FeeBreakdown, FeeRates, from_minor_units, quantize_money, to_minor_units
from finance.service.reconciliation_service import reconcile_transaction

logger = structlog.get_logger(__name__)

GATEWAY_FAILED_STATUSES = frozenset({"failed", "reversed"})


def generate_reference() -> str:
    """A unique, gateway-safe transaction reference."""
    return f"GP-{uuid.uuid4().hex[:20].upper()}"


def _snapshot_fields(quote: CheckoutQuote) -> dict[str, t.Any]:
    breakdown = quote.breakdown
    rates = breakdown.rates
    return {
        "amount": breakdown.customer_total,
        "currency": quote.currency,
        "ticket_subtotal": breakdown.ticket_subtotal,
        "addon_subtotal": breakdown.addon_subtotal,
        "discount_amount": quote.discount_amount,
        "fee_bearer": breakdown.fee_bearer,
        "applied_fee_rate": rates.platform_rate if rates else None,
        "applied_processor_rate": rates.processor_rate if rates else None,
        "platform_fee": breakdown.platform_fee,
        "applied_processor_fee": breakdown.processor_fee,
    }


def _priced_transaction(reservation: Reservation) -> Transaction | None:
    transactions = reservation.transactions.order_by("-created_at")
    settled = transactions.filter(status__in=[Transaction.Status.SUCCEEDED, Transaction.Status.REFUNDED]).first()
    return settled or transactions.filter(status=Transaction.Status.PENDING).first()


def quote_from_transaction(reservation: Reservation, txn: Transaction) -> CheckoutQuote:
    """Rebuild the quote a guest accepted from the transaction's fee snapshot."""
    line = reconcile_transaction(txn)
    subtotal = txn.ticket_subtotal + txn.addon_subtotal
    rates = None
    if txn.applied_fee_rate is not None and txn.applied_processor_rate is not None:
        rates = FeeRates(platform_rate=txn.applied_fee_rate, processor_rate=txn.applied_processor_rate)
    breakdown = FeeBreakdown(
        ticket_subtotal=txn.ticket_subtotal,
        addon_subtotal=txn.addon_subtotal,
        subtotal=subtotal,
        platform_fee=line.platform_fee,
        processor_fee=line.processor_fee,
        customer_fees=txn.amount - subtotal,
        customer_total=txn.amount,
        organizer_net=line.net,
        fee_bearer=txn.fee_bearer,
        rates=rates,
    )
    gross_ticket_subtotal = txn.ticket_subtotal + txn.discount_amount
    return CheckoutQuote(
        event=reservation.event,
        tier=reservation.tier,
        quantity=reservation.quantity,
        unit_price=quantize_money(gross_ticket_subtotal / reservation.quantity),
        gross_ticket_subtotal=gross_ticket_subtotal,
        discount_amount=txn.discount_amount,
        ticket_subtotal=txn.ticket_subtotal,
        addon_subtotal=txn.addon_subtotal,
        breakdown=breakdown,
        addon_lines=[
            AddonLine(addon=item.addon, quantity=item.quantity, unit_price=item.unit_price)
            for item in reservation.reservation_addons.all()
        ],
        discount=reservation.discount,
    )


def checkout_quote(reservation: Reservation) -> CheckoutQuote:
    """The price of a reservation as the guest sees it.

    Once a payment was opened, the settled (or otherwise the latest pending)
    transaction carries the authoritative price. Current rates only apply to
    reservations that never reached the gateway.
    """
    txn = _priced_transaction(reservation)
    if txn is None:
        return price_reservation(reservation)
    return quote_from_transaction(reservation, txn)


@db_transaction.atomic
def initialize_payment(reservation: Reservation, callback_url: str | None = None) -> tuple[str | None, Transaction]:
    """Price the reservation, snapshot the fees and open a Paystack transaction.

    Returns the authorization URL to redirect the guest to, or None when the
    basket is free and was settled on the spot.
    """
    reservation = Reservation.objects.select_for_update().select_related("event__organizer", "tier").get(
        pk=reservation.pk
    )
    if not reservation.is_payable:
        raise ReservationNotPayableError("This reservation has expired or was already paid.")

    quote = price_reservation(reservation)
    existing = (
        reservation.transactions.filter(status=Transaction.Status.PENDING, amount=quote.customer_total)
        .order_by("-created_at")
        .first()
    )
    if existing and existing.raw_response.get("authorization_url"):
        logger.info("payment_initialize_reused", reference=existing.reference, reservation_id=str(reservation.pk))
        return existing.raw_response["authorization_url"], existing

    txn = Transaction.objects.create(
        reservation=reservation,
        reference=generate_reference(),
        **_snapshot_fields(quote),
    )

    if quote.customer_total == ZERO:
        txn.status = Transaction.Status.SUCCEEDED
        txn.channel = "free"
        txn.paid_at = timezone.now()
        txn.save(update_fields=["status", "channel", "paid_at", "updated_at"])
        _fulfil_reservation(txn)
        logger.info("free_checkout_completed", reference=txn.reference, reservation_id=str(reservation.pk))
        return None, txn

    event = reservation.event
    data = paystack_service.initialize_transaction(
        email=reservation.guest_email,
        amount_minor=to_minor_units(quote.customer_total),
        currency=quote.currency,
        reference=txn.reference,
        callback_url=callback_url or f"{settings.FRONTEND_BASE_URL}/checkout/{reservation.pk}/complete",
        metadata={
            "reservation_id": str(reservation.pk),
            "event_id": str(event.pk),
            "tier_id": str(reservation.tier_id),
            "quantity": reservation.quantity,
        },
        subaccount=event.organizer.paystack_subaccount_code,
    )
    txn.raw_response = data
    txn.save(update_fields=["raw_response", "updated_at"])

    logger.info(
        "payment_initialized",
        reference=txn.reference,
        reservation_id=str(reservation.pk),
        amount=str(txn.amount),
        currency=txn.currency,
        platform_fee=str(txn.platform_fee),
        processor_fee=str(txn.applied_processor_fee),
        fee_bearer=txn.fee_bearer,
    )
    return t.cast(str | None, data.get("authorization_url")), txn


def verify_payment(reference: str) -> Transaction:
    """Ask the gateway about a pending transaction and settle it accordingly."""
    txn = Transaction.objects.select_related("reservation").filter(reference=reference).first()
    if txn is None:
        raise HttpError(404, "Transaction not found.")
    if txn.status != Transaction.Status.PENDING:
        return txn

    data = paystack_service.verify_transaction(reference)
    gateway_status = data.get("status")
    if gateway_status == "success":
        return process_successful_payment(reference, data)
    if gateway_status in GATEWAY_FAILED_STATUSES or (
        gateway_status == "abandoned" and txn.reservation.has_expired()
    ):
        return mark_payment_failed(reference, data)

    logger.info("payment_still_pending", reference=reference, gateway_status=gateway_status)
    return txn


@db_transaction.atomic
def mark_payment_failed(reference: str, gateway_data: dict[str, t.Any]) -> Transaction:
    """Record that the gateway will not settle a pending transaction."""
    txn = Transaction.objects.select_for_update().get(reference=reference)
    if txn.status != Transaction.Status.PENDING:
        return txn
    txn.status = Transaction.Status.FAILED
    txn.raw_response = gateway_data
    txn.save(update_fields=["status", "raw_response", "updated_at"])
    logger.info("payment_failed", reference=reference, gateway_status=gateway_data.get("status"))
    return txn


@db_transaction.atomic
def process_successful_payment(reference: str, gateway_data: dict[str, t.Any]) -> Transaction:
    """Settle a transaction the gateway reports as paid.

    The settled amount must match the snapshot exactly; anything else is left
    pending for manual review. Calling this twice is a no-op.
    """
    txn = Transaction.objects.select_for_update().get(reference=reference)
    if txn.status in (Transaction.Status.SUCCEEDED, Transaction.Status.REFUNDED):
        logger.warning("paystack_duplicate_payment_success", reference=reference, status=txn.status)
        return txn

    settled_amount = from_minor_units(int(gateway_data.get("amount", 0)))
    settled_currency = (gateway_data.get("currency") or txn.currency).upper()
    if settled_amount != txn.amount or settled_currency != txn.currency:
        logger.error(
            "payment_amount_mismatch",
            reference=reference,
            expected_amount=str(txn.amount),
            expected_currency=txn.currency,
            settled_amount=str(settled_amount),
            settled_currency=settled_currency,
        )
        raise PaymentAmountMismatchError(
            f"Transaction {reference} settled {settled_amount} {settled_currency}, expected {txn.amount} {txn.currency}."
        )

    paid_at = gateway_data.get("paid_at") or gateway_data.get("paidAt")
    txn.status = Transaction.Status.SUCCEEDED
    txn.channel = gateway_data.get("channel") or ""
    txn.paid_at = (parse_datetime(paid_at) if paid_at else None) or timezone.now()
    txn.raw_response = gateway_data
    txn.save(update_fields=["status", "channel", "paid_at", "raw_response", "updated_at"])

    _fulfil_reservation(txn)
    logger.info(
        "payment_succeeded",
        reference=reference,
        reservation_id=str(txn.reservation_id),
        amount=str(txn.amount),
        currency=txn.currency,
        channel=txn.channel,
    )
    return txn


def _fulfil_reservation(txn: Transaction) -> list[Ticket]:
    reservation = Reservation.objects.select_for_update().get(pk=txn.reservation_id)
    if reservation.status == Reservation.Status.CONFIRMED:
        logger.warning("reservation_already_confirmed", reservation_id=str(reservation.pk), reference=txn.reference)
        return []
    if reservation.status != Reservation.Status.PENDING or reservation.has_expired():
        # The guest paid, so the sale stands even though the hold ran out
        logger.warning(
            "payment_settled_after_hold_expired",
            reservation_id=str(reservation.pk),
            reference=txn.reference,
            reservation_status=reservation.status,
        )

    reservation.status = Reservation.Status.CONFIRMED
    reservation.save(update_fields=["status", "updated_at"])
    TicketTier.objects.filter(pk=reservation.tier_id).update(quantity_sold=F("quantity_sold") + reservation.quantity)
    if reservation.discount_id:
        discount = Discount.objects.select_for_update().get(pk=reservation.discount_id)
        if discount.max_uses is not None and discount.used_count >= discount.max_uses:
            # Only possible when the hold ran out before the guest paid
            logger.warning(
                "discount_redeemed_past_limit",
                discount_id=str(discount.pk),
                reservation_id=str(reservation.pk),
                used_count=discount.used_count,
                max_uses=discount.max_uses,
            )
        Discount.objects.filter(pk=discount.pk).update(used_count=F("used_count") + 1)

    return Ticket.objects.bulk_create(
        [
            Ticket(
                event_id=reservation.event_id,
                tier_id=reservation.tier_id,
                reservation=reservation,
                order_reference=txn.reference,
            )
            for _ in range(reservation.quantity)
        ]
    )


@db_transaction.atomic
def process_refund(reference: str, gateway_data: dict[str, t.Any] | None = None) -> Transaction:
    """Refund a settled transaction: cancel its tickets and release the inventory.

    A refunded transaction no longer counts towards the organizer's payout.
    """
    txn = Transaction.objects.select_for_update().get(reference=reference)
    if txn.status == Transaction.Status.REFUNDED:
        logger.warning("paystack_duplicate_refund", reference=reference)
        return txn
    if txn.status != Transaction.Status.SUCCEEDED:
        logger.warning("refund_for_unsettled_transaction", reference=reference, status=txn.status)
        return txn

    txn.status = Transaction.Status.REFUNDED
    if gateway_data:
        txn.raw_response = {**txn.raw_response, "refund": gateway_data}
    txn.save(update_fields=["status", "raw_response", "updated_at"])

    reservation = Reservation.objects.select_for_update().get(pk=txn.reservation_id)
    cancelled = Ticket.objects.filter(reservation=reservation, order_reference=reference).update(
        status=Ticket.Status.CANCELLED
    )
    TicketTier.objects.filter(pk=reservation.tier_id).update(quantity_sold=F("quantity_sold") - reservation.quantity)
    reservation.status = Reservation.Status.CANCELLED
    reservation.save(update_fields=["status", "updated_at"])

    logger.info(
        "payment_refunded",
        reference=reference,
        reservation_id=str(reservation.pk),
        tickets_cancelled=cancelled,
        amount=str(txn.amount),
        currency=txn.currency,
    )
    return txn


class PaystackEventHandler:
    """Handles the business logic for the Paystack webhook events we care about."""

    def __init__(self, payload: dict[str, t.Any]):
        """Initialize the handler with the decoded webhook body."""
        self.payload = payload

    def handle(self) -> None:
        """Routes the event to the appropriate handler based on its type."""
        event_type = str(self.payload.get("event", ""))
        handler_method = getattr(self, f"handle_{event_type.replace('.', '_')}", self.handle_unknown_event)
        handler_method(self.payload.get("data") or {})

    def handle_unknown_event(self, data: dict[str, t.Any]) -> None:
        """Log unhandled event types."""
        logger.info("paystack_webhook_unhandled_event", event_type=self.payload.get("event"))

    def handle_charge_success(self, data: dict[str, t.Any]) -> None:
        """A charge was paid."""
        reference = data.get("reference")
        if not reference or not Transaction.objects.filter(reference=reference).exists():
            logger.warning("paystack_charge_unknown_reference", reference=reference)
            return
        process_successful_payment(reference, data)

    def handle_refund_processed(self, data: dict[str, t.Any]) -> None:
        """A refund went through at the gateway."""
        reference = data.get("transaction_reference") or (data.get("transaction") or {}).get("reference")
        if not reference or not Transaction.objects.filter(reference=reference).exists():
            logger.warning("paystack_refund_unknown_reference", reference=reference)
            return
        process_refund(reference, data)
