"""Payout requests and their settlement lifecycle.

pending -> processing -> paid, with failed reachable from pending or processing.
"""

from decimal import Decimal

import structlog
from django.contrib.auth.models import User
from django.db import transaction
from django.utils import timezone
from ninja.errors import HttpError

from events.models import Event
from finance.exceptions import InsufficientPayoutBalanceError, InvalidPayoutStateError, PayoutAlreadyPendingError
from finance.models import Payout
from finance.service.fee_service import ZERO, quantize_money
from finance.service.reconciliation_service import event_finance_summary

logger = structlog.get_logger(__name__)

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    Payout.Status.PENDING: frozenset({Payout.Status.PROCESSING, Payout.Status.PAID, Payout.Status.FAILED}),
    Payout.Status.PROCESSING: frozenset({Payout.Status.PAID, Payout.Status.FAILED}),
    Payout.Status.PAID: frozenset(),
    Payout.Status.FAILED: frozenset(),
}


@transaction.atomic
def request_payout(event: Event, user: User, amount: Decimal | None = None) -> Payout:
    """Request a payout of an event's remaining balance.

    Only the organizer's owner and team members may request. ``amount``
    defaults to everything still due.
    """
    event = Event.objects.select_for_update().select_related("organizer").get(pk=event.pk)
    organizer = event.organizer
    if not (user.is_superuser or organizer.is_team_member(user)):
        raise HttpError(403, "You do not have permission to request payouts for this event.")

    if Payout.objects.filter(event=event).in_flight().exists():
        raise PayoutAlreadyPendingError(
            "You already have a pending payout request. Please wait for it to be processed."
        )

    summary = event_finance_summary(event)
    amount = quantize_money(amount) if amount is not None else summary.remaining_due
    if amount <= ZERO:
        raise InsufficientPayoutBalanceError("There is nothing left to pay out for this event.")
    if amount > summary.remaining_due:
        raise InsufficientPayoutBalanceError(
            f"Requested {amount} {event.currency} but only {summary.remaining_due} {event.currency} is due."
        )

    payout = Payout.objects.create(
        event=event,
        organizer=organizer,
        amount=amount,
        currency=event.currency,
        requested_by=user,
        notes=f"Payout request initiated by user {user.email or user.get_username()}",
    )
    logger.info(
        "payout_requested",
        payout_id=str(payout.pk),
        event_id=str(event.pk),
        organizer_id=str(organizer.pk),
        user_id=str(user.pk),
        amount=str(amount),
        remaining_due=str(summary.remaining_due),
    )
    return payout


def _transition(payout: Payout, target: str) -> Payout:
    payout = Payout.objects.select_for_update().get(pk=payout.pk)
    if target not in ALLOWED_TRANSITIONS[payout.status]:
        raise InvalidPayoutStateError(f"A {payout.status} payout cannot become {target}.")
    payout.status = target
    return payout


@transaction.atomic
def mark_payout_processing(payout: Payout, admin: User) -> Payout:
    """Mark a pending payout as being transferred."""
    payout = _transition(payout, Payout.Status.PROCESSING)
    payout.processed_by = admin
    payout.save(update_fields=["status", "processed_by", "updated_at"])
    logger.info("payout_processing", payout_id=str(payout.pk), admin_id=str(admin.pk))
    return payout


@transaction.atomic
def approve_payout(payout: Payout, admin: User, reference: str | None = None) -> Payout:
    """Record that the money reached the organizer."""
    payout = _transition(payout, Payout.Status.PAID)
    payout.processed_by = admin
    payout.paid_at = timezone.now()
    payout.reference = reference or None
    payout.save(update_fields=["status", "processed_by", "paid_at", "reference", "updated_at"])
    logger.info(
        "payout_paid",
        payout_id=str(payout.pk),
        admin_id=str(admin.pk),
        amount=str(payout.amount),
        currency=payout.currency,
        reference=payout.reference,
    )
    return payout


@transaction.atomic
def reject_payout(payout: Payout, admin: User, reason: str) -> Payout:
    """Fail a payout; its amount becomes requestable again."""
    payout = _transition(payout, Payout.Status.FAILED)
    payout.processed_by = admin
    payout.notes = f"Rejected: {reason}"
    payout.save(update_fields=["status", "processed_by", "notes", "updated_at"])
    logger.info("payout_rejected", payout_id=str(payout.pk), admin_id=str(admin.pk), reason=reason)
    return payout
