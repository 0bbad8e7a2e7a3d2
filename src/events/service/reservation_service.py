"""Reservations: time-boxed holds on ticket inventory and their pricing."""

import typing as t
from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID

import structlog
from django.contrib.auth.models import AbstractBaseUser
from django.db import transaction

from events.exceptions import (
    InvalidAddonError,
    InvalidDiscountCodeError,
    ReservationError,
    TierSoldOutError,
)
from events.models import Discount, Event, EventAddon, Reservation, ReservationAddon, TicketTier
from finance.service.fee_service import ZERO, FeeBreakdown, FeeRates, calculate_fees, get_effective_fee_rates

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class AddonLine:
    addon: EventAddon
    quantity: int
    unit_price: Decimal

    @property
    def line_total(self) -> Decimal:
        """Unit price times quantity."""
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class CheckoutQuote:
    """Everything a guest is shown before paying.

    ``ticket_subtotal`` is after the discount; the platform fee is charged on it.
    """

    event: Event
    tier: TicketTier
    quantity: int
    unit_price: Decimal
    gross_ticket_subtotal: Decimal
    discount_amount: Decimal
    ticket_subtotal: Decimal
    addon_subtotal: Decimal
    breakdown: FeeBreakdown
    addon_lines: list[AddonLine] = field(default_factory=list)
    discount: Discount | None = None

    @property
    def currency(self) -> str:
        """The event currency."""
        return self.event.currency

    @property
    def customer_total(self) -> Decimal:
        """What the gateway charges."""
        return self.breakdown.customer_total


def build_quote(
    event: Event,
    tier: TicketTier,
    quantity: int,
    *,
    discount: Discount | None = None,
    addon_lines: t.Sequence[AddonLine] = (),
    rates: FeeRates | None = None,
) -> CheckoutQuote:
    """Price a basket at the current effective rates."""
    if quantity < 1:
        raise ReservationError("Quantity must be at least one.")
    gross_ticket_subtotal = tier.price * quantity
    discount_amount = discount.calculate_discount_amount(gross_ticket_subtotal) if discount else ZERO
    ticket_subtotal = gross_ticket_subtotal - discount_amount
    addon_subtotal = sum((line.line_total for line in addon_lines), ZERO)

    breakdown = calculate_fees(
        ticket_subtotal,
        addon_subtotal,
        event.fee_bearer,
        rates if rates is not None else get_effective_fee_rates(event),
    )
    return CheckoutQuote(
        event=event,
        tier=tier,
        quantity=quantity,
        unit_price=tier.price,
        gross_ticket_subtotal=gross_ticket_subtotal,
        discount_amount=discount_amount,
        ticket_subtotal=breakdown.ticket_subtotal,
        addon_subtotal=breakdown.addon_subtotal,
        breakdown=breakdown,
        addon_lines=list(addon_lines),
        discount=discount,
    )


def resolve_discount(event: Event, code: str | None, *, lock: bool = False) -> Discount | None:
    """Look up a redeemable discount code for the event.

    With ``lock`` the discount row stays locked until the surrounding
    transaction ends, so concurrent reservations cannot overrun ``max_uses``.
    """
    if not code:
        return None
    discounts = Discount.objects.select_for_update() if lock else Discount.objects.all()
    discount = discounts.filter(event=event, code__iexact=code.strip()).first()
    if discount is None or not discount.is_redeemable():
        raise InvalidDiscountCodeError(f"Discount code {code!r} is not valid for this event.")
    return discount


def resolve_addons(event: Event, selections: t.Mapping[UUID, int] | None) -> list[AddonLine]:
    """Turn addon id -> quantity selections into priced lines at the current catalogue price."""
    if not selections:
        return []
    addons = {addon.pk: addon for addon in EventAddon.objects.filter(event=event, is_active=True, pk__in=selections)}
    lines = []
    for addon_id, quantity in selections.items():
        addon = addons.get(addon_id)
        if addon is None:
            raise InvalidAddonError(f"Add-on {addon_id} is not available for this event.")
        if quantity < 1:
            raise InvalidAddonError(f"Add-on quantity for {addon.name} must be at least one.")
        lines.append(AddonLine(addon=addon, quantity=quantity, unit_price=addon.price))
    return lines


def quote_basket(
    event: Event,
    tier: TicketTier,
    quantity: int,
    *,
    discount_code: str | None = None,
    addons: t.Mapping[UUID, int] | None = None,
) -> CheckoutQuote:
    """Price a prospective basket without holding inventory."""
    if tier.event_id != event.pk:
        raise ReservationError("The ticket tier does not belong to this event.")
    return build_quote(
        event,
        tier,
        quantity,
        discount=resolve_discount(event, discount_code),
        addon_lines=resolve_addons(event, addons),
    )


@transaction.atomic
def create_reservation(
    event: Event,
    tier: TicketTier,
    quantity: int,
    guest_email: str,
    *,
    guest_name: str = "",
    user: AbstractBaseUser | None = None,
    discount_code: str | None = None,
    addons: t.Mapping[UUID, int] | None = None,
) -> Reservation:
    """Hold inventory for a guest until the reservation expires.

    The tier row is locked while availability is checked so two concurrent
    checkouts cannot both take the last tickets.
    """
    if tier.event_id != event.pk:
        raise ReservationError("The ticket tier does not belong to this event.")
    if quantity < 1:
        raise ReservationError("Quantity must be at least one.")

    locked_tier = TicketTier.objects.select_for_update().get(pk=tier.pk)
    available = locked_tier.available_quantity()
    if available is not None and quantity > available:
        logger.info(
            "reservation_tier_sold_out",
            event_id=str(event.pk),
            tier_id=str(tier.pk),
            requested=quantity,
            available=available,
        )
        raise TierSoldOutError(f"Only {available} tickets left for {locked_tier.name}.")

    discount = resolve_discount(event, discount_code, lock=True)
    addon_lines = resolve_addons(event, addons)

    reservation = Reservation.objects.create(
        event=event,
        tier=locked_tier,
        quantity=quantity,
        user=user,
        guest_email=guest_email,
        guest_name=guest_name,
        discount=discount,
    )
    ReservationAddon.objects.bulk_create(
        [
            ReservationAddon(
                reservation=reservation,
                addon=line.addon,
                quantity=line.quantity,
                unit_price=line.unit_price,
            )
            for line in addon_lines
        ]
    )

    logger.info(
        "reservation_created",
        reservation_id=str(reservation.pk),
        event_id=str(event.pk),
        tier_id=str(tier.pk),
        quantity=quantity,
        discount_code=discount.code if discount else None,
        expires_at=reservation.expires_at.isoformat(),
    )
    return reservation


def price_reservation(reservation: Reservation, rates: FeeRates | None = None) -> CheckoutQuote:
    """Price a reservation using the add-on prices captured when it was created."""
    addon_lines = [
        AddonLine(addon=item.addon, quantity=item.quantity, unit_price=item.unit_price)
        for item in reservation.reservation_addons.select_related("addon")
    ]
    return build_quote(
        reservation.event,
        reservation.tier,
        reservation.quantity,
        discount=reservation.discount,
        addon_lines=addon_lines,
        rates=rates,
    )


def expire_reservations() -> int:
    """Expire pending reservations whose hold has run out.

    Reservations with a payment still pending at the gateway are left alone;
    the pending-transaction poller settles them either way.
    """
    stale = Reservation.objects.stale().exclude(transactions__status="pending")
    expired = stale.update(status=Reservation.Status.EXPIRED)
    if expired:
        logger.info("reservations_expired", count=expired)
    return expired
