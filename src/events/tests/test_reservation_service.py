"""Tests for reservations and basket pricing."""

import uuid
from datetime import timedelta
from decimal import Decimal

import pytest
from django.contrib.auth.models import User
from django.utils import timezone
from freezegun import freeze_time

from events.exceptions import InvalidAddonError, InvalidDiscountCodeError, ReservationError, TierSoldOutError
from events.models import Discount, Event, EventAddon, Reservation, ReservationAddon, TicketTier
from events.service import reservation_service
from finance.models import Transaction
from finance.service.fee_service import FeeRates

pytestmark = pytest.mark.django_db


class TestQuoteBasket:
    def test_customer_bearer_quote(self, event: Event, tier: TicketTier) -> None:
        quote = reservation_service.quote_basket(event, tier, 2)

        assert quote.gross_ticket_subtotal == Decimal("100.00")
        assert quote.breakdown.platform_fee == Decimal("5.00")
        assert quote.breakdown.processor_fee == Decimal("2.00")
        assert quote.customer_total == Decimal("107.00")
        assert quote.currency == "GHS"

    def test_discount_reduces_platform_fee_base(self, event: Event, tier: TicketTier, discount: Discount) -> None:
        quote = reservation_service.quote_basket(event, tier, 2, discount_code="early10")

        assert quote.discount_amount == Decimal("10.00")
        assert quote.ticket_subtotal == Decimal("90.00")
        assert quote.breakdown.platform_fee == Decimal("4.50")
        assert quote.discount == discount

    def test_fixed_discount_capped_at_subtotal(self, event: Event, tier: TicketTier) -> None:
        Discount.objects.create(
            event=event, code="FREEBIE", discount_type=Discount.DiscountType.FIXED, value=Decimal("500")
        )

        quote = reservation_service.quote_basket(event, tier, 1, discount_code="FREEBIE")

        assert quote.discount_amount == Decimal("50.00")
        assert quote.customer_total == Decimal("0.00")

    def test_addons_priced_and_charged_processor_fee(self, event: Event, tier: TicketTier, addon: EventAddon) -> None:
        quote = reservation_service.quote_basket(event, tier, 2, addons={addon.pk: 2})

        assert quote.addon_subtotal == Decimal("40.00")
        assert quote.breakdown.platform_fee == Decimal("5.00")
        assert quote.breakdown.processor_fee == Decimal("2.80")
        assert quote.customer_total == Decimal("147.80")
        assert [(line.addon, line.quantity) for line in quote.addon_lines] == [(addon, 2)]

    def test_explicit_rates(self, event: Event, tier: TicketTier) -> None:
        rates = FeeRates(platform_rate=Decimal("0"), processor_rate=Decimal("0"))

        quote = reservation_service.build_quote(event, tier, 1, rates=rates)

        assert quote.customer_total == Decimal("50.00")

    def test_unknown_discount(self, event: Event, tier: TicketTier) -> None:
        with pytest.raises(InvalidDiscountCodeError):
            reservation_service.quote_basket(event, tier, 1, discount_code="NOPE")

    def test_expired_discount(self, event: Event, tier: TicketTier, discount: Discount) -> None:
        discount.expires_at = timezone.now() - timedelta(days=1)
        discount.save()

        with pytest.raises(InvalidDiscountCodeError):
            reservation_service.quote_basket(event, tier, 1, discount_code="EARLY10")

    def test_used_up_discount(self, event: Event, tier: TicketTier, discount: Discount) -> None:
        discount.max_uses = 1
        discount.used_count = 1
        discount.save()

        with pytest.raises(InvalidDiscountCodeError):
            reservation_service.quote_basket(event, tier, 1, discount_code="EARLY10")

    def test_inactive_addon(self, event: Event, tier: TicketTier, addon: EventAddon) -> None:
        addon.is_active = False
        addon.save()

        with pytest.raises(InvalidAddonError):
            reservation_service.quote_basket(event, tier, 1, addons={addon.pk: 1})

    def test_foreign_addon(self, event: Event, tier: TicketTier) -> None:
        with pytest.raises(InvalidAddonError):
            reservation_service.quote_basket(event, tier, 1, addons={uuid.uuid4(): 1})

    def test_tier_of_another_event(self, event: Event) -> None:
        other = Event.objects.create(organizer=event.organizer, title="Other", starts_at=event.starts_at)
        other_tier = TicketTier.objects.create(event=other, name="GA", price=Decimal("10"))

        with pytest.raises(ReservationError):
            reservation_service.quote_basket(event, other_tier, 1)


class TestCreateReservation:
    def test_holds_inventory(self, event: Event, tier: TicketTier) -> None:
        reservation = reservation_service.create_reservation(event, tier, 3, "guest@example.com", guest_name="Ama")

        assert reservation.status == Reservation.Status.PENDING
        assert reservation.expires_at > timezone.now()
        assert reservation.guest_name == "Ama"
        tier.refresh_from_db()
        assert tier.quantity_sold == 0
        assert tier.available_quantity() == 7

    def test_sold_out(self, event: Event, tier: TicketTier) -> None:
        reservation_service.create_reservation(event, tier, 8, "a@example.com")

        with pytest.raises(TierSoldOutError):
            reservation_service.create_reservation(event, tier, 3, "b@example.com")

    def test_expired_holds_release_inventory(self, event: Event, tier: TicketTier) -> None:
        reservation_service.create_reservation(event, tier, 10, "a@example.com")

        with freeze_time(timezone.now() + timedelta(minutes=30)):
            reservation = reservation_service.create_reservation(event, tier, 10, "b@example.com")

        assert reservation.quantity == 10

    def test_unlimited_tier(self, event: Event) -> None:
        unlimited = TicketTier.objects.create(event=event, name="Unlimited", price=Decimal("5"))

        reservation = reservation_service.create_reservation(event, unlimited, 50, "a@example.com")

        assert unlimited.available_quantity() is None
        assert reservation.quantity == 50

    def test_snapshots_addon_prices(self, event: Event, tier: TicketTier, addon: EventAddon) -> None:
        reservation = reservation_service.create_reservation(event, tier, 1, "a@example.com", addons={addon.pk: 2})
        addon.price = Decimal("99.00")
        addon.save()

        quote = reservation_service.price_reservation(reservation)

        item = ReservationAddon.objects.get(reservation=reservation)
        assert item.unit_price == Decimal("20.00")
        assert quote.addon_subtotal == Decimal("40.00")

    def test_records_user_and_discount(
        self, event: Event, tier: TicketTier, discount: Discount, nonmember_user: User
    ) -> None:
        reservation = reservation_service.create_reservation(
            event, tier, 1, "a@example.com", user=nonmember_user, discount_code="EARLY10"
        )

        assert reservation.user == nonmember_user
        assert reservation.discount == discount

    def test_single_use_code_cannot_be_held_twice(self, event: Event, tier: TicketTier, discount: Discount) -> None:
        discount.max_uses = 1
        discount.save()
        reservation_service.create_reservation(event, tier, 1, "a@example.com", discount_code="EARLY10")

        with pytest.raises(InvalidDiscountCodeError):
            reservation_service.create_reservation(event, tier, 1, "b@example.com", discount_code="EARLY10")

        assert Reservation.objects.count() == 1

    def test_invalid_discount_creates_nothing(self, event: Event, tier: TicketTier) -> None:
        with pytest.raises(InvalidDiscountCodeError):
            reservation_service.create_reservation(event, tier, 1, "a@example.com", discount_code="NOPE")

        assert not Reservation.objects.exists()

    def test_quantity_must_be_positive(self, event: Event, tier: TicketTier) -> None:
        with pytest.raises(ReservationError):
            reservation_service.create_reservation(event, tier, 0, "a@example.com")


class TestExpireReservations:
    def test_expires_stale_holds(self, reservation: Reservation) -> None:
        with freeze_time(reservation.expires_at + timedelta(seconds=1)):
            count = reservation_service.expire_reservations()

        reservation.refresh_from_db()
        assert count == 1
        assert reservation.status == Reservation.Status.EXPIRED

    def test_leaves_active_holds(self, reservation: Reservation) -> None:
        assert reservation_service.expire_reservations() == 0

    def test_skips_reservations_with_pending_payment(self, reservation: Reservation) -> None:
        Transaction.objects.create(
            reservation=reservation,
            reference="GP-PENDING",
            amount=Decimal("107.00"),
            ticket_subtotal=Decimal("100.00"),
            fee_bearer=Event.FeeBearer.CUSTOMER,
        )

        with freeze_time(reservation.expires_at + timedelta(seconds=1)):
            count = reservation_service.expire_reservations()

        assert count == 0

    def test_is_idempotent(self, reservation: Reservation) -> None:
        with freeze_time(reservation.expires_at + timedelta(seconds=1)):
            reservation_service.expire_reservations()
            assert reservation_service.expire_reservations() == 0
