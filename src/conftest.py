"""Shared fixtures: users, an organizer with a published event, and fee configuration."""

import typing as t
from datetime import timedelta
from decimal import Decimal

import pytest
from django.contrib.auth.models import User
from django.test.client import Client
from django.utils import timezone
from ninja_jwt.tokens import RefreshToken

from events.models import (
    Discount,
    Event,
    EventAddon,
    Organizer,
    OrganizerTeamMember,
    Reservation,
    TicketTier,
)
from finance.models import FeeSettings


@pytest.fixture(autouse=True)
def enable_celery_eager_mode(settings: t.Any) -> None:
    """Run Celery tasks synchronously in tests."""
    settings.CELERY_TASK_ALWAYS_EAGER = True
    settings.CELERY_TASK_EAGER_PROPAGATES = True


@pytest.fixture(autouse=True)
def paystack_settings(settings: t.Any) -> None:
    """Never talk to the real gateway."""
    settings.PAYSTACK_SECRET_KEY = "sk_test_secret"
    settings.PAYSTACK_BASE_URL = "https://paystack.test"


def auth_client(user: User) -> Client:
    refresh = RefreshToken.for_user(user)
    return Client(HTTP_AUTHORIZATION=f"Bearer {str(refresh.access_token)}")  # type: ignore[attr-defined]


@pytest.fixture
def organizer_owner(django_user_model: t.Type[User]) -> User:
    return django_user_model.objects.create_user(username="owner", email="owner@example.com", password="pass")


@pytest.fixture
def team_user(django_user_model: t.Type[User]) -> User:
    return django_user_model.objects.create_user(username="staff", email="staff@example.com", password="pass")


@pytest.fixture
def nonmember_user(django_user_model: t.Type[User]) -> User:
    return django_user_model.objects.create_user(username="outsider", email="outsider@example.com", password="pass")


@pytest.fixture
def superuser(django_user_model: t.Type[User]) -> User:
    """A platform admin."""
    return django_user_model.objects.create_superuser(username="super", email="super@example.com", password="pass")


@pytest.fixture
def organizer(organizer_owner: User) -> Organizer:
    return Organizer.objects.create(name="Afro Nation", owner=organizer_owner, contact_email="hello@afronation.test")


@pytest.fixture
def team_member(organizer: Organizer, team_user: User) -> OrganizerTeamMember:
    return OrganizerTeamMember.objects.create(organizer=organizer, user=team_user)


@pytest.fixture
def fee_settings() -> FeeSettings:
    """System rates of 5% platform and 2% processor."""
    fee_settings = FeeSettings.get_solo()
    fee_settings.platform_fee_percent = Decimal("5.00")
    fee_settings.processor_fee_percent = Decimal("2.00")
    fee_settings.save()
    return fee_settings


@pytest.fixture
def event(organizer: Organizer, fee_settings: FeeSettings) -> Event:
    return Event.objects.create(
        organizer=organizer,
        title="Detty December Live",
        starts_at=timezone.now() + timedelta(days=14),
        is_published=True,
        currency="GHS",
    )


@pytest.fixture
def tier(event: Event) -> TicketTier:
    return TicketTier.objects.create(event=event, name="Regular", price=Decimal("50.00"), total_quantity=10)


@pytest.fixture
def free_tier(event: Event) -> TicketTier:
    return TicketTier.objects.create(event=event, name="Community", price=Decimal("0"), total_quantity=10)


@pytest.fixture
def addon(event: Event) -> EventAddon:
    return EventAddon.objects.create(event=event, name="Parking", price=Decimal("20.00"))


@pytest.fixture
def discount(event: Event) -> Discount:
    return Discount.objects.create(
        event=event, code="EARLY10", discount_type=Discount.DiscountType.PERCENTAGE, value=Decimal("10")
    )


@pytest.fixture
def reservation(event: Event, tier: TicketTier) -> Reservation:
    """Two regular tickets: 100.00 subtotal."""
    return Reservation.objects.create(event=event, tier=tier, quantity=2, guest_email="guest@example.com")


@pytest.fixture
def owner_client(organizer_owner: User) -> Client:
    return auth_client(organizer_owner)


@pytest.fixture
def team_client(team_user: User, team_member: OrganizerTeamMember) -> Client:
    return auth_client(team_user)


@pytest.fixture
def nonmember_client(nonmember_user: User) -> Client:
    return auth_client(nonmember_user)


@pytest.fixture
def superuser_client(superuser: User) -> Client:
    return auth_client(superuser)
