import secrets
import typing as t
from datetime import datetime, timedelta
from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from common.models import TimeStampedModel

from .event import Discount, Event, EventAddon, TicketTier


def _get_reservation_default_expiry() -> datetime:
    return timezone.now() + timedelta(minutes=settings.RESERVATION_EXPIRY_MINUTES)


def _generate_ticket_code() -> str:
    return secrets.token_urlsafe(12)


class ReservationQuerySet(models.QuerySet["Reservation"]):
    def stale(self) -> t.Self:
        """Pending reservations whose hold has run out."""
        return self.filter(status=Reservation.Status.PENDING, expires_at__lte=timezone.now())

    def full(self) -> t.Self:
        """Everything needed to price a reservation."""
        return self.select_related("event__organizer", "tier", "discount").prefetch_related("reservation_addons__addon")


class Reservation(TimeStampedModel):
    """A time-boxed hold on ticket inventory created before payment completes."""

    class Status(models.TextChoices):
        PENDING = "pending"
        CONFIRMED = "confirmed"
        EXPIRED = "expired"
        CANCELLED = "cancelled"

    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="reservations")
    tier = models.ForeignKey(TicketTier, on_delete=models.PROTECT, related_name="reservations")
    quantity = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="reservations",
    )
    guest_email = models.EmailField()
    guest_name = models.CharField(max_length=255, blank=True, default="")
    discount = models.ForeignKey(
        Discount, on_delete=models.SET_NULL, null=True, blank=True, related_name="reservations"
    )
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.PENDING, db_index=True)
    expires_at = models.DateTimeField(default=_get_reservation_default_expiry, db_index=True)

    objects = ReservationQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"Reservation {self.id} ({self.quantity} x {self.tier.name})"

    def has_expired(self) -> bool:
        """Return whether the hold has run out."""
        return self.expires_at <= timezone.now()

    @property
    def is_payable(self) -> bool:
        """Whether the reservation can still be sent to the payment gateway."""
        return self.status == self.Status.PENDING and not self.has_expired()


class ReservationAddon(models.Model):
    reservation = models.ForeignKey(Reservation, on_delete=models.CASCADE, related_name="reservation_addons")
    addon = models.ForeignKey(EventAddon, on_delete=models.PROTECT, related_name="+")
    quantity = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])
    # Price at the time of reservation, later catalogue edits do not change the basket
    unit_price = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(0)])

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["reservation", "addon"], name="unique_addon_per_reservation"),
        ]

    def __str__(self) -> str:
        return f"{self.quantity} x {self.addon.name}"

    @property
    def line_total(self) -> Decimal:
        """Unit price times quantity."""
        return self.unit_price * self.quantity


class Ticket(TimeStampedModel):
    class Status(models.TextChoices):
        VALID = "valid"
        USED = "used"
        CANCELLED = "cancelled"

    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="tickets")
    tier = models.ForeignKey(TicketTier, on_delete=models.PROTECT, related_name="tickets")
    reservation = models.ForeignKey(Reservation, on_delete=models.CASCADE, related_name="tickets")
    code = models.CharField(max_length=32, unique=True, default=_generate_ticket_code, editable=False)
    order_reference = models.CharField(max_length=100, db_index=True)
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.VALID, db_index=True)

    def __str__(self) -> str:
        return f"Ticket {self.code} for {self.event.title}"
