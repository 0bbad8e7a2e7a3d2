import typing as t
from decimal import Decimal

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from simple_history.models import HistoricalRecords
from solo.models import SingletonModel

from common.models import TimeStampedModel
from events.models import MAX_FEE_PERCENT, Event, Organizer, Reservation


class FeeSettings(SingletonModel):
    """System-wide fee configuration.

    A null rate means "not configured here" and falls back to the deployment
    settings; it is never read as zero.
    """

    platform_fee_percent = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(0), MaxValueValidator(MAX_FEE_PERCENT)],
        help_text="Default platform fee in percent of ticket revenue.",
    )
    processor_fee_percent = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(0), MaxValueValidator(MAX_FEE_PERCENT)],
        help_text="Payment processor fee in percent of the charged subtotal.",
    )
    updated_at = models.DateTimeField(auto_now=True)

    history = HistoricalRecords()

    def __str__(self) -> str:  # pragma: no cover
        return "Fee Settings"

    class Meta:
        verbose_name = "Fee Settings"
        verbose_name_plural = "Fee Settings"


class TransactionQuerySet(models.QuerySet["Transaction"]):
    def settled(self) -> t.Self:
        """Transactions that count towards organizer payouts."""
        return self.filter(status=Transaction.Status.SUCCEEDED)

    def for_event(self, event: Event) -> t.Self:
        """Transactions whose reservation belongs to the event."""
        return self.filter(reservation__event=event)


class Transaction(TimeStampedModel):
    """A payment attempt against the gateway, with the fee snapshot taken when it was priced.

    Once the status is SUCCEEDED the snapshot columns are authoritative for payouts.
    """

    class Status(models.TextChoices):
        PENDING = "pending"
        SUCCEEDED = "succeeded"
        FAILED = "failed"
        REFUNDED = "refunded"

    reservation = models.ForeignKey(Reservation, on_delete=models.PROTECT, related_name="transactions")
    reference = models.CharField(max_length=100, unique=True)
    currency = models.CharField(max_length=3, default=settings.DEFAULT_CURRENCY)
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.PENDING, db_index=True)
    channel = models.CharField(max_length=32, blank=True, default="")
    paid_at = models.DateTimeField(null=True, blank=True)
    raw_response = models.JSONField(blank=True, default=dict)

    # Payout snapshot
    amount = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(0)])
    ticket_subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0"))
    addon_subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0"))
    discount_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0"))
    fee_bearer = models.CharField(max_length=10, choices=Event.FeeBearer.choices)
    applied_fee_rate = models.DecimalField(max_digits=7, decimal_places=6, null=True, blank=True)
    applied_processor_rate = models.DecimalField(max_digits=7, decimal_places=6, null=True, blank=True)
    platform_fee = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    applied_processor_fee = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)

    objects = TransactionQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"Transaction {self.reference} ({self.status})"


class PayoutQuerySet(models.QuerySet["Payout"]):
    def in_flight(self) -> t.Self:
        """Requests that are awaiting settlement."""
        return self.filter(status__in=[Payout.Status.PENDING, Payout.Status.PROCESSING])

    def paid(self) -> t.Self:
        """Settled payouts."""
        return self.filter(status=Payout.Status.PAID)


class Payout(TimeStampedModel):
    class Status(models.TextChoices):
        PENDING = "pending"
        PROCESSING = "processing"
        PAID = "paid"
        FAILED = "failed"

    event = models.ForeignKey(Event, on_delete=models.PROTECT, related_name="payouts")
    organizer = models.ForeignKey(Organizer, on_delete=models.PROTECT, related_name="payouts")
    amount = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(Decimal("0.01"))])
    currency = models.CharField(max_length=3, default=settings.DEFAULT_CURRENCY)
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.PENDING, db_index=True)
    reference = models.CharField(max_length=100, blank=True, null=True)
    notes = models.TextField(blank=True, default="")
    requested_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    processed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    paid_at = models.DateTimeField(null=True, blank=True)

    history = HistoricalRecords()

    objects = PayoutQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["event"],
                condition=models.Q(status__in=["pending", "processing"]),
                name="one_in_flight_payout_per_event",
            ),
        ]

    def __str__(self) -> str:
        return f"Payout {self.amount} {self.currency} for {self.event.title} ({self.status})"
