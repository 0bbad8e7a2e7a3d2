import typing as t
from decimal import ROUND_HALF_UP, Decimal

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import Sum
from django.db.models.functions import Coalesce
from django.utils import timezone
from simple_history.models import HistoricalRecords

from common.models import TimeStampedModel

from .mixins import SlugFromNameMixin
from .organizer import MAX_FEE_PERCENT, Organizer

CENTS = Decimal("0.01")


class EventQuerySet(models.QuerySet["Event"]):
    def published(self) -> t.Self:
        """Events visible on the public storefront."""
        return self.filter(is_published=True)

    def with_organizer(self) -> t.Self:
        """Select the organizer, which fee resolution always needs."""
        return self.select_related("organizer")


class Event(SlugFromNameMixin, TimeStampedModel):
    slug_source_field = "title"

    class FeeBearer(models.TextChoices):
        CUSTOMER = "customer", "Customer pays fees"
        ORGANIZER = "organizer", "Organizer absorbs fees"

    organizer = models.ForeignKey(Organizer, on_delete=models.CASCADE, related_name="events")
    title = models.CharField(max_length=255)
    slug = models.SlugField(max_length=255, unique=True)
    description = models.TextField(blank=True, default="")
    venue_name = models.CharField(max_length=255, blank=True, default="")
    venue_address = models.CharField(max_length=255, blank=True, default="")
    starts_at = models.DateTimeField(db_index=True)
    ends_at = models.DateTimeField(null=True, blank=True)
    is_published = models.BooleanField(default=False, db_index=True)
    currency = models.CharField(max_length=3, default=settings.DEFAULT_CURRENCY)
    fee_bearer = models.CharField(max_length=10, choices=FeeBearer.choices, default=FeeBearer.CUSTOMER)
    platform_fee_percent = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(0), MaxValueValidator(MAX_FEE_PERCENT)],
        help_text="Event-specific platform fee override. Takes precedence over the organizer and system rates.",
    )

    history = HistoricalRecords()

    objects = EventQuerySet.as_manager()

    class Meta:
        ordering = ["starts_at"]

    def __str__(self) -> str:
        return self.title

    def clean(self) -> None:
        """Ensure the event does not end before it starts."""
        if self.ends_at and self.starts_at and self.ends_at < self.starts_at:
            raise DjangoValidationError({"ends_at": ["The event cannot end before it starts."]})


class TicketTier(TimeStampedModel):
    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="ticket_tiers")
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    price = models.DecimalField(max_digits=10, decimal_places=2, default=0, validators=[MinValueValidator(0)])
    total_quantity = models.PositiveIntegerField(null=True, blank=True, help_text="Leave empty for unlimited.")
    quantity_sold = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["price", "name"]
        constraints = [
            models.UniqueConstraint(fields=["event", "name"], name="unique_ticket_tier_name_per_event"),
        ]

    def __str__(self) -> str:
        return f"{self.event.title} | {self.name}"

    @property
    def currency(self) -> str:
        """Tiers are always priced in the event currency."""
        return self.event.currency

    def held_quantity(self) -> int:
        """Tickets held by pending reservations that have not expired yet."""
        from .reservation import Reservation

        held = Reservation.objects.filter(
            tier=self, status=Reservation.Status.PENDING, expires_at__gt=timezone.now()
        ).aggregate(held=Coalesce(Sum("quantity"), 0))["held"]
        return int(held)

    def available_quantity(self) -> int | None:
        """Remaining purchasable tickets, or None when the tier is unlimited."""
        if self.total_quantity is None:
            return None
        return max(0, self.total_quantity - self.quantity_sold - self.held_quantity())


class EventAddon(TimeStampedModel):
    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="addons")
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    price = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(0)])
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["name"]

    def __str__(self) -> str:
        return f"{self.event.title} | {self.name}"


class Discount(TimeStampedModel):
    class DiscountType(models.TextChoices):
        PERCENTAGE = "percentage"
        FIXED = "fixed"

    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="discounts")
    code = models.CharField(max_length=64)
    discount_type = models.CharField(max_length=10, choices=DiscountType.choices)
    value = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(0)])
    max_uses = models.PositiveIntegerField(null=True, blank=True)
    used_count = models.PositiveIntegerField(default=0)
    expires_at = models.DateTimeField(null=True, blank=True)
    is_active = models.BooleanField(default=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["event", "code"], name="unique_discount_code_per_event"),
        ]

    def __str__(self) -> str:
        return f"{self.code} ({self.event.title})"

    def clean(self) -> None:
        """Percentages above 100 make no sense."""
        if self.discount_type == self.DiscountType.PERCENTAGE and self.value > 100:
            raise DjangoValidationError({"value": ["A percentage discount cannot exceed 100."]})

    def held_uses(self) -> int:
        """Uses claimed by pending reservations that have not expired yet."""
        from .reservation import Reservation

        return Reservation.objects.filter(
            discount=self, status=Reservation.Status.PENDING, expires_at__gt=timezone.now()
        ).count()

    def is_redeemable(self) -> bool:
        """Whether the code can still be applied to a new reservation.

        Live holds count against ``max_uses`` like settled redemptions do.
        """
        if not self.is_active:
            return False
        if self.expires_at and self.expires_at <= timezone.now():
            return False
        if self.max_uses is not None and self.used_count + self.held_uses() >= self.max_uses:
            return False
        return True

    def calculate_discount_amount(self, amount: Decimal) -> Decimal:
        """Return the discount applied to a ticket subtotal, never more than the subtotal itself."""
        if self.discount_type == self.DiscountType.PERCENTAGE:
            discount = (amount * self.value / Decimal(100)).quantize(CENTS, rounding=ROUND_HALF_UP)
        else:
            discount = self.value
        return min(discount, amount)
