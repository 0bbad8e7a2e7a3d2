import typing as t
from decimal import Decimal

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import Q
from simple_history.models import HistoricalRecords

from common.models import TimeStampedModel

from .mixins import SlugFromNameMixin

if t.TYPE_CHECKING:
    from django.contrib.auth.models import AbstractBaseUser, AnonymousUser

MAX_FEE_PERCENT = Decimal("99.99")


class OrganizerQuerySet(models.QuerySet["Organizer"]):
    def for_user(self, user: "AbstractBaseUser | AnonymousUser") -> t.Self:
        """Organizers the user owns or belongs to as a team member."""
        if user.is_anonymous:
            return self.none()
        if user.is_superuser:  # type: ignore[union-attr]
            return self.all()
        return self.filter(Q(owner=user) | Q(team_members__user=user)).distinct()


class Organizer(SlugFromNameMixin, TimeStampedModel):
    """A tenant of the platform: the organisation that runs events and receives payouts."""

    name = models.CharField(max_length=255, unique=True)
    slug = models.SlugField(max_length=255, unique=True)
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="owned_organizers",
    )
    contact_email = models.EmailField(blank=True, null=True)
    platform_fee_percent = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(0), MaxValueValidator(MAX_FEE_PERCENT)],
        help_text="Organizer-wide platform fee override. Leave empty to use the system default.",
    )
    paystack_subaccount_code = models.CharField(max_length=64, blank=True, null=True, unique=True)
    bank_code = models.CharField(max_length=16, blank=True, default="")
    bank_name = models.CharField(max_length=128, blank=True, default="")
    account_number = models.CharField(max_length=32, blank=True, default="")
    account_name = models.CharField(max_length=255, blank=True, default="")

    history = HistoricalRecords()

    objects = OrganizerQuerySet.as_manager()

    class Meta:
        ordering = ["name"]

    def __str__(self) -> str:
        return self.name

    def is_team_member(self, user: "AbstractBaseUser | AnonymousUser") -> bool:
        """Whether the user owns this organizer or is part of its team."""
        if user.is_anonymous:
            return False
        if self.owner_id == user.pk:
            return True
        return self.team_members.filter(user_id=user.pk).exists()


class OrganizerTeamMember(TimeStampedModel):
    class Role(models.TextChoices):
        ADMIN = "admin"
        STAFF = "staff"

    organizer = models.ForeignKey(Organizer, on_delete=models.CASCADE, related_name="team_members")
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="organizer_teams")
    role = models.CharField(max_length=10, choices=Role.choices, default=Role.STAFF)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["organizer", "user"], name="unique_organizer_team_member"),
        ]

    def __str__(self) -> str:
        return f"{self.user} @ {self.organizer} ({self.role})"
