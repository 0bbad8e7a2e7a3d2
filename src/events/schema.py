"""Public event and checkout schemas."""

import typing as t
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from ninja import ModelSchema, Schema
from pydantic import EmailStr, Field

from common.schema import StrippedString
from events.models import Event, EventAddon, Organizer, Reservation, TicketTier

if t.TYPE_CHECKING:
    from events.service.reservation_service import CheckoutQuote


class MinimalOrganizerSchema(ModelSchema):
    class Meta:
        model = Organizer
        fields = ["id", "name", "slug"]


class TicketTierSchema(ModelSchema):
    currency: str
    available: int | None = None

    class Meta:
        model = TicketTier
        fields = ["id", "name", "description", "price", "total_quantity"]

    @staticmethod
    def resolve_currency(obj: TicketTier) -> str:
        return obj.currency

    @staticmethod
    def resolve_available(obj: TicketTier) -> int | None:
        return obj.available_quantity()


class EventAddonSchema(ModelSchema):
    class Meta:
        model = EventAddon
        fields = ["id", "name", "description", "price"]


class EventDetailSchema(ModelSchema):
    organizer: MinimalOrganizerSchema
    fee_bearer: Event.FeeBearer
    ticket_tiers: list[TicketTierSchema]
    addons: list[EventAddonSchema]

    class Meta:
        model = Event
        fields = [
            "id",
            "title",
            "slug",
            "description",
            "venue_name",
            "venue_address",
            "starts_at",
            "ends_at",
            "currency",
        ]

    @staticmethod
    def resolve_ticket_tiers(obj: Event) -> list[TicketTier]:
        return list(obj.ticket_tiers.all())

    @staticmethod
    def resolve_addons(obj: Event) -> list[EventAddon]:
        return [addon for addon in obj.addons.all() if addon.is_active]


class AddonSelectionSchema(Schema):
    addon_id: UUID
    quantity: int = Field(1, ge=1, le=100)


class BasketSchema(Schema):
    tier_id: UUID
    quantity: int = Field(1, ge=1, le=50)
    discount_code: StrippedString | None = None
    addons: list[AddonSelectionSchema] = Field(default_factory=list)

    def addon_quantities(self) -> dict[UUID, int]:
        """Selections keyed by add-on, with repeated add-ons merged."""
        quantities: dict[UUID, int] = {}
        for selection in self.addons:
            quantities[selection.addon_id] = quantities.get(selection.addon_id, 0) + selection.quantity
        return quantities


class ReservationCreateSchema(BasketSchema):
    guest_email: EmailStr
    guest_name: StrippedString = ""


class AddonLineSchema(Schema):
    addon_id: UUID
    name: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal


class CheckoutQuoteSchema(Schema):
    """What the guest pays. Organizer-side figures are not exposed here."""

    currency: str
    tier_id: UUID
    tier_name: str
    quantity: int
    unit_price: Decimal
    gross_ticket_subtotal: Decimal
    discount_amount: Decimal
    ticket_subtotal: Decimal
    addon_subtotal: Decimal
    addon_lines: list[AddonLineSchema]
    subtotal: Decimal
    platform_fee: Decimal
    processor_fee: Decimal
    customer_fees: Decimal
    customer_total: Decimal
    fee_bearer: Event.FeeBearer

    @classmethod
    def from_quote(cls, quote: "CheckoutQuote") -> "CheckoutQuoteSchema":
        """Flatten a quote and its fee breakdown."""
        breakdown = quote.breakdown
        return cls(
            currency=quote.currency,
            tier_id=quote.tier.pk,
            tier_name=quote.tier.name,
            quantity=quote.quantity,
            unit_price=quote.unit_price,
            gross_ticket_subtotal=quote.gross_ticket_subtotal,
            discount_amount=quote.discount_amount,
            ticket_subtotal=quote.ticket_subtotal,
            addon_subtotal=quote.addon_subtotal,
            addon_lines=[
                AddonLineSchema(
                    addon_id=line.addon.pk,
                    name=line.addon.name,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    line_total=line.line_total,
                )
                for line in quote.addon_lines
            ],
            subtotal=breakdown.subtotal,
            platform_fee=breakdown.platform_fee,
            processor_fee=breakdown.processor_fee,
            customer_fees=breakdown.customer_fees,
            customer_total=breakdown.customer_total,
            fee_bearer=Event.FeeBearer(breakdown.fee_bearer),
        )


class ReservationSchema(Schema):
    id: UUID
    event_id: UUID
    status: Reservation.Status
    guest_email: str
    guest_name: str
    expires_at: datetime
    quote: CheckoutQuoteSchema

    @classmethod
    def from_reservation(cls, reservation: Reservation, quote: "CheckoutQuote") -> "ReservationSchema":
        """Combine a reservation with its current price."""
        return cls(
            id=reservation.pk,
            event_id=reservation.event_id,
            status=Reservation.Status(reservation.status),
            guest_email=reservation.guest_email,
            guest_name=reservation.guest_name,
            expires_at=reservation.expires_at,
            quote=CheckoutQuoteSchema.from_quote(quote),
        )
