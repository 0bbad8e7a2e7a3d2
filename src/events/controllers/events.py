from django.contrib.auth.models import User
from ninja_extra import api_controller, route

from common.authentication import OptionalAuth
from common.controllers import UserAwareController
from events import models, schema
from events.service import reservation_service


@api_controller("/events", auth=OptionalAuth(), tags=["Events"])
class EventController(UserAwareController):
    def get_queryset(self) -> models.event.EventQuerySet:
        """Published events with what the storefront shows."""
        return models.Event.objects.published().with_organizer().prefetch_related("ticket_tiers", "addons")

    def get_one(self, slug: str) -> models.Event:
        """Get one published event by slug."""
        return self.get_object_or_exception(self.get_queryset(), slug=slug)  # type: ignore[no-any-return]

    def get_tier(self, event: models.Event, payload: schema.BasketSchema) -> models.TicketTier:
        """Get the tier a basket refers to."""
        return self.get_object_or_exception(event.ticket_tiers.all(), pk=payload.tier_id)  # type: ignore[no-any-return]

    @route.get("/{slug}", url_name="get_event", response=schema.EventDetailSchema)
    def get_event(self, slug: str) -> models.Event:
        """Get an event with its ticket tiers and add-ons."""
        return self.get_one(slug)

    @route.post("/{slug}/quote", url_name="quote_basket", response=schema.CheckoutQuoteSchema)
    def quote(self, slug: str, payload: schema.BasketSchema) -> schema.CheckoutQuoteSchema:
        """Price a basket without holding any tickets."""
        event = self.get_one(slug)
        quote = reservation_service.quote_basket(
            event,
            self.get_tier(event, payload),
            payload.quantity,
            discount_code=payload.discount_code,
            addons=payload.addon_quantities(),
        )
        return schema.CheckoutQuoteSchema.from_quote(quote)

    @route.post("/{slug}/reservations", url_name="create_reservation", response={201: schema.ReservationSchema})
    def create_reservation(
        self, slug: str, payload: schema.ReservationCreateSchema
    ) -> tuple[int, schema.ReservationSchema]:
        """Hold tickets for a guest while they pay."""
        event = self.get_one(slug)
        user = self.maybe_user()
        reservation = reservation_service.create_reservation(
            event,
            self.get_tier(event, payload),
            payload.quantity,
            payload.guest_email,
            guest_name=payload.guest_name,
            user=user if isinstance(user, User) else None,
            discount_code=payload.discount_code,
            addons=payload.addon_quantities(),
        )
        return 201, schema.ReservationSchema.from_reservation(
            reservation, reservation_service.price_reservation(reservation)
        )
