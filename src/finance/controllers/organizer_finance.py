from uuid import UUID

from ninja_extra import api_controller, route
from ninja_jwt.authentication import JWTAuth

from common.controllers import UserAwareController
from events.models import Event, Organizer
from finance import schema
from finance.controllers.permissions import IsOrganizerTeamMember
from finance.models import Payout, Transaction
from finance.service import payout_service, reconciliation_service
from finance.service.reconciliation_service import EventFinanceSummary


@api_controller("/organizers/{organizer_id}", auth=JWTAuth(), tags=["Organizer Finance"])
class OrganizerFinanceController(UserAwareController):
    """Finance views for an organizer's team: per-event reconciliation and payout requests."""

    def get_organizer(self, organizer_id: UUID) -> Organizer:
        """Get the organizer, checking team membership."""
        return self.get_object_or_exception(Organizer.objects.all(), pk=organizer_id)  # type: ignore[no-any-return]

    def get_event(self, organizer_id: UUID, event_id: UUID) -> Event:
        """Get one of the organizer's events."""
        organizer = self.get_organizer(organizer_id)
        return self.get_object_or_exception(  # type: ignore[no-any-return]
            Event.objects.with_organizer().filter(organizer=organizer), pk=event_id
        )

    @route.get(
        "/events/{event_id}/finance",
        url_name="event_finance_summary",
        response=schema.EventFinanceSummarySchema,
        permissions=[IsOrganizerTeamMember()],
    )
    def get_event_finance(self, organizer_id: UUID, event_id: UUID) -> EventFinanceSummary:
        """Gross, fees, net payout and what is still due for an event."""
        return reconciliation_service.event_finance_summary(self.get_event(organizer_id, event_id))

    @route.get(
        "/events/{event_id}/transactions",
        url_name="event_transactions",
        response=list[schema.TransactionSchema],
        permissions=[IsOrganizerTeamMember()],
    )
    def list_event_transactions(self, organizer_id: UUID, event_id: UUID) -> list[schema.TransactionSchema]:
        """Every transaction of the event with its reconciled payout line."""
        event = self.get_event(organizer_id, event_id)
        transactions = Transaction.objects.for_event(event).select_related("reservation__event__organizer")
        return [
            schema.TransactionSchema.from_line(txn, reconciliation_service.reconcile_transaction(txn))
            for txn in transactions
        ]

    @route.get(
        "/payouts",
        url_name="organizer_payouts",
        response=list[schema.PayoutSchema],
        permissions=[IsOrganizerTeamMember()],
    )
    def list_payouts(self, organizer_id: UUID) -> list[Payout]:
        """The organizer's payout history."""
        organizer = self.get_organizer(organizer_id)
        return list(Payout.objects.filter(organizer=organizer))

    @route.post(
        "/events/{event_id}/payouts",
        url_name="request_payout",
        response={201: schema.PayoutSchema},
        permissions=[IsOrganizerTeamMember()],
    )
    def request_payout(
        self, organizer_id: UUID, event_id: UUID, payload: schema.PayoutRequestSchema
    ) -> tuple[int, Payout]:
        """Request a payout of the event's remaining balance, or part of it."""
        event = self.get_event(organizer_id, event_id)
        return 201, payout_service.request_payout(event, self.user(), payload.amount)
