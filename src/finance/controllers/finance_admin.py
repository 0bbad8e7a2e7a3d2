from uuid import UUID

from ninja_extra import api_controller, route
from ninja_jwt.authentication import JWTAuth

from common.controllers import UserAwareController
from events.models import Event, Organizer
from finance import schema
from finance.controllers.permissions import IsSuperuser
from finance.models import FeeSettings, Payout
from finance.service import fee_admin_service, payout_service, reconciliation_service
from finance.service.fee_service import get_system_fee_rates
from finance.service.reconciliation_service import PlatformFinanceSummary


@api_controller("/admin/finance", auth=JWTAuth(), permissions=[IsSuperuser()], tags=["Finance Admin"])
class FinanceAdminController(UserAwareController):
    """Platform-admin fee configuration, reporting and payout settlement."""

    def _system_fees(self, fee_settings: FeeSettings) -> schema.SystemFeesSchema:
        return schema.SystemFeesSchema.build(
            fee_settings.platform_fee_percent,
            fee_settings.processor_fee_percent,
            get_system_fee_rates(),
            fee_settings.updated_at,
        )

    def get_payout(self, payout_id: UUID) -> Payout:
        """Get a payout."""
        return self.get_object_or_exception(Payout.objects.select_related("event"), pk=payout_id)  # type: ignore[no-any-return]

    @route.get("/fees", url_name="get_system_fees", response=schema.SystemFeesSchema)
    def get_system_fees(self) -> schema.SystemFeesSchema:
        """The system default rates, stored and effective."""
        return self._system_fees(FeeSettings.get_solo())

    @route.put("/fees", url_name="update_system_fees", response=schema.SystemFeesSchema)
    def update_system_fees(self, payload: schema.SystemFeesUpdateSchema) -> schema.SystemFeesSchema:
        """Change the system default rates for new sales."""
        fee_settings = fee_admin_service.update_system_fees(
            self.user(),
            platform_fee_percent=payload.platform_fee_percent,
            processor_fee_percent=payload.processor_fee_percent,
        )
        return self._system_fees(fee_settings)

    @route.put("/events/{event_id}/fee", url_name="update_event_fee", response=schema.EventFeeSchema)
    def update_event_fee(self, event_id: UUID, payload: schema.FeeOverrideSchema) -> Event:
        """Set, waive (0) or clear (null) an event's platform fee override."""
        event = self.get_object_or_exception(Event.objects.with_organizer(), pk=event_id)
        return fee_admin_service.update_event_fee(event, payload.platform_fee_percent, self.user())

    @route.put("/events/{event_id}/fee-bearer", url_name="update_event_fee_bearer", response=schema.EventFeeSchema)
    def update_event_fee_bearer(self, event_id: UUID, payload: schema.FeeBearerSchema) -> Event:
        """Switch who pays the fees for an event."""
        event = self.get_object_or_exception(Event.objects.with_organizer(), pk=event_id)
        return fee_admin_service.update_event_fee_bearer(event, payload.fee_bearer, self.user())

    @route.put(
        "/organizers/{organizer_id}/fee", url_name="update_organizer_fee", response=schema.OrganizerFeeSchema
    )
    def update_organizer_fee(self, organizer_id: UUID, payload: schema.FeeOverrideSchema) -> Organizer:
        """Set, waive (0) or clear (null) an organizer-wide platform fee override."""
        organizer = self.get_object_or_exception(Organizer.objects.all(), pk=organizer_id)
        return fee_admin_service.update_organizer_fee(organizer, payload.platform_fee_percent, self.user())

    @route.get("/summary", url_name="platform_finance_summary", response=schema.PlatformFinanceSummarySchema)
    def get_summary(self) -> PlatformFinanceSummary:
        """Platform-wide volume, revenue and payout position."""
        return reconciliation_service.platform_finance_summary()

    @route.get("/payouts", url_name="list_all_payouts", response=list[schema.PayoutSchema])
    def list_payouts(self, status: Payout.Status | None = None) -> list[Payout]:
        """All payout requests, optionally filtered by status."""
        payouts = Payout.objects.all()
        if status:
            payouts = payouts.filter(status=status)
        return list(payouts)

    @route.post("/payouts/{payout_id}/processing", url_name="mark_payout_processing", response=schema.PayoutSchema)
    def mark_processing(self, payout_id: UUID) -> Payout:
        """Mark a payout as being transferred."""
        return payout_service.mark_payout_processing(self.get_payout(payout_id), self.user())

    @route.post("/payouts/{payout_id}/approve", url_name="approve_payout", response=schema.PayoutSchema)
    def approve(self, payout_id: UUID, payload: schema.PayoutApproveSchema) -> Payout:
        """Record a payout as paid."""
        return payout_service.approve_payout(self.get_payout(payout_id), self.user(), payload.reference)

    @route.post("/payouts/{payout_id}/reject", url_name="reject_payout", response=schema.PayoutSchema)
    def reject(self, payout_id: UUID, payload: schema.PayoutRejectSchema) -> Payout:
        """Reject a payout request."""
        return payout_service.reject_payout(self.get_payout(payout_id), self.user(), payload.reason)
