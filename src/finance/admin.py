"""Admin for fee settings, transactions and payouts."""

from django.contrib import admin
from simple_history.admin import SimpleHistoryAdmin
from solo.admin import SingletonModelAdmin
from unfold.admin import ModelAdmin

from events.admin import EventLinkMixin
from finance import models
from finance.exceptions import IncompleteFeeSnapshotError
from finance.service.reconciliation_service import reconcile_transaction


@admin.register(models.FeeSettings)
class FeeSettingsAdmin(SingletonModelAdmin, SimpleHistoryAdmin, ModelAdmin):  # type: ignore[misc]
    readonly_fields = ["updated_at"]
    fieldsets = (
        (
            "System fees",
            {
                "fields": ("platform_fee_percent", "processor_fee_percent", "updated_at"),
                "description": "Empty fields fall back to the deployment defaults. Changes apply to new sales only.",
            },
        ),
    )


@admin.register(models.Transaction)
class TransactionAdmin(ModelAdmin, EventLinkMixin):  # type: ignore[misc]
    list_display = ["reference", "status", "amount", "currency", "platform_fee", "applied_processor_fee", "net"]
    list_filter = ["status", "currency", "fee_bearer"]
    search_fields = ["reference", "reservation__guest_email"]
    date_hierarchy = "created_at"
    readonly_fields = [
        "reservation",
        "reference",
        "amount",
        "ticket_subtotal",
        "addon_subtotal",
        "discount_amount",
        "fee_bearer",
        "applied_fee_rate",
        "applied_processor_rate",
        "platform_fee",
        "applied_processor_fee",
        "raw_response",
        "created_at",
    ]

    @admin.display(description="Net")
    def net(self, obj: models.Transaction) -> str:
        try:
            return str(reconcile_transaction(obj).net)
        except IncompleteFeeSnapshotError:
            return "snapshot missing"


@admin.register(models.Payout)
class PayoutAdmin(SimpleHistoryAdmin, ModelAdmin, EventLinkMixin):  # type: ignore[misc]
    list_display = ["id", "event_link", "organizer", "amount", "currency", "status", "paid_at"]
    list_filter = ["status", "currency"]
    search_fields = ["reference", "event__title", "organizer__name"]
    readonly_fields = ["requested_by", "processed_by", "paid_at", "created_at"]
    date_hierarchy = "created_at"
