"""Admin for organizers, events and checkout records."""

import typing as t

from django.contrib import admin
from django.urls import reverse
from django.utils.html import format_html
from simple_history.admin import SimpleHistoryAdmin
from unfold.admin import ModelAdmin, TabularInline

from events import models


class EventLinkMixin:
    """Mixin to add a link to an event."""

    def event_link(self, obj: t.Any) -> str | None:
        if not getattr(obj, "event", None):
            return None
        url = reverse("admin:events_event_change", args=[obj.event.id])
        return format_html('<a href="{}">{}</a>', url, obj.event.title)

    event_link.short_description = "Event"  # type: ignore[attr-defined]


class OrganizerTeamMemberInline(TabularInline):  # type: ignore[misc]
    model = models.OrganizerTeamMember
    extra = 0
    autocomplete_fields = ["user"]


class TicketTierInline(TabularInline):  # type: ignore[misc]
    model = models.TicketTier
    extra = 0
    fields = ["name", "price", "total_quantity", "quantity_sold"]
    readonly_fields = ["quantity_sold"]


class EventAddonInline(TabularInline):  # type: ignore[misc]
    model = models.EventAddon
    extra = 0
    fields = ["name", "price", "is_active"]


class ReservationAddonInline(TabularInline):  # type: ignore[misc]
    model = models.ReservationAddon
    extra = 0
    readonly_fields = ["addon", "quantity", "unit_price"]


@admin.register(models.Organizer)
class OrganizerAdmin(SimpleHistoryAdmin, ModelAdmin):  # type: ignore[misc]
    list_display = ["name", "owner", "platform_fee_percent", "paystack_subaccount_code", "created_at"]
    search_fields = ["name", "slug", "owner__username", "owner__email"]
    autocomplete_fields = ["owner"]
    readonly_fields = ["created_at", "updated_at"]
    inlines = [OrganizerTeamMemberInline]
    fieldsets = (
        (None, {"fields": ("name", "slug", "owner", "contact_email")}),
        (
            "Fees",
            {
                "fields": ("platform_fee_percent",),
                "description": "Leave empty to use the system default. 0 waives the platform fee.",
            },
        ),
        (
            "Settlement",
            {"fields": ("paystack_subaccount_code", "bank_code", "bank_name", "account_number", "account_name")},
        ),
        ("Timestamps", {"fields": ("created_at", "updated_at")}),
    )


@admin.register(models.Event)
class EventAdmin(SimpleHistoryAdmin, ModelAdmin):  # type: ignore[misc]
    list_display = ["title", "organizer", "starts_at", "is_published", "fee_bearer", "platform_fee_percent"]
    list_filter = ["is_published", "fee_bearer", "organizer"]
    search_fields = ["title", "slug", "organizer__name"]
    autocomplete_fields = ["organizer"]
    date_hierarchy = "starts_at"
    inlines = [TicketTierInline, EventAddonInline]


@admin.register(models.Discount)
class DiscountAdmin(ModelAdmin, EventLinkMixin):  # type: ignore[misc]
    list_display = ["code", "event_link", "discount_type", "value", "used_count", "max_uses", "is_active"]
    list_filter = ["discount_type", "is_active"]
    search_fields = ["code", "event__title"]
    autocomplete_fields = ["event"]
    readonly_fields = ["used_count"]


@admin.register(models.Reservation)
class ReservationAdmin(ModelAdmin, EventLinkMixin):  # type: ignore[misc]
    list_display = ["id", "event_link", "tier", "quantity", "guest_email", "status", "expires_at"]
    list_filter = ["status"]
    search_fields = ["guest_email", "guest_name", "event__title"]
    readonly_fields = ["id", "created_at", "updated_at"]
    date_hierarchy = "created_at"
    inlines = [ReservationAddonInline]


@admin.register(models.Ticket)
class TicketAdmin(ModelAdmin, EventLinkMixin):  # type: ignore[misc]
    list_display = ["code", "event_link", "tier", "order_reference", "status", "created_at"]
    list_filter = ["status"]
    search_fields = ["code", "order_reference", "event__title"]
    readonly_fields = ["id", "code", "order_reference", "created_at"]
