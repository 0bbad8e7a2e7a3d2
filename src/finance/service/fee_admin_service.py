"""Platform-admin changes to fee configuration.

Changes apply to new sales only: settled transactions keep their snapshot.
"""

from decimal import Decimal

import structlog
from django.contrib.auth.models import User
from django.db import transaction
from django.db.models import QuerySet

from events.models import Event, Organizer
from events.service import update_db_instance
from finance.exceptions import InvalidFeeRatesError
from finance.models import FeeSettings
from finance.service.fee_service import ONE, FeeRates, get_effective_fee_rates, get_system_fee_rates

logger = structlog.get_logger(__name__)


def _assert_organizer_bearable(event: Event, system: FeeRates | None = None) -> None:
    if event.fee_bearer != Event.FeeBearer.ORGANIZER:
        return
    rates = get_effective_fee_rates(event, system)
    if rates.platform_rate + rates.processor_rate >= ONE:
        raise InvalidFeeRatesError(
            f"Combined fees for {event.slug} must stay below 100% when the organizer absorbs them."
        )


def _assert_events_bearable(events: QuerySet[Event]) -> None:
    """Check every organizer-bearer event against the rates now in effect."""
    bearing = list(events.filter(fee_bearer=Event.FeeBearer.ORGANIZER).select_related("organizer"))
    if not bearing:
        return
    system = get_system_fee_rates()
    for event in bearing:
        _assert_organizer_bearable(event, system)


@transaction.atomic
def update_event_fee(event: Event, platform_fee_percent: Decimal | None, admin: User) -> Event:
    """Set or clear (None) the event's platform fee override. Zero waives the fee."""
    previous = event.platform_fee_percent
    event = update_db_instance(event, platform_fee_percent=platform_fee_percent)
    _assert_organizer_bearable(event)
    logger.info(
        "event_fee_updated",
        event_id=str(event.pk),
        admin_id=str(admin.pk),
        previous=str(previous) if previous is not None else None,
        platform_fee_percent=str(platform_fee_percent) if platform_fee_percent is not None else None,
    )
    return event


@transaction.atomic
def update_event_fee_bearer(event: Event, fee_bearer: str, admin: User) -> Event:
    """Switch who pays the fees on new sales for an event."""
    previous = event.fee_bearer
    event = update_db_instance(event, fee_bearer=fee_bearer)
    _assert_organizer_bearable(event)
    logger.info(
        "event_fee_bearer_updated",
        event_id=str(event.pk),
        admin_id=str(admin.pk),
        previous=previous,
        fee_bearer=fee_bearer,
    )
    return event


@transaction.atomic
def update_organizer_fee(organizer: Organizer, platform_fee_percent: Decimal | None, admin: User) -> Organizer:
    """Set or clear (None) the organizer-wide platform fee override."""
    previous = organizer.platform_fee_percent
    organizer = update_db_instance(organizer, platform_fee_percent=platform_fee_percent)
    _assert_events_bearable(Event.objects.filter(organizer=organizer))
    logger.info(
        "organizer_fee_updated",
        organizer_id=str(organizer.pk),
        admin_id=str(admin.pk),
        previous=str(previous) if previous is not None else None,
        platform_fee_percent=str(platform_fee_percent) if platform_fee_percent is not None else None,
    )
    return organizer


@transaction.atomic
def update_system_fees(
    admin: User,
    *,
    platform_fee_percent: Decimal | None = None,
    processor_fee_percent: Decimal | None = None,
) -> FeeSettings:
    """Update the system default rates. Only the rates passed in are changed."""
    fee_settings = FeeSettings.objects.select_for_update().get(pk=FeeSettings.get_solo().pk)
    if platform_fee_percent is not None:
        fee_settings.platform_fee_percent = platform_fee_percent
    if processor_fee_percent is not None:
        fee_settings.processor_fee_percent = processor_fee_percent
    fee_settings.full_clean()
    fee_settings.save()
    _assert_events_bearable(Event.objects.all())
    logger.info(
        "system_fees_updated",
        admin_id=str(admin.pk),
        platform_fee_percent=str(fee_settings.platform_fee_percent),
        processor_fee_percent=str(fee_settings.processor_fee_percent),
    )
    return fee_settings
