"""Celery tasks for event checkout."""

from celery import shared_task

from events.service.reservation_service import expire_reservations


@shared_task
def expire_stale_reservations() -> int:
    """Release the inventory held by reservations whose hold has run out.

    Idempotent and safe to run periodically.
    """
    return expire_reservations()
