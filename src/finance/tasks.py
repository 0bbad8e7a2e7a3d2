"""Celery tasks for payment settlement."""

from datetime import timedelta

import structlog
from celery import shared_task
from django.conf import settings
from django.utils import timezone

from finance.exceptions import FinanceError
from finance.models import Transaction
from finance.service import payment_service

logger = structlog.get_logger(__name__)


@shared_task
def verify_pending_transactions() -> dict[str, int]:
    """Poll the gateway for pending transactions the webhook never settled.

    Transactions younger than the grace period are left to the webhook.
    """
    cutoff = timezone.now() - timedelta(minutes=settings.PENDING_TRANSACTION_GRACE_MINUTES)
    references = list(
        Transaction.objects.filter(status=Transaction.Status.PENDING, created_at__lte=cutoff).values_list(
            "reference", flat=True
        )
    )
    counts = {"checked": 0, "succeeded": 0, "failed": 0, "errors": 0}
    for reference in references:
        counts["checked"] += 1
        try:
            txn = payment_service.verify_payment(reference)
        except FinanceError as e:
            counts["errors"] += 1
            logger.warning("pending_transaction_verification_failed", reference=reference, error=str(e))
            continue
        if txn.status == Transaction.Status.SUCCEEDED:
            counts["succeeded"] += 1
        elif txn.status == Transaction.Status.FAILED:
            counts["failed"] += 1

    if references:
        logger.info("pending_transactions_verified", **counts)
    return counts
