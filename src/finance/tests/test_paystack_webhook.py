"""Tests for the Paystack webhook endpoint."""

from unittest.mock import Mock, patch

import orjson
import pytest
from django.test.client import Client
from django.urls import reverse

from events.models import Reservation, Ticket
from finance.models import Transaction
from finance.service.paystack_service import compute_signature
from finance.tests.test_reconciliation_service import make_transaction

pytestmark = pytest.mark.django_db

WEBHOOK_URL = "api:paystack_webhook"


def post_webhook(client: Client, payload: bytes, signature: str | None) -> object:
    headers = {"HTTP_X_PAYSTACK_SIGNATURE": signature} if signature is not None else {}
    return client.post(reverse(WEBHOOK_URL), data=payload, content_type="application/json", **headers)


class TestPaystackWebhook:
    @pytest.fixture
    def pending_txn(self, reservation: Reservation) -> Transaction:
        return make_transaction(reservation, status=Transaction.Status.PENDING)

    def test_charge_success_settles_transaction(self, client: Client, pending_txn: Transaction) -> None:
        payload = orjson.dumps(
            {
                "event": "charge.success",
                "data": {
                    "reference": pending_txn.reference,
                    "status": "success",
                    "amount": 10700,
                    "currency": "GHS",
                    "channel": "card",
                },
            }
        )

        response = post_webhook(client, payload, compute_signature(payload))

        assert response.status_code == 200  # type: ignore[attr-defined]
        pending_txn.refresh_from_db()
        assert pending_txn.status == Transaction.Status.SUCCEEDED
        assert Ticket.objects.filter(order_reference=pending_txn.reference).count() == 2

    def test_redelivery_is_idempotent(self, client: Client, pending_txn: Transaction) -> None:
        payload = orjson.dumps(
            {
                "event": "charge.success",
                "data": {"reference": pending_txn.reference, "amount": 10700, "currency": "GHS"},
            }
        )
        signature = compute_signature(payload)

        post_webhook(client, payload, signature)
        response = post_webhook(client, payload, signature)

        assert response.status_code == 200  # type: ignore[attr-defined]
        assert Ticket.objects.count() == 2

    @patch("finance.controllers.paystack_webhook.PaystackEventHandler")
    def test_invalid_signature(self, mock_handler_class: Mock, client: Client) -> None:
        payload = b'{"event": "charge.success", "data": {}}'

        response = post_webhook(client, payload, "not-a-signature")

        assert response.status_code == 400  # type: ignore[attr-defined]
        mock_handler_class.assert_not_called()

    @patch("finance.controllers.paystack_webhook.PaystackEventHandler")
    def test_missing_signature(self, mock_handler_class: Mock, client: Client) -> None:
        response = post_webhook(client, b"{}", None)

        assert response.status_code == 400  # type: ignore[attr-defined]
        mock_handler_class.assert_not_called()

    def test_malformed_body(self, client: Client) -> None:
        payload = b"not json"

        response = post_webhook(client, payload, compute_signature(payload))

        assert response.status_code == 400  # type: ignore[attr-defined]

    @patch("finance.controllers.paystack_webhook.PaystackEventHandler")
    def test_dispatches_to_handler(self, mock_handler_class: Mock, client: Client) -> None:
        payload = orjson.dumps({"event": "transfer.success", "data": {"reference": "TRF_1"}})

        response = post_webhook(client, payload, compute_signature(payload))

        assert response.status_code == 200  # type: ignore[attr-defined]
        mock_handler_class.assert_called_once_with({"event": "transfer.success", "data": {"reference": "TRF_1"}})
        mock_handler_class.return_value.handle.assert_called_once()
