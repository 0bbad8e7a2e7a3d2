"""Tests for the organizer finance endpoints."""

import typing as t
from decimal import Decimal

import orjson
import pytest
from django.test.client import Client
from django.urls import reverse

from events.models import Event, Organizer, Reservation
from finance.models import FeeSettings, Payout, Transaction
from finance.tests.test_reconciliation_service import make_transaction

pytestmark = pytest.mark.django_db


@pytest.fixture
def sales(reservation: Reservation) -> list[Transaction]:
    return [
        make_transaction(reservation),
        make_transaction(reservation, status=Transaction.Status.PENDING, platform_fee=None),
    ]


def finance_url(organizer: Organizer, event: Event) -> str:
    return reverse("api:event_finance_summary", kwargs={"organizer_id": organizer.pk, "event_id": event.pk})


class TestEventFinanceSummary:
    def test_owner_sees_summary(
        self, owner_client: Client, organizer: Organizer, event: Event, sales: list[Transaction]
    ) -> None:
        response = owner_client.get(finance_url(organizer, event))

        assert response.status_code == 200
        data = response.json()
        assert data["transaction_count"] == 1
        assert Decimal(data["gross"]) == Decimal("107.00")
        assert Decimal(data["net_payout"]) == Decimal("100.00")
        assert Decimal(data["remaining_due"]) == Decimal("100.00")

    def test_team_member_sees_summary(
        self, team_client: Client, organizer: Organizer, event: Event, sales: list[Transaction]
    ) -> None:
        assert team_client.get(finance_url(organizer, event)).status_code == 200

    def test_superuser_sees_summary(self, superuser_client: Client, organizer: Organizer, event: Event) -> None:
        assert superuser_client.get(finance_url(organizer, event)).status_code == 200

    def test_outsider_is_forbidden(self, nonmember_client: Client, organizer: Organizer, event: Event) -> None:
        assert nonmember_client.get(finance_url(organizer, event)).status_code == 403

    def test_anonymous_is_unauthorized(self, client: Client, organizer: Organizer, event: Event) -> None:
        assert client.get(finance_url(organizer, event)).status_code == 401

    def test_event_of_another_organizer(
        self, owner_client: Client, organizer: Organizer, event: Event, nonmember_user: object
    ) -> None:
        other = Organizer.objects.create(name="Other Org", owner=nonmember_user)
        other_event = Event.objects.create(organizer=other, title="Elsewhere", starts_at=event.starts_at)

        assert owner_client.get(finance_url(organizer, other_event)).status_code == 404


class TestEventTransactions:
    def test_lists_reconciled_lines(
        self, owner_client: Client, organizer: Organizer, event: Event, sales: list[Transaction]
    ) -> None:
        url = reverse("api:event_transactions", kwargs={"organizer_id": organizer.pk, "event_id": event.pk})

        response = owner_client.get(url)

        assert response.status_code == 200
        lines = {line["reference"]: line for line in response.json()}
        settled, pending = sales
        assert lines[settled.reference]["is_estimate"] is False
        assert Decimal(lines[settled.reference]["net"]) == Decimal("100.00")
        assert lines[pending.reference]["is_estimate"] is True
        assert Decimal(lines[pending.reference]["gross"]) == pending.amount

    def test_failed_transactions_are_listed_at_zero(
        self, owner_client: Client, organizer: Organizer, event: Event, reservation: Reservation
    ) -> None:
        failed = make_transaction(reservation, status=Transaction.Status.FAILED)
        url = reverse("api:event_transactions", kwargs={"organizer_id": organizer.pk, "event_id": event.pk})

        (line,) = owner_client.get(url).json()

        assert line["reference"] == failed.reference
        assert Decimal(line["gross"]) == Decimal("0")
        assert Decimal(line["net"]) == Decimal("0")

    def test_listing_does_not_read_current_fee_configuration(
        self,
        owner_client: Client,
        organizer: Organizer,
        event: Event,
        sales: list[Transaction],
        fee_settings: FeeSettings,
        settings: t.Any,
    ) -> None:
        fee_settings.platform_fee_percent = None
        fee_settings.save()
        settings.DEFAULT_PLATFORM_FEE_PERCENT = None
        url = reverse("api:event_transactions", kwargs={"organizer_id": organizer.pk, "event_id": event.pk})

        response = owner_client.get(url)

        assert response.status_code == 200
        assert len(response.json()) == 2


class TestPayoutEndpoints:
    def request_url(self, organizer: Organizer, event: Event) -> str:
        return reverse("api:request_payout", kwargs={"organizer_id": organizer.pk, "event_id": event.pk})

    def test_request_full_balance(
        self, owner_client: Client, organizer: Organizer, event: Event, sales: list[Transaction]
    ) -> None:
        response = owner_client.post(self.request_url(organizer, event), data={}, content_type="application/json")

        assert response.status_code == 201
        data = response.json()
        assert Decimal(data["amount"]) == Decimal("100.00")
        assert data["status"] == "pending"

    def test_request_partial_amount(
        self, team_client: Client, organizer: Organizer, event: Event, sales: list[Transaction]
    ) -> None:
        response = team_client.post(
            self.request_url(organizer, event),
            data=orjson.dumps({"amount": "40.00"}),
            content_type="application/json",
        )

        assert response.status_code == 201
        assert Decimal(response.json()["amount"]) == Decimal("40.00")

    def test_second_request_conflicts(
        self, owner_client: Client, organizer: Organizer, event: Event, sales: list[Transaction]
    ) -> None:
        url = self.request_url(organizer, event)
        owner_client.post(url, data=orjson.dumps({"amount": "10.00"}), content_type="application/json")

        response = owner_client.post(url, data=orjson.dumps({"amount": "10.00"}), content_type="application/json")

        assert response.status_code == 409

    def test_over_request(
        self, owner_client: Client, organizer: Organizer, event: Event, sales: list[Transaction]
    ) -> None:
        response = owner_client.post(
            self.request_url(organizer, event),
            data=orjson.dumps({"amount": "100.01"}),
            content_type="application/json",
        )

        assert response.status_code == 400

    def test_outsider_cannot_request(
        self, nonmember_client: Client, organizer: Organizer, event: Event, sales: list[Transaction]
    ) -> None:
        response = nonmember_client.post(self.request_url(organizer, event), data={}, content_type="application/json")

        assert response.status_code == 403
        assert not Payout.objects.exists()

    def test_list_payouts(
        self, owner_client: Client, organizer: Organizer, event: Event, sales: list[Transaction]
    ) -> None:
        owner_client.post(self.request_url(organizer, event), data={}, content_type="application/json")

        response = owner_client.get(reverse("api:organizer_payouts", kwargs={"organizer_id": organizer.pk}))

        assert response.status_code == 200
        assert len(response.json()) == 1
