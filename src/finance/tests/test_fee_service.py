"""Tests for fee resolution and fee calculation."""

from decimal import Decimal

import pytest

from events.models import Event, Organizer
from finance.exceptions import InvalidFeeInputError, InvalidFeeRatesError, MissingFeeConfigurationError
from finance.models import FeeSettings
from finance.service.fee_service import (
    FeeRates,
    calculate_fees,
    from_minor_units,
    get_effective_fee_rates,
    get_system_fee_rates,
    quantize_money,
    resolve_fee_rates,
    to_minor_units,
)

SYSTEM = FeeRates(platform_rate=Decimal("0.05"), processor_rate=Decimal("0.02"))


class TestMoneyHelpers:
    def test_quantize_rounds_half_up(self) -> None:
        assert quantize_money(Decimal("1.005")) == Decimal("1.01")
        assert quantize_money(Decimal("1.004")) == Decimal("1.00")

    def test_minor_units(self) -> None:
        assert to_minor_units(Decimal("107.00")) == 10700
        assert to_minor_units(Decimal("0.1")) == 10
        assert from_minor_units(10735) == Decimal("107.35")


class TestFeeRates:
    def test_from_percentages(self) -> None:
        rates = FeeRates.from_percentages(Decimal("4.00"), Decimal("1.95"))

        assert rates.platform_rate == Decimal("0.04")
        assert rates.processor_rate == Decimal("0.0195")
        assert rates.platform_fee_percent == Decimal("4.00")

    @pytest.mark.parametrize("rate", [Decimal("-0.01"), Decimal("1"), Decimal("1.5")])
    def test_rejects_out_of_range(self, rate: Decimal) -> None:
        with pytest.raises(InvalidFeeRatesError):
            FeeRates(platform_rate=rate, processor_rate=Decimal("0.02"))

    def test_rejects_floats(self) -> None:
        with pytest.raises(InvalidFeeRatesError):
            FeeRates(platform_rate=0.05, processor_rate=Decimal("0.02"))  # type: ignore[arg-type]


class TestCalculateFees:
    def test_customer_pays_fees_on_top(self) -> None:
        breakdown = calculate_fees(Decimal("100.00"), Decimal("0"), Event.FeeBearer.CUSTOMER, SYSTEM)

        assert breakdown.platform_fee == Decimal("5.00")
        assert breakdown.processor_fee == Decimal("2.00")
        assert breakdown.customer_fees == Decimal("7.00")
        assert breakdown.customer_total == Decimal("107.00")
        assert breakdown.organizer_net == Decimal("100.00")

    def test_organizer_absorbs_fees(self) -> None:
        breakdown = calculate_fees(Decimal("100.00"), Decimal("0"), Event.FeeBearer.ORGANIZER, SYSTEM)

        assert breakdown.customer_fees == Decimal("0")
        assert breakdown.customer_total == Decimal("100.00")
        assert breakdown.organizer_net == Decimal("93.00")
        assert breakdown.total_fees == Decimal("7.00")

    def test_platform_fee_excludes_addons(self) -> None:
        breakdown = calculate_fees(Decimal("100.00"), Decimal("50.00"), Event.FeeBearer.CUSTOMER, SYSTEM)

        assert breakdown.subtotal == Decimal("150.00")
        assert breakdown.platform_fee == Decimal("5.00")
        assert breakdown.processor_fee == Decimal("3.00")
        assert breakdown.customer_total == Decimal("158.00")

    def test_each_fee_rounded_to_minor_units(self) -> None:
        rates = FeeRates(platform_rate=Decimal("0.035"), processor_rate=Decimal("0.0195"))

        breakdown = calculate_fees(Decimal("33.33"), Decimal("0"), Event.FeeBearer.CUSTOMER, rates)

        # 33.33 * 0.035 = 1.16655, 33.33 * 0.0195 = 0.649935
        assert breakdown.platform_fee == Decimal("1.17")
        assert breakdown.processor_fee == Decimal("0.65")
        assert breakdown.customer_total == Decimal("35.15")

    @pytest.mark.parametrize("bearer", list(Event.FeeBearer))
    def test_total_equals_net_plus_fees(self, bearer: Event.FeeBearer) -> None:
        breakdown = calculate_fees(Decimal("87.45"), Decimal("12.10"), bearer, SYSTEM)

        assert breakdown.customer_total == breakdown.organizer_net + breakdown.total_fees

    @pytest.mark.parametrize("bearer", list(Event.FeeBearer))
    @pytest.mark.parametrize(
        "platform_rate,processor_rate",
        [
            ("0", "0"),
            ("0.05", "0.02"),
            ("0.035", "0.0195"),
            ("0.5", "0.4999"),
            ("0.9999", "0"),
            ("0", "0.9999"),
        ],
    )
    @pytest.mark.parametrize(
        "ticket_subtotal,addon_subtotal",
        [
            ("0.01", "0"),
            ("0.03", "0.01"),
            ("0.99", "0"),
            ("33.33", "12.34"),
            ("100.00", "0.05"),
            ("999999.99", "0.01"),
        ],
    )
    def test_fees_never_exceed_what_the_customer_pays(
        self,
        ticket_subtotal: str,
        addon_subtotal: str,
        platform_rate: str,
        processor_rate: str,
        bearer: Event.FeeBearer,
    ) -> None:
        rates = FeeRates(platform_rate=Decimal(platform_rate), processor_rate=Decimal(processor_rate))

        breakdown = calculate_fees(Decimal(ticket_subtotal), Decimal(addon_subtotal), bearer, rates)

        assert breakdown.platform_fee >= Decimal("0")
        assert breakdown.processor_fee >= Decimal("0")
        assert breakdown.total_fees <= breakdown.customer_total
        assert breakdown.organizer_net >= Decimal("0")
        assert breakdown.customer_total == breakdown.organizer_net + breakdown.total_fees
        if bearer == Event.FeeBearer.CUSTOMER:
            assert breakdown.customer_total >= breakdown.subtotal
            assert breakdown.organizer_net == breakdown.subtotal
        else:
            assert breakdown.customer_total == breakdown.subtotal

    def test_zero_subtotal_has_no_fees(self) -> None:
        breakdown = calculate_fees(Decimal("0"), Decimal("0"), Event.FeeBearer.CUSTOMER, SYSTEM)

        assert breakdown.customer_total == Decimal("0")
        assert breakdown.total_fees == Decimal("0")

    def test_waived_platform_fee(self) -> None:
        rates = FeeRates(platform_rate=Decimal("0"), processor_rate=Decimal("0.02"))

        breakdown = calculate_fees(Decimal("100.00"), Decimal("0"), Event.FeeBearer.CUSTOMER, rates)

        assert breakdown.platform_fee == Decimal("0")
        assert breakdown.customer_total == Decimal("102.00")

    def test_negative_subtotal_rejected(self) -> None:
        with pytest.raises(InvalidFeeInputError):
            calculate_fees(Decimal("-1"), Decimal("0"), Event.FeeBearer.CUSTOMER, SYSTEM)

    def test_unknown_bearer_rejected(self) -> None:
        with pytest.raises(InvalidFeeInputError):
            calculate_fees(Decimal("10"), Decimal("0"), "nobody", SYSTEM)

    def test_organizer_bearer_needs_rates_below_one(self) -> None:
        rates = FeeRates(platform_rate=Decimal("0.6"), processor_rate=Decimal("0.4"))

        with pytest.raises(InvalidFeeRatesError):
            calculate_fees(Decimal("10"), Decimal("0"), Event.FeeBearer.ORGANIZER, rates)

        # The customer can still pay rates this high on top
        assert calculate_fees(Decimal("10"), Decimal("0"), Event.FeeBearer.CUSTOMER, rates).customer_total == Decimal(
            "20.00"
        )


class TestResolveFeeRates:
    """Event override beats organizer override beats the system rate."""

    def test_system_rate_when_no_overrides(self) -> None:
        assert resolve_fee_rates(SYSTEM) == SYSTEM

    def test_organizer_override(self) -> None:
        rates = resolve_fee_rates(SYSTEM, organizer_override=Decimal("3.00"))

        assert rates.platform_rate == Decimal("0.03")
        assert rates.processor_rate == SYSTEM.processor_rate

    def test_event_override_wins(self) -> None:
        rates = resolve_fee_rates(SYSTEM, event_override=Decimal("1.50"), organizer_override=Decimal("3.00"))

        assert rates.platform_rate == Decimal("0.015")

    def test_zero_override_is_a_waiver(self) -> None:
        assert resolve_fee_rates(SYSTEM, event_override=Decimal("0")).platform_rate == Decimal("0")
        assert resolve_fee_rates(SYSTEM, organizer_override=Decimal("0")).platform_rate == Decimal("0")

    def test_is_idempotent(self) -> None:
        first = resolve_fee_rates(SYSTEM, organizer_override=Decimal("3.00"))

        assert resolve_fee_rates(SYSTEM, organizer_override=Decimal("3.00")) == first


@pytest.mark.django_db
class TestSystemFeeRates:
    def test_reads_fee_settings(self, fee_settings: FeeSettings) -> None:
        assert get_system_fee_rates() == SYSTEM

    def test_null_rates_fall_back_to_deployment_defaults(self, settings: object) -> None:
        settings.DEFAULT_PLATFORM_FEE_PERCENT = Decimal("4.00")  # type: ignore[attr-defined]
        settings.DEFAULT_PROCESSOR_FEE_PERCENT = Decimal("1.95")  # type: ignore[attr-defined]

        rates = get_system_fee_rates()

        assert rates.platform_rate == Decimal("0.04")
        assert rates.processor_rate == Decimal("0.0195")

    def test_missing_everywhere_is_an_error(self, settings: object) -> None:
        settings.DEFAULT_PLATFORM_FEE_PERCENT = None  # type: ignore[attr-defined]

        with pytest.raises(MissingFeeConfigurationError):
            get_system_fee_rates()

    def test_stored_zero_is_not_missing(self, fee_settings: FeeSettings, settings: object) -> None:
        settings.DEFAULT_PLATFORM_FEE_PERCENT = None  # type: ignore[attr-defined]
        fee_settings.platform_fee_percent = Decimal("0")
        fee_settings.save()

        assert get_system_fee_rates().platform_rate == Decimal("0")


@pytest.mark.django_db
class TestEffectiveFeeRates:
    def test_three_level_precedence(self, event: Event, organizer: Organizer) -> None:
        assert get_effective_fee_rates(event).platform_rate == Decimal("0.05")

        organizer.platform_fee_percent = Decimal("3.00")
        organizer.save()
        event.refresh_from_db()
        assert get_effective_fee_rates(event).platform_rate == Decimal("0.03")

        event.platform_fee_percent = Decimal("1.00")
        event.save()
        assert get_effective_fee_rates(event).platform_rate == Decimal("0.01")
        assert get_effective_fee_rates(event).processor_rate == Decimal("0.02")
