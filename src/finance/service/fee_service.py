"""Fee resolution and fee calculation.

Rates are resolved with the precedence event override > organizer override >
system default. Only the platform fee can be overridden; the processor fee is
a property of the payment gateway and always comes from the system settings.

All money is handled as ``Decimal`` and every fee is quantized to minor
currency units (0.01, half-up) on its own, so totals are exact sums of the
parts that are shown to customers and organizers.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

import structlog
from django.conf import settings

from events.models import Event
from finance.exceptions import InvalidFeeInputError, InvalidFeeRatesError, MissingFeeConfigurationError
from finance.models import FeeSettings

logger = structlog.get_logger(__name__)

CENTS = Decimal("0.01")
ZERO = Decimal("0")
ONE = Decimal("1")
HUNDRED = Decimal("100")

FeeBearer = Event.FeeBearer


def quantize_money(amount: Decimal) -> Decimal:
    """Round an amount to minor currency units."""
    return Decimal(amount).quantize(CENTS, rounding=ROUND_HALF_UP)


def to_minor_units(amount: Decimal) -> int:
    """Convert a major-unit amount to the integer kobo/pesewas the gateway expects."""
    return int((quantize_money(amount) * HUNDRED).to_integral_value())


def from_minor_units(value: int) -> Decimal:
    """Convert a gateway integer amount back to major units."""
    return (Decimal(value) / HUNDRED).quantize(CENTS)


@dataclass(frozen=True)
class FeeRates:
    """A resolved (platform, processor) pair, both as fractions in [0, 1)."""

    platform_rate: Decimal
    processor_rate: Decimal

    def __post_init__(self) -> None:
        """Reject rates that cannot describe a fee."""
        for name in ("platform_rate", "processor_rate"):
            value = getattr(self, name)
            if not isinstance(value, Decimal):
                raise InvalidFeeRatesError(f"{name} must be a Decimal, got {type(value).__name__}.")
            if not ZERO <= value < ONE:
                raise InvalidFeeRatesError(f"{name} must be in [0, 1), got {value}.")

    @classmethod
    def from_percentages(cls, platform_percent: Decimal, processor_percent: Decimal) -> "FeeRates":
        """Build rates from stored percentages (4.00 means 4%)."""
        return cls(
            platform_rate=Decimal(platform_percent) / HUNDRED,
            processor_rate=Decimal(processor_percent) / HUNDRED,
        )

    @property
    def platform_fee_percent(self) -> Decimal:
        """The platform rate expressed in percent."""
        return self.platform_rate * HUNDRED

    @property
    def processor_fee_percent(self) -> Decimal:
        """The processor rate expressed in percent."""
        return self.processor_rate * HUNDRED


@dataclass(frozen=True)
class FeeBreakdown:
    """The fees of one basket.

    ``rates`` is None when the breakdown was rebuilt from a stored snapshot that
    did not record them.
    """

    ticket_subtotal: Decimal
    addon_subtotal: Decimal
    subtotal: Decimal
    platform_fee: Decimal
    processor_fee: Decimal
    customer_fees: Decimal
    customer_total: Decimal
    organizer_net: Decimal
    fee_bearer: str
    rates: FeeRates | None = None

    @property
    def total_fees(self) -> Decimal:
        """Platform and processor fee together."""
        return self.platform_fee + self.processor_fee


def get_system_fee_rates() -> FeeRates:
    """Load the system default rates.

    The FeeSettings row wins; a null column falls back to the deployment
    defaults. If neither is configured the rate is missing, which is an error.
    """
    fee_settings = FeeSettings.get_solo()
    platform_percent = fee_settings.platform_fee_percent
    if platform_percent is None:
        platform_percent = getattr(settings, "DEFAULT_PLATFORM_FEE_PERCENT", None)
    processor_percent = fee_settings.processor_fee_percent
    if processor_percent is None:
        processor_percent = getattr(settings, "DEFAULT_PROCESSOR_FEE_PERCENT", None)

    missing = [
        name
        for name, value in (("platform_fee_percent", platform_percent), ("processor_fee_percent", processor_percent))
        if value is None
    ]
    if missing:
        logger.error("fee_configuration_missing", missing=missing)
        raise MissingFeeConfigurationError(f"No system fee configured for: {', '.join(missing)}.")
    return FeeRates.from_percentages(platform_percent, processor_percent)


def resolve_fee_rates(
    system: FeeRates,
    event_override: Decimal | None = None,
    organizer_override: Decimal | None = None,
) -> FeeRates:
    """Resolve the effective rates from the system rates and optional percent overrides.

    An override applies whenever it is set. ``None`` means unset and falls
    through; an explicit zero is a deliberate fee waiver and wins.
    """
    if event_override is not None:
        platform_rate = Decimal(event_override) / HUNDRED
    elif organizer_override is not None:
        platform_rate = Decimal(organizer_override) / HUNDRED
    else:
        platform_rate = system.platform_rate
    return FeeRates(platform_rate=platform_rate, processor_rate=system.processor_rate)


def get_effective_fee_rates(event: Event, system: FeeRates | None = None) -> FeeRates:
    """Resolve the rates that apply to new sales for an event."""
    if system is None:
        system = get_system_fee_rates()
    return resolve_fee_rates(
        system,
        event_override=event.platform_fee_percent,
        organizer_override=event.organizer.platform_fee_percent,
    )


def calculate_fees(
    ticket_subtotal: Decimal,
    addon_subtotal: Decimal,
    fee_bearer: str,
    rates: FeeRates,
) -> FeeBreakdown:
    """Compute the fees for a basket.

    The platform fee applies to ticket revenue only; the processor fee applies to
    everything the gateway collects for the basket (tickets and add-ons).

    - ``customer`` bearer: fees are added on top, the organizer nets the subtotal.
    - ``organizer`` bearer: the customer pays the subtotal, both fees come out of
      the organizer's share.
    """
    if fee_bearer not in FeeBearer.values:
        raise InvalidFeeInputError(f"Unknown fee bearer {fee_bearer!r}.")
    ticket_subtotal = quantize_money(ticket_subtotal)
    addon_subtotal = quantize_money(addon_subtotal)
    if ticket_subtotal < ZERO or addon_subtotal < ZERO:
        raise InvalidFeeInputError("Subtotals cannot be negative.")

    subtotal = ticket_subtotal + addon_subtotal
    platform_fee = quantize_money(ticket_subtotal * rates.platform_rate)
    processor_fee = quantize_money(subtotal * rates.processor_rate)

    if fee_bearer == FeeBearer.CUSTOMER:
        customer_fees = platform_fee + processor_fee
        customer_total = subtotal + customer_fees
        organizer_net = subtotal
    else:
        # Both fees are carved out of the subtotal, so together they must stay below it
        if rates.platform_rate + rates.processor_rate >= ONE:
            raise InvalidFeeRatesError("Combined rates must stay below 100% when the organizer bears fees.")
        customer_fees = ZERO
        customer_total = subtotal
        organizer_net = subtotal - platform_fee - processor_fee

    return FeeBreakdown(
        ticket_subtotal=ticket_subtotal,
        addon_subtotal=addon_subtotal,
        subtotal=subtotal,
        platform_fee=platform_fee,
        processor_fee=processor_fee,
        customer_fees=customer_fees,
        customer_total=customer_total,
        organizer_net=organizer_net,
        fee_bearer=str(fee_bearer),
        rates=rates,
    )
