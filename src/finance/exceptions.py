"""Finance domain errors.

Fee computation never degrades silently: a missing configuration or an
incomplete payout snapshot is an error, not a zero.
"""


class FinanceError(Exception):
    """Base class for finance errors."""


class MissingFeeConfigurationError(FinanceError):
    """Raised when no system-level fee rate is configured."""


class InvalidFeeRatesError(FinanceError):
    """Raised when fee rates fall outside [0, 1) or cannot be combined."""


class InvalidFeeInputError(FinanceError):
    """Raised when a fee calculation receives a negative amount."""


class IncompleteFeeSnapshotError(FinanceError):
    """Raised when a settled transaction lacks the fee snapshot needed to reconcile it."""

    def __init__(self, reference: str) -> None:
        """Keep the reference for the error response."""
        self.reference = reference
        super().__init__(f"Transaction {reference} has no fee snapshot.")


class PayoutError(FinanceError):
    """Base class for payout request and lifecycle errors."""


class PayoutAlreadyPendingError(PayoutError):
    """Raised when an event already has a pending or processing payout."""


class InsufficientPayoutBalanceError(PayoutError):
    """Raised when a payout request exceeds the amount still due."""


class InvalidPayoutStateError(PayoutError):
    """Raised on an illegal payout status transition."""


class PaymentGatewayError(FinanceError):
    """Raised when the payment gateway cannot be reached or rejects a request."""


class PaymentVerificationError(FinanceError):
    """Raised when the gateway reports a payment as not successful."""


class PaymentAmountMismatchError(PaymentVerificationError):
    """Raised when the settled amount differs from the amount that was quoted."""
