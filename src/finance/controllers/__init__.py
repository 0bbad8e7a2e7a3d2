from .checkout import CheckoutController
from .finance_admin import FinanceAdminController
from .organizer_finance import OrganizerFinanceController
from .paystack_webhook import PaystackWebhookController

FINANCE_CONTROLLERS = [
    CheckoutController,
    PaystackWebhookController,
    OrganizerFinanceController,
    FinanceAdminController,
]

__all__ = [
    "FINANCE_CONTROLLERS",
    "CheckoutController",
    "FinanceAdminController",
    "OrganizerFinanceController",
    "PaystackWebhookController",
]
