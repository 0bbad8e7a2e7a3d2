from decimal import Decimal

from decouple import config

DEFAULT_CURRENCY = config("DEFAULT_CURRENCY", default="GHS")
# System-level fallbacks used when the FeeSettings row leaves a rate unset.
DEFAULT_PLATFORM_FEE_PERCENT = config("DEFAULT_PLATFORM_FEE_PERCENT", cast=Decimal, default="4.00")
DEFAULT_PROCESSOR_FEE_PERCENT = config("DEFAULT_PROCESSOR_FEE_PERCENT", cast=Decimal, default="1.95")

PAYSTACK_SECRET_KEY = config("PAYSTACK_SECRET_KEY", default="sk_test_...")
PAYSTACK_PUBLIC_KEY = config("PAYSTACK_PUBLIC_KEY", default="pk_test_...")
PAYSTACK_BASE_URL = config("PAYSTACK_BASE_URL", default="https://api.paystack.co")
PAYSTACK_TIMEOUT_SECONDS = config("PAYSTACK_TIMEOUT_SECONDS", cast=float, default=10.0)

RESERVATION_EXPIRY_MINUTES = config("RESERVATION_EXPIRY_MINUTES", cast=int, default=15)
# Pending transactions younger than this are left to the webhook before polling the gateway
PENDING_TRANSACTION_GRACE_MINUTES = config("PENDING_TRANSACTION_GRACE_MINUTES", cast=int, default=10)
