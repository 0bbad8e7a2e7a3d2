import orjson
import structlog
from django.http import HttpRequest
from ninja.errors import HttpError
from ninja_extra import api_controller, route

from finance.service import paystack_service
from finance.service.payment_service import PaystackEventHandler

logger = structlog.get_logger(__name__)


@api_controller("/paystack", auth=None, tags=["Paystack"])
class PaystackWebhookController:
    @route.post("/webhook", url_name="paystack_webhook", response={200: None})
    def handle_webhook(self, request: HttpRequest) -> tuple[int, None]:
        """Handle incoming Paystack webhooks."""
        payload = request.body
        if not paystack_service.is_valid_signature(payload, request.META.get("HTTP_X_PAYSTACK_SIGNATURE")):
            logger.warning("paystack_webhook_invalid_signature")
            raise HttpError(400, "Invalid Paystack signature")
        try:
            event = orjson.loads(payload)
        except orjson.JSONDecodeError:
            raise HttpError(400, "Invalid Paystack payload")

        PaystackEventHandler(event).handle()

        return 200, None
