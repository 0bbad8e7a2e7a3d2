from uuid import UUID

from ninja_extra import api_controller, route

from common.controllers import UserAwareController
from events.models import Reservation
from events.schema import ReservationSchema
from finance import schema
from finance.models import Transaction
from finance.service import payment_service


@api_controller("/checkout", auth=None, tags=["Checkout"])
class CheckoutController(UserAwareController):
    def get_reservation(self, reservation_id: UUID) -> Reservation:
        """Reservations are addressed by their unguessable id."""
        return self.get_object_or_exception(Reservation.objects.full(), pk=reservation_id)  # type: ignore[no-any-return]

    @route.get("/{uuid:reservation_id}", url_name="get_checkout", response=ReservationSchema)
    def get_checkout(self, reservation_id: UUID) -> ReservationSchema:
        """Show a reservation with its price.

        Once a payment was opened the price is the one snapshotted on it.
        """
        reservation = self.get_reservation(reservation_id)
        return ReservationSchema.from_reservation(reservation, payment_service.checkout_quote(reservation))

    @route.post(
        "/{uuid:reservation_id}/initialize",
        url_name="initialize_payment",
        response={200: schema.PaymentInitializedSchema},
    )
    def initialize_payment(
        self, reservation_id: UUID, payload: schema.InitializePaymentSchema
    ) -> schema.PaymentInitializedSchema:
        """Snapshot the fees and open a payment at the gateway.

        Free baskets are settled immediately and return no authorization URL.
        """
        reservation = self.get_reservation(reservation_id)
        authorization_url, txn = payment_service.initialize_payment(reservation, callback_url=payload.callback_url)
        return schema.PaymentInitializedSchema(
            reference=txn.reference,
            authorization_url=authorization_url,
            amount=txn.amount,
            currency=txn.currency,
            status=Transaction.Status(txn.status),
        )

    @route.post("/verify", url_name="verify_payment", response=schema.TransactionStatusSchema)
    def verify_payment(self, payload: schema.VerifyPaymentSchema) -> Transaction:
        """Settle a payment after the guest returns from the gateway."""
        return payment_service.verify_payment(payload.reference)
