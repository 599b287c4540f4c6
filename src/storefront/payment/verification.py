"""Payment verification: confirm a gateway payment and record it locally.

The client completes payment with the gateway and hands the storefront the
gateway's payment id. Verification fetches that payment, captures it if it
was only authorized, and stores a ``Successful`` Payment record that checkout
can later rely on. Verifying the same payment twice updates the same record.
"""

import structlog
from protean.fields import Identifier, String
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from storefront.domain import storefront
from storefront.errors import PaymentRejected
from storefront.payment.gateway import get_gateway
from storefront.payment.payment import Payment, PaymentStatus

logger = structlog.get_logger(__name__)


@storefront.command(part_of="Payment")
class VerifyPayment:
    payment_id = String(required=True, max_length=100)
    user_id = Identifier()


@storefront.command_handler(part_of=Payment)
class VerifyPaymentHandler:
    @handle(VerifyPayment)
    def verify_payment(self, command: VerifyPayment) -> dict:
        gateway = get_gateway()
        details = gateway.fetch_payment(command.payment_id)

        if details.status == "authorized" and not details.captured:
            logger.info("Capturing authorized payment", payment_id=command.payment_id, amount=details.amount)
            details = gateway.capture_payment(command.payment_id, details.amount)

        if not details.captured or details.status != "captured":
            logger.warning(
                "Payment verification rejected",
                payment_id=command.payment_id,
                gateway_status=details.status,
            )
            raise PaymentRejected(command.payment_id, details.status)

        repo = current_domain.repository_for(Payment)
        payment = repo.find_by_payment_id(command.payment_id)
        if payment is None:
            payment = Payment.record(
                payment_id=command.payment_id,
                amount=details.amount,
                method=details.method,
                status=PaymentStatus.SUCCESSFUL.value,
                user_id=command.user_id,
            )
        else:
            payment.confirm(details.amount, details.method)
        repo.add(payment)

        logger.info("Payment verified", payment_id=command.payment_id, amount=details.amount)
        return {
            "payment_id": payment.payment_id,
            "status": payment.status,
            "amount": payment.amount,
            "method": payment.method,
        }
