"""Payment webhook service.

Payment success is the source of truth. Ticket generation rides on it but can
never make the processor see a failed delivery; the admin path can retry it.
"""

import logging
from collections.abc import Callable
from datetime import datetime

from ticketing.domain import PaymentAcknowledgement, PaymentStatus
from ticketing.domain.errors import DomainError, PaymentNotFoundError
from ticketing.services.issuance_service import TicketIssuanceService, utcnow
from ticketing.stores.interfaces import RegistrationStore

logger = logging.getLogger(__name__)

WEBHOOK_ACTOR = "payment-webhook"
ISSUANCE_FAILED_MESSAGE = "Ticket generation failed, retry from the admin panel"


class PaymentWebhookService:
    def __init__(
        self,
        registrations: RegistrationStore,
        issuance: TicketIssuanceService,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._registrations = registrations
        self._issuance = issuance
        self._clock = clock

    def handle_payment_event(
        self, reference: str, status: PaymentStatus
    ) -> PaymentAcknowledgement:
        """Apply a processor status update and issue tickets on success.

        Redelivery of the same event is harmless: the payment update is idempotent
        and issuance returns the existing tickets.

        Raises:
            PaymentNotFoundError: If no payment carries ``reference``.
        """
        payment = self._registrations.apply_payment_status(reference, status, self._clock())
        if payment is None:
            raise PaymentNotFoundError(reference)
        logger.info("Payment %s is now %s", reference, payment.status.value)

        if payment.status is not PaymentStatus.SUCCEEDED:
            return PaymentAcknowledgement(received=True, payment=payment)

        try:
            result = self._issuance.auto_issue_tickets(
                str(payment.registration_id), WEBHOOK_ACTOR
            )
        except DomainError as exc:
            logger.exception(
                "Failed to auto-generate tickets for payment %s: %s", reference, exc
            )
            return PaymentAcknowledgement(
                received=True, payment=payment, issuance_error=exc.message
            )
        except Exception:
            # The payment update has committed, so the event is still acknowledged.
            logger.exception("Unexpected error generating tickets for payment %s", reference)
            return PaymentAcknowledgement(
                received=True, payment=payment, issuance_error=ISSUANCE_FAILED_MESSAGE
            )

        return PaymentAcknowledgement(
            received=True, payment=payment, tickets_issued=len(result.tickets)
        )
