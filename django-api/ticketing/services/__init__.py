from ticketing.services.issuance_service import TicketIssuanceService
from ticketing.services.payment_service import PaymentWebhookService
from ticketing.services.registration_service import RegistrationReviewService
from ticketing.services.verification_service import EntryVerificationService

__all__ = [
    "EntryVerificationService",
    "PaymentWebhookService",
    "RegistrationReviewService",
    "TicketIssuanceService",
]
