from ticketing.domain.models import (
    AdmissionOutcome,
    CheckIn,
    DeliveryLogEntry,
    EntryOutcome,
    IssuanceReason,
    IssuanceResult,
    Payment,
    PaymentAcknowledgement,
    Registration,
    StatusSummary,
    Ticket,
    TicketDetails,
    TicketRequest,
    TicketStats,
    TicketType,
    VerificationResult,
)
from ticketing.domain.statuses import (
    DeliveryKind,
    PaymentStatus,
    RegistrationStatus,
    TicketStatus,
)
from ticketing.domain.value_objects import (
    Money,
    RegistrationId,
    StockLevel,
    TicketNumber,
    TicketTypeId,
)

__all__ = [
    "AdmissionOutcome",
    "CheckIn",
    "DeliveryLogEntry",
    "EntryOutcome",
    "IssuanceReason",
    "IssuanceResult",
    "Payment",
    "PaymentAcknowledgement",
    "Registration",
    "StatusSummary",
    "Ticket",
    "TicketDetails",
    "TicketRequest",
    "TicketStats",
    "TicketType",
    "VerificationResult",
    "DeliveryKind",
    "PaymentStatus",
    "RegistrationStatus",
    "TicketStatus",
    "Money",
    "RegistrationId",
    "StockLevel",
    "TicketNumber",
    "TicketTypeId",
]
