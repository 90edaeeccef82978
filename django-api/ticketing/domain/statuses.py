"""Closed status sets for registrations, payments and tickets."""

from enum import Enum


class RegistrationStatus(str, Enum):
    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    PAYMENT_PENDING = "PAYMENT_PENDING"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"

    @property
    def is_closed(self) -> bool:
        return self in (RegistrationStatus.REJECTED, RegistrationStatus.CANCELLED)


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


class TicketStatus(str, Enum):
    """Ticket lifecycle.

    GENERATED -> SENT -> COLLECTED -> USED moves forward only. USED, CANCELLED and
    EXPIRED are terminal with respect to entry.
    """

    GENERATED = "GENERATED"
    SENT = "SENT"
    COLLECTED = "COLLECTED"
    USED = "USED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"

    @property
    def admits_entry(self) -> bool:
        return self in ADMITTABLE_TICKET_STATUSES

    @property
    def is_collectable(self) -> bool:
        return self in (TicketStatus.GENERATED, TicketStatus.SENT)


ADMITTABLE_TICKET_STATUSES = frozenset(
    {TicketStatus.GENERATED, TicketStatus.SENT, TicketStatus.COLLECTED}
)


class DeliveryKind(str, Enum):
    TICKET_DELIVERY = "TICKET_DELIVERY"
    REGISTRATION_APPROVED = "REGISTRATION_APPROVED"
    REGISTRATION_REJECTED = "REGISTRATION_REJECTED"
