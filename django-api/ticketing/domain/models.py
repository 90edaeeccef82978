"""Domain models representing persisted state and operation results.

These are pure domain objects with no API input rules.
Django ORM models are in ticketing/models.py (persistence layer).
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from ticketing.domain.errors import InvalidTicketRequestError
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


@dataclass(frozen=True)
class TicketRequest:
    """A requested quantity of one ticket type."""

    ticket_type_id: TicketTypeId
    quantity: int

    def __post_init__(self) -> None:
        if self.quantity < 1:
            raise InvalidTicketRequestError("Ticket quantity must be at least 1")


@dataclass(frozen=True)
class Payment:
    """Domain representation of a Payment."""

    reference: str
    registration_id: RegistrationId
    status: PaymentStatus
    amount: Money
    paid_at: datetime | None


@dataclass(frozen=True)
class Registration:
    """Domain representation of a Registration with what the gate needs to decide."""

    id: RegistrationId
    first_name: str
    last_name: str
    email: str
    is_ems_client: bool
    status: RegistrationStatus
    final_amount: Money
    verified_by: str | None
    payment: Payment | None
    ticket_count: int
    items: tuple[TicketRequest, ...] = ()

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def has_tickets(self) -> bool:
        return self.ticket_count > 0


@dataclass(frozen=True)
class TicketType:
    """Domain representation of a TicketType."""

    id: TicketTypeId
    name: str
    price: Money
    stock: StockLevel
    is_active: bool


@dataclass(frozen=True)
class Ticket:
    """Domain representation of a Ticket."""

    ticket_number: TicketNumber
    registration_id: RegistrationId
    ticket_type_id: TicketTypeId
    ticket_type_name: str
    status: TicketStatus
    sequence: int
    purchase_price: Money
    issued_at: datetime
    sent_at: datetime | None = None
    collected_at: datetime | None = None
    collected_by: str | None = None
    used_at: datetime | None = None


@dataclass(frozen=True)
class TicketDetails:
    """A ticket together with the holder fields shown to scanning staff."""

    ticket: Ticket
    holder_name: str
    holder_email: str
    is_ems_client: bool
    registration_status: RegistrationStatus


@dataclass(frozen=True)
class CheckIn:
    """Domain representation of a successful entry scan."""

    ticket_number: TicketNumber
    checked_in_at: datetime
    checked_in_by: str
    location: str


@dataclass(frozen=True)
class DeliveryLogEntry:
    """Audit entry written after a delivery-relevant action."""

    registration_id: RegistrationId
    kind: DeliveryKind
    subject: str
    recipient: str
    actor: str
    ticket_count: int = 0
    template: str = ""


@dataclass(frozen=True)
class IssuanceResult:
    tickets: tuple[Ticket, ...]
    created: bool


class IssuanceReason(str, Enum):
    """Why tickets can or cannot be issued for a registration."""

    TICKETS_ALREADY_GENERATED = "tickets already generated"
    REGISTRATION_CLOSED = "registration closed"
    EMS_READY = "EMS customer ready for tickets"
    ADMIN_APPROVED = "admin approved, ready for tickets"
    EMS_PENDING_VERIFICATION = "EMS pending verification"
    PAYMENT_COMPLETED = "payment completed, ready for tickets"
    PAYMENT_NOT_COMPLETED = "payment not completed"
    REGISTRATION_NOT_COMPLETED = "registration not completed"
    PAYMENT_FAILED = "payment failed or cancelled"


@dataclass(frozen=True)
class StatusSummary:
    can_issue: bool
    has_tickets: bool
    reason: IssuanceReason
    next_steps: tuple[str, ...]
    registration_status: RegistrationStatus
    payment_status: PaymentStatus | None


@dataclass(frozen=True)
class TicketStats:
    total: int
    by_status: dict[TicketStatus, int]


class EntryOutcome(str, Enum):
    """Result of evaluating a ticket at the entrance."""

    ADMITTED = "ADMITTED"
    ALREADY_USED = "ALREADY_USED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"
    REGISTRATION_CLOSED = "REGISTRATION_CLOSED"


@dataclass(frozen=True)
class AdmissionOutcome:
    """What the store observed and did while holding the ticket lock.

    ``check_in`` is the new CheckIn when ``outcome`` is ADMITTED, otherwise the
    most recent earlier CheckIn, if any.
    """

    details: TicketDetails
    outcome: EntryOutcome
    check_in: CheckIn | None

    @property
    def admitted(self) -> bool:
        return self.outcome is EntryOutcome.ADMITTED


@dataclass(frozen=True)
class VerificationResult:
    success: bool
    can_enter: bool
    message: str
    outcome: EntryOutcome
    ticket: TicketDetails
    check_in: CheckIn | None = None


@dataclass(frozen=True)
class PaymentAcknowledgement:
    """Returned to the payment processor; issuance problems never fail it."""

    received: bool
    payment: Payment
    tickets_issued: int = 0
    issuance_error: str | None = None
