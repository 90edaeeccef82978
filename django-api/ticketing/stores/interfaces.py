"""Store interfaces (repository pattern).

Stores must be swappable and return domain models. Every mutating method is a
single atomic unit: it either commits fully or leaves no trace.
"""

from abc import ABC, abstractmethod
from datetime import datetime

from ticketing.domain import (
    AdmissionOutcome,
    CheckIn,
    DeliveryLogEntry,
    IssuanceResult,
    Payment,
    PaymentStatus,
    Registration,
    RegistrationId,
    RegistrationStatus,
    Ticket,
    TicketDetails,
    TicketNumber,
    TicketRequest,
    TicketStats,
    TicketType,
    TicketTypeId,
)


class RegistrationStore(ABC):
    """Interface for registration, payment and delivery-log persistence."""

    @abstractmethod
    def get_registration(self, registration_id: RegistrationId) -> Registration | None:
        """Return a registration with its payment, ticket count and items, or None."""
        ...

    @abstractmethod
    def apply_payment_status(
        self, reference: str, status: PaymentStatus, occurred_at: datetime
    ) -> Payment | None:
        """Record a processor status for a payment, or return None if unknown.

        SUCCEEDED stamps ``paid_at`` and completes the registration. A payment that
        already SUCCEEDED keeps its status.
        """
        ...

    @abstractmethod
    def review_registration(
        self,
        registration_id: RegistrationId,
        new_status: RegistrationStatus,
        actor: str,
        reviewed_at: datetime,
        notes: str = "",
    ) -> Registration:
        """Move a PENDING registration to ``new_status``.

        Raises:
            RegistrationNotFoundError: If the registration does not exist.
            RegistrationStateError: If the registration is no longer PENDING.
        """
        ...

    @abstractmethod
    def record_delivery(self, entry: DeliveryLogEntry) -> None:
        """Append a delivery log entry."""
        ...


class TicketStore(ABC):
    """Interface for ticket issuance and admission persistence."""

    @abstractmethod
    def issue_batch(
        self,
        registration_id: RegistrationId,
        requests: list[TicketRequest],
        issued_at: datetime,
    ) -> IssuanceResult:
        """Create tickets and move stock in one transaction.

        Returns the existing tickets with ``created=False`` when the registration
        already has some.

        Raises:
            RegistrationNotFoundError: If the registration does not exist.
            TicketTypeNotFoundError: If a requested ticket type does not exist.
            TicketTypeUnavailableError: If a requested ticket type is inactive.
            InsufficientStockError: If a ticket type cannot cover its quantity.
            TransactionConflictError: If a concurrent update conflicts twice.
        """
        ...

    @abstractmethod
    def admit(
        self,
        ticket_number: TicketNumber,
        checked_in_by: str,
        location: str,
        admitted_at: datetime,
    ) -> AdmissionOutcome:
        """Decide entry under a ticket lock, marking it USED when admitted.

        Raises:
            TicketNotFoundError: If no ticket carries ``ticket_number``.
            TransactionConflictError: If a concurrent update conflicts twice.
        """
        ...

    @abstractmethod
    def get_ticket_details(self, ticket_number: TicketNumber) -> TicketDetails | None:
        """Return a ticket with its holder fields, or None if not found."""
        ...

    @abstractmethod
    def latest_check_in(self, ticket_number: TicketNumber) -> CheckIn | None:
        """Return the most recent check-in for a ticket, if any."""
        ...

    @abstractmethod
    def list_tickets(self, registration_id: RegistrationId) -> list[Ticket]:
        """Return a registration's tickets ordered by sequence."""
        ...

    @abstractmethod
    def mark_sent(self, registration_id: RegistrationId, sent_at: datetime) -> int:
        """Move the registration's GENERATED tickets to SENT; return how many moved."""
        ...

    @abstractmethod
    def mark_collected(
        self, ticket_number: TicketNumber, collected_by: str, collected_at: datetime
    ) -> Ticket:
        """Move a GENERATED or SENT ticket to COLLECTED.

        Raises:
            TicketNotFoundError: If no ticket carries ``ticket_number``.
            TicketStateError: If the ticket cannot be collected in its current state.
        """
        ...

    @abstractmethod
    def ticket_stats(self) -> TicketStats:
        """Return ticket counts overall and per status."""
        ...

    @abstractmethod
    def restock(self, ticket_type_id: TicketTypeId, quantity: int) -> TicketType:
        """Add to available and total stock together under a row lock.

        Raises:
            TicketTypeNotFoundError: If the ticket type does not exist.
        """
        ...

    @abstractmethod
    def search_by_suffix(self, suffix: str, limit: int) -> list[TicketDetails]:
        """Return up to ``limit`` tickets whose number ends with ``suffix``."""
        ...
