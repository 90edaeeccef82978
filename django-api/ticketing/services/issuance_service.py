"""Ticket issuance service - the single authority for minting tickets.

Services:
- Depend only on interfaces (stores)
- Validate domain invariants
- Perform orchestration and error mapping
- Return domain models or domain errors
"""

import logging
from collections.abc import Callable, Iterable
from datetime import datetime, timezone

from ticketing.domain import (
    DeliveryKind,
    DeliveryLogEntry,
    IssuanceResult,
    Registration,
    RegistrationId,
    StatusSummary,
    Ticket,
    TicketRequest,
    TicketStats,
    TicketType,
    TicketTypeId,
)
from ticketing.domain.errors import (
    InvalidTicketRequestError,
    IssuanceNotAllowedError,
    NoPurchasedItemsError,
    RegistrationNotFoundError,
)
from ticketing.domain.rules import issuance_reason, should_issue_tickets, summarize
from ticketing.domain.ticket_numbers import extract_ticket_number
from ticketing.stores.interfaces import RegistrationStore, TicketStore

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def merge_requests(requests: Iterable[TicketRequest]) -> list[TicketRequest]:
    """Combine requests for the same ticket type, keeping first-seen order."""
    quantities: dict = {}
    for request in requests:
        quantities[request.ticket_type_id] = (
            quantities.get(request.ticket_type_id, 0) + request.quantity
        )
    return [
        TicketRequest(ticket_type_id=ticket_type_id, quantity=quantity)
        for ticket_type_id, quantity in quantities.items()
    ]


class TicketIssuanceService:
    """Service deciding on and performing ticket issuance."""

    def __init__(
        self,
        registrations: RegistrationStore,
        tickets: TicketStore,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._registrations = registrations
        self._tickets = tickets
        self._clock = clock

    def _load(self, registration_id: str) -> Registration:
        registration = self._registrations.get_registration(
            RegistrationId.from_string(registration_id)
        )
        if registration is None:
            raise RegistrationNotFoundError(registration_id)
        return registration

    def should_issue_tickets(self, registration_id: str) -> bool:
        """Return whether the automatic path may issue tickets now.

        Raises:
            InvalidIdentifierError: If the registration_id is not a valid UUID.
            RegistrationNotFoundError: If the registration does not exist.
        """
        return should_issue_tickets(self._load(registration_id))

    def status_summary(self, registration_id: str) -> StatusSummary:
        """Explain whether tickets have been, or can be, issued.

        Raises:
            InvalidIdentifierError: If the registration_id is not a valid UUID.
            RegistrationNotFoundError: If the registration does not exist.
        """
        return summarize(self._load(registration_id))

    def issue_tickets(
        self,
        registration_id: str,
        ticket_requests: Iterable[TicketRequest],
        actor: str,
        template: str = "admin-generation",
    ) -> IssuanceResult:
        """Issue tickets for a registration without consulting the gate.

        This is the manual path for admins. A registration that already has
        tickets gets those back unchanged.

        Raises:
            InvalidIdentifierError: If the registration_id is not a valid UUID.
            InvalidTicketRequestError: If no tickets are requested or no actor is given.
            RegistrationNotFoundError: If the registration does not exist.
            TicketTypeNotFoundError: If a requested ticket type does not exist.
            TicketTypeUnavailableError: If a requested ticket type is inactive.
            InsufficientStockError: If a ticket type cannot cover its quantity.
            TransactionConflictError: If concurrent updates keep conflicting.
        """
        if not actor:
            raise InvalidTicketRequestError("An acting user is required to issue tickets")
        requests = merge_requests(ticket_requests)
        if not requests:
            raise InvalidTicketRequestError("At least one ticket must be requested")

        registration = self._load(registration_id)
        result = self._tickets.issue_batch(registration.id, requests, self._clock())

        if not result.created:
            logger.warning(
                "Registration %s already has %d tickets, skipping issuance by %s",
                registration.id,
                len(result.tickets),
                actor,
            )
            return result

        logger.info(
            "Issued %d tickets for registration %s by %s",
            len(result.tickets),
            registration.id,
            actor,
        )
        self._log_delivery(registration, result.tickets, actor, template)
        return result

    def auto_issue_tickets(self, registration_id: str, actor: str) -> IssuanceResult:
        """Issue the registration's purchased tickets if the gate allows it.

        Safe to call repeatedly: once tickets exist they are returned unchanged.

        Raises:
            IssuanceNotAllowedError: If the registration is not eligible.
            NoPurchasedItemsError: If the registration has no purchased items.
            (plus everything issue_tickets raises)
        """
        registration = self._load(registration_id)

        if registration.has_tickets:
            logger.warning(
                "Tickets already exist for registration %s, skipping generation",
                registration.id,
            )
            return IssuanceResult(
                tickets=tuple(self._tickets.list_tickets(registration.id)), created=False
            )

        if not should_issue_tickets(registration):
            raise IssuanceNotAllowedError(issuance_reason(registration).value)

        if not registration.items:
            raise NoPurchasedItemsError(str(registration.id))

        return self.issue_tickets(
            registration_id, registration.items, actor, template="auto-generation"
        )

    def _log_delivery(
        self,
        registration: Registration,
        tickets: tuple[Ticket, ...],
        actor: str,
        template: str,
    ) -> None:
        entry = DeliveryLogEntry(
            registration_id=registration.id,
            kind=DeliveryKind.TICKET_DELIVERY,
            subject=f"Tickets generated by {actor} - {registration.full_name}",
            recipient=registration.email,
            actor=actor,
            ticket_count=len(tickets),
            template=template,
        )
        # Tickets are committed at this point; a lost log entry must not undo them.
        try:
            self._registrations.record_delivery(entry)
        except Exception:
            logger.exception(
                "Failed to record ticket delivery for registration %s", registration.id
            )

    def mark_tickets_sent(self, registration_id: str, actor: str) -> int:
        """Mark a registration's freshly generated tickets as sent to the customer."""
        registration = self._load(registration_id)
        moved = self._tickets.mark_sent(registration.id, self._clock())
        logger.info(
            "%s marked %d tickets sent for registration %s", actor, moved, registration.id
        )
        return moved

    def mark_ticket_collected(self, identifier: str, collected_by: str) -> Ticket:
        """Record that a ticket was handed over at the booth.

        Raises:
            InvalidTicketFormatError: If no ticket number can be read from identifier.
            TicketNotFoundError: If the ticket does not exist.
            TicketStateError: If the ticket is past the collectable states.
        """
        ticket_number = extract_ticket_number(identifier)
        return self._tickets.mark_collected(ticket_number, collected_by, self._clock())

    def ticket_stats(self) -> TicketStats:
        return self._tickets.ticket_stats()

    def restock(self, ticket_type_id: str, quantity: int, actor: str) -> TicketType:
        """Add ``quantity`` tickets to a ticket type's available and total stock.

        Raises:
            InvalidIdentifierError: If the ticket_type_id is not a valid UUID.
            InvalidTicketRequestError: If quantity is not positive.
            TicketTypeNotFoundError: If the ticket type does not exist.
        """
        if quantity < 1:
            raise InvalidTicketRequestError("Restock quantity must be at least 1")
        ticket_type = self._tickets.restock(TicketTypeId.from_string(ticket_type_id), quantity)
        logger.info(
            "%s restocked %s by %d (available %d of %d)",
            actor,
            ticket_type.name,
            quantity,
            ticket_type.stock.available,
            ticket_type.stock.total,
        )
        return ticket_type
