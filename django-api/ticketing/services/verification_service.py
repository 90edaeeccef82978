"""Entry verification service - turns a scanned identifier into an admission decision."""

import logging
from collections.abc import Callable
from datetime import datetime

from ticketing.domain import (
    AdmissionOutcome,
    CheckIn,
    EntryOutcome,
    TicketDetails,
    VerificationResult,
)
from ticketing.domain.errors import InvalidTicketRequestError, TicketNotFoundError
from ticketing.domain.rules import entry_outcome
from ticketing.domain.ticket_numbers import extract_ticket_number
from ticketing.services.issuance_service import utcnow
from ticketing.stores.interfaces import TicketStore

logger = logging.getLogger(__name__)

SEARCH_MIN_LENGTH = 4
SEARCH_RESULT_LIMIT = 5


def describe_check_in(check_in: CheckIn) -> str:
    return (
        f"checked in by {check_in.checked_in_by} at {check_in.location} "
        f"on {check_in.checked_in_at:%Y-%m-%d %H:%M:%S %Z}".rstrip()
    )


def build_result(
    details: TicketDetails, outcome: EntryOutcome, check_in: CheckIn | None
) -> VerificationResult:
    """Map an entry outcome to what scanning staff see."""
    if outcome is EntryOutcome.ADMITTED:
        return VerificationResult(
            success=True,
            can_enter=True,
            message="Valid ticket - entry allowed",
            outcome=outcome,
            ticket=details,
            check_in=check_in,
        )

    if outcome is EntryOutcome.ALREADY_USED:
        message = "Ticket has already been used"
        if check_in is not None:
            message = f"{message}, {describe_check_in(check_in)}"
        return VerificationResult(
            success=True,
            can_enter=False,
            message=message,
            outcome=outcome,
            ticket=details,
            check_in=check_in,
        )

    if outcome is EntryOutcome.REGISTRATION_CLOSED:
        message = (
            f"Registration is {details.registration_status.value.lower()}. "
            "Entry not allowed"
        )
    elif outcome is EntryOutcome.CANCELLED:
        message = "Ticket has been cancelled"
    else:
        message = "Ticket has expired"

    return VerificationResult(
        success=False,
        can_enter=False,
        message=message,
        outcome=outcome,
        ticket=details,
        check_in=None,
    )


class EntryVerificationService:
    """Service for admitting ticket holders at the venue."""

    def __init__(
        self, tickets: TicketStore, clock: Callable[[], datetime] = utcnow
    ) -> None:
        self._tickets = tickets
        self._clock = clock

    def verify(self, identifier: str, checked_in_by: str, location: str) -> VerificationResult:
        """Admit the ticket's holder if the ticket is still valid for entry.

        The first successful call flips the ticket to USED and records one check-in;
        every later call is denied with the original check-in attached.

        Raises:
            InvalidTicketFormatError: If no ticket number can be read from identifier.
            InvalidTicketRequestError: If checked_in_by or location is empty.
            TicketNotFoundError: If the ticket does not exist.
            TransactionConflictError: If concurrent scans keep conflicting.
        """
        ticket_number = extract_ticket_number(identifier)
        if not checked_in_by or not location:
            raise InvalidTicketRequestError("Check-in requires staff and location")

        outcome: AdmissionOutcome = self._tickets.admit(
            ticket_number, checked_in_by, location, self._clock()
        )
        if outcome.admitted:
            logger.info("Ticket %s admitted by %s at %s", ticket_number, checked_in_by, location)
        else:
            logger.info("Ticket %s denied entry: %s", ticket_number, outcome.outcome.value)
        return build_result(outcome.details, outcome.outcome, outcome.check_in)

    def inspect(self, identifier: str) -> VerificationResult:
        """Report what verify would decide, without recording anything.

        Raises:
            InvalidTicketFormatError: If no ticket number can be read from identifier.
            TicketNotFoundError: If the ticket does not exist.
        """
        ticket_number = extract_ticket_number(identifier)
        details = self._tickets.get_ticket_details(ticket_number)
        if details is None:
            raise TicketNotFoundError(ticket_number.value)

        outcome = entry_outcome(details)
        check_in = None
        if outcome is EntryOutcome.ALREADY_USED:
            check_in = self._tickets.latest_check_in(ticket_number)
        return build_result(details, outcome, check_in)

    def search(self, query: str, searched_by: str) -> list[TicketDetails]:
        """Find tickets by the end of their number, for when a QR code will not scan.

        Raises:
            InvalidTicketRequestError: If the query is shorter than four characters.
        """
        suffix = query.strip().upper()
        if len(suffix) < SEARCH_MIN_LENGTH:
            raise InvalidTicketRequestError(
                f"Search query must be at least {SEARCH_MIN_LENGTH} characters long"
            )
        results = self._tickets.search_by_suffix(suffix, SEARCH_RESULT_LIMIT)
        logger.info("%s searched for *%s, found %d tickets", searched_by, suffix, len(results))
        return results
