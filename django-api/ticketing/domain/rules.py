"""Pure decision rules for ticket issuance and entry.

Evaluated on domain snapshots only, so services and stores share one definition.
"""

from ticketing.domain.models import (
    EntryOutcome,
    IssuanceReason,
    Registration,
    StatusSummary,
    TicketDetails,
)
from ticketing.domain.statuses import PaymentStatus, RegistrationStatus, TicketStatus

NEXT_STEPS: dict[IssuanceReason, tuple[str, ...]] = {
    IssuanceReason.TICKETS_ALREADY_GENERATED: (
        "View existing tickets",
        "Resend tickets to customer",
    ),
    IssuanceReason.REGISTRATION_CLOSED: ("No action, registration is closed",),
    IssuanceReason.EMS_READY: ("Generate free tickets",),
    IssuanceReason.ADMIN_APPROVED: ("Generate tickets",),
    IssuanceReason.EMS_PENDING_VERIFICATION: (
        "Verify EMS customer",
        "Generate tickets after verification",
    ),
    IssuanceReason.PAYMENT_COMPLETED: ("Generate tickets automatically",),
    IssuanceReason.PAYMENT_NOT_COMPLETED: (
        "Complete payment process",
        "Tickets will generate automatically after payment",
    ),
    IssuanceReason.REGISTRATION_NOT_COMPLETED: (
        "Complete registration process",
        "Process payment",
        "Generate tickets",
    ),
    IssuanceReason.PAYMENT_FAILED: (
        "Retry payment",
        "Contact customer",
        "Admin can manually generate if needed",
    ),
}


def _payment_status(registration: Registration) -> PaymentStatus | None:
    return registration.payment.status if registration.payment else None


def should_issue_tickets(registration: Registration) -> bool:
    """Decide whether the automatic path may mint tickets.

    The checks run in a fixed order and the first decisive one wins. Payment state
    is authoritative for public customers; EMS and admin-approved registrations
    bypass payment.
    """
    if registration.has_tickets:
        return False

    if registration.is_ems_client and registration.status is RegistrationStatus.VERIFIED:
        return True

    if not registration.is_ems_client:
        return (
            _payment_status(registration) is PaymentStatus.SUCCEEDED
            and registration.status is RegistrationStatus.COMPLETED
        )

    if registration.status is RegistrationStatus.COMPLETED and registration.verified_by:
        return True

    return False


def issuance_reason(registration: Registration) -> IssuanceReason:
    """Explain the registration's ticket state in one of a fixed set of reasons."""
    if registration.has_tickets:
        return IssuanceReason.TICKETS_ALREADY_GENERATED

    if registration.status.is_closed:
        return IssuanceReason.REGISTRATION_CLOSED

    if registration.is_ems_client:
        if registration.status is RegistrationStatus.VERIFIED:
            return IssuanceReason.EMS_READY
        if registration.status is RegistrationStatus.COMPLETED and registration.verified_by:
            return IssuanceReason.ADMIN_APPROVED
        return IssuanceReason.EMS_PENDING_VERIFICATION

    payment_status = _payment_status(registration)
    if (
        payment_status is PaymentStatus.SUCCEEDED
        and registration.status is RegistrationStatus.COMPLETED
    ):
        return IssuanceReason.PAYMENT_COMPLETED
    if payment_status in (None, PaymentStatus.PENDING):
        return IssuanceReason.PAYMENT_NOT_COMPLETED
    if registration.status is not RegistrationStatus.COMPLETED:
        return IssuanceReason.REGISTRATION_NOT_COMPLETED
    return IssuanceReason.PAYMENT_FAILED


def summarize(registration: Registration) -> StatusSummary:
    reason = issuance_reason(registration)
    return StatusSummary(
        can_issue=should_issue_tickets(registration),
        has_tickets=registration.has_tickets,
        reason=reason,
        next_steps=NEXT_STEPS[reason],
        registration_status=registration.status,
        payment_status=_payment_status(registration),
    )


def entry_outcome(details: TicketDetails) -> EntryOutcome:
    """Decide admission for a ticket as it currently stands."""
    status = details.ticket.status
    if status is TicketStatus.USED:
        return EntryOutcome.ALREADY_USED
    if status is TicketStatus.CANCELLED:
        return EntryOutcome.CANCELLED
    if status is TicketStatus.EXPIRED:
        return EntryOutcome.EXPIRED
    if details.registration_status.is_closed:
        return EntryOutcome.REGISTRATION_CLOSED
    return EntryOutcome.ADMITTED
