"""Domain error codes for the ticketing module."""

from dataclasses import dataclass
from enum import Enum


class ErrorCode(Enum):
    """Domain error codes."""

    INVALID_IDENTIFIER = "INVALID_IDENTIFIER"
    REGISTRATION_NOT_FOUND = "REGISTRATION_NOT_FOUND"
    TICKET_TYPE_NOT_FOUND = "TICKET_TYPE_NOT_FOUND"
    TICKET_NOT_FOUND = "TICKET_NOT_FOUND"
    PAYMENT_NOT_FOUND = "PAYMENT_NOT_FOUND"
    INSUFFICIENT_STOCK = "INSUFFICIENT_STOCK"
    TICKET_TYPE_UNAVAILABLE = "TICKET_TYPE_UNAVAILABLE"
    INVALID_TICKET_REQUEST = "INVALID_TICKET_REQUEST"
    NO_PURCHASED_ITEMS = "NO_PURCHASED_ITEMS"
    ISSUANCE_NOT_ALLOWED = "ISSUANCE_NOT_ALLOWED"
    INVALID_TICKET_FORMAT = "INVALID_TICKET_FORMAT"
    REGISTRATION_STATE = "REGISTRATION_STATE"
    TICKET_STATE = "TICKET_STATE"
    TRANSACTION_CONFLICT = "TRANSACTION_CONFLICT"


@dataclass(eq=False)
class DomainError(Exception):
    """Base domain error with code and user-safe message."""

    code: ErrorCode
    message: str

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class InvalidIdentifierError(DomainError):
    """Raised when an identifier is not a valid UUID."""

    def __init__(self, kind: str) -> None:
        super().__init__(
            code=ErrorCode.INVALID_IDENTIFIER,
            message=f"Invalid {kind} ID format",
        )
        self.kind = kind


class RegistrationNotFoundError(DomainError):
    """Raised when a registration does not exist."""

    def __init__(self, registration_id: str) -> None:
        super().__init__(
            code=ErrorCode.REGISTRATION_NOT_FOUND,
            message="Registration not found",
        )
        self.registration_id = registration_id


class TicketTypeNotFoundError(DomainError):
    """Raised when a requested ticket type does not exist."""

    def __init__(self, ticket_type_id: str) -> None:
        super().__init__(
            code=ErrorCode.TICKET_TYPE_NOT_FOUND,
            message=f"Ticket type {ticket_type_id} not found",
        )
        self.ticket_type_id = ticket_type_id


class TicketNotFoundError(DomainError):
    """Raised when no ticket carries the scanned number."""

    def __init__(self, ticket_number: str) -> None:
        super().__init__(
            code=ErrorCode.TICKET_NOT_FOUND,
            message="Ticket not found in system",
        )
        self.ticket_number = ticket_number


class PaymentNotFoundError(DomainError):
    """Raised when no payment matches a processor reference."""

    def __init__(self, reference: str) -> None:
        super().__init__(
            code=ErrorCode.PAYMENT_NOT_FOUND,
            message="Payment not found",
        )
        self.reference = reference


class InsufficientStockError(DomainError):
    """Raised when a ticket type cannot cover the requested quantity."""

    def __init__(self, ticket_type_name: str, available: int, requested: int) -> None:
        super().__init__(
            code=ErrorCode.INSUFFICIENT_STOCK,
            message=(
                f"Insufficient stock for {ticket_type_name}. "
                f"Available: {available}, requested: {requested}"
            ),
        )
        self.ticket_type_name = ticket_type_name
        self.available = available
        self.requested = requested


class TicketTypeUnavailableError(DomainError):
    """Raised when a requested ticket type is no longer on sale."""

    def __init__(self, ticket_type_name: str) -> None:
        super().__init__(
            code=ErrorCode.TICKET_TYPE_UNAVAILABLE,
            message=f"Ticket type {ticket_type_name} is not active",
        )
        self.ticket_type_name = ticket_type_name


class InvalidTicketRequestError(DomainError):
    """Raised when an issuance, review or check-in request is malformed."""

    def __init__(self, message: str) -> None:
        super().__init__(code=ErrorCode.INVALID_TICKET_REQUEST, message=message)


class NoPurchasedItemsError(DomainError):
    """Raised when automatic issuance finds no purchased items to issue."""

    def __init__(self, registration_id: str) -> None:
        super().__init__(
            code=ErrorCode.NO_PURCHASED_ITEMS,
            message="Registration has no purchased ticket items",
        )
        self.registration_id = registration_id


class IssuanceNotAllowedError(DomainError):
    """Raised when the automatic path is asked to issue for an ineligible registration."""

    def __init__(self, reason: str) -> None:
        super().__init__(
            code=ErrorCode.ISSUANCE_NOT_ALLOWED,
            message=f"Conditions not met for automatic ticket generation: {reason}",
        )
        self.reason = reason


class InvalidTicketFormatError(DomainError):
    """Raised when no ticket number can be read from a scanned value."""

    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.INVALID_TICKET_FORMAT,
            message="Invalid ticket number format",
        )


class RegistrationStateError(DomainError):
    """Raised when a registration is not in a state that allows the operation."""

    def __init__(self, message: str) -> None:
        super().__init__(code=ErrorCode.REGISTRATION_STATE, message=message)


class TicketStateError(DomainError):
    """Raised when a ticket is not in a state that allows the operation."""

    def __init__(self, message: str) -> None:
        super().__init__(code=ErrorCode.TICKET_STATE, message=message)


class TransactionConflictError(DomainError):
    """Raised when a concurrent update still conflicts after one retry."""

    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.TRANSACTION_CONFLICT,
            message="The request conflicted with a concurrent update, please retry",
        )
