"""Domain primitives that enforce validity at creation time."""

import re
import secrets
import string
from dataclasses import dataclass
from typing import Self
from uuid import UUID

from ticketing.domain.errors import InsufficientStockError, InvalidIdentifierError

TICKET_NUMBER_PATTERN = re.compile(r"^TKT-\d{4}-[A-Z0-9]{6,8}$")
TICKET_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits
TICKET_SUFFIX_LENGTH = 8


def _parse_uuid(value: str, kind: str) -> UUID:
    try:
        return UUID(str(value))
    except (TypeError, ValueError) as exc:
        raise InvalidIdentifierError(kind) from exc


@dataclass(frozen=True)
class RegistrationId:
    """Unique identifier for a Registration."""

    value: UUID

    @classmethod
    def from_string(cls, value: str) -> Self:
        return cls(value=_parse_uuid(value, "registration"))

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class TicketTypeId:
    """Unique identifier for a TicketType."""

    value: UUID

    @classmethod
    def from_string(cls, value: str) -> Self:
        return cls(value=_parse_uuid(value, "ticket type"))

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class TicketNumber:
    """Customer-facing ticket credential, e.g. ``TKT-2025-ABC123``."""

    value: str

    def __post_init__(self) -> None:
        if not TICKET_NUMBER_PATTERN.match(self.value):
            raise ValueError(f"Malformed ticket number: {self.value!r}")

    @classmethod
    def generate(cls, year: int) -> Self:
        suffix = "".join(
            secrets.choice(TICKET_SUFFIX_ALPHABET) for _ in range(TICKET_SUFFIX_LENGTH)
        )
        return cls(value=f"TKT-{year:04d}-{suffix}")

    @staticmethod
    def is_valid(value: str) -> bool:
        return bool(TICKET_NUMBER_PATTERN.match(value))

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Money:
    """Amount in minor currency units (cents)."""

    cents: int

    def __post_init__(self) -> None:
        if self.cents < 0:
            raise ValueError("Money amount cannot be negative")

    def __str__(self) -> str:
        return f"{self.cents // 100}.{self.cents % 100:02d}"


@dataclass(frozen=True)
class StockLevel:
    """Inventory counters for a ticket type.

    ``available + sold`` is the total stock; neither counter can go negative.
    """

    available: int
    sold: int

    def __post_init__(self) -> None:
        if self.available < 0 or self.sold < 0:
            raise ValueError("Stock counters cannot be negative")

    @property
    def total(self) -> int:
        return self.available + self.sold

    def allocate(self, quantity: int, ticket_type_name: str) -> Self:
        """Return the stock level after selling ``quantity`` tickets.

        Raises:
            InsufficientStockError: If fewer than ``quantity`` tickets are available.
        """
        if quantity > self.available:
            raise InsufficientStockError(ticket_type_name, self.available, quantity)
        return type(self)(available=self.available - quantity, sold=self.sold + quantity)
