"""Extraction of ticket numbers from scanned or typed input.

QR codes carry either the bare number, a verification URL, a JSON payload or some
free text around the number. Manual entry goes through the same path.
"""

import json
import re

from ticketing.domain.errors import InvalidTicketFormatError
from ticketing.domain.value_objects import TicketNumber

URL_SEGMENT_PATTERN = re.compile(r"verify/([^?&#/\s]+)", re.IGNORECASE)
EMBEDDED_PATTERN = re.compile(r"TKT-\d{4}-[A-Z0-9]{6,8}(?![A-Z0-9])")


def normalize(candidate: str) -> str:
    return candidate.strip().upper()


def _direct(raw: str) -> str | None:
    text = normalize(raw)
    return text if text.startswith("TKT-") else None


def _url_segment(raw: str) -> str | None:
    match = URL_SEGMENT_PATTERN.search(raw)
    return match.group(1) if match else None


def _json_payload(raw: str) -> str | None:
    text = raw.strip()
    if not text.startswith("{"):
        return None
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None
    value = data.get("ticketNumber") or data.get("ticket")
    return value if isinstance(value, str) else None


def _embedded(raw: str) -> str | None:
    match = EMBEDDED_PATTERN.search(raw.upper())
    return match.group(0) if match else None


EXTRACTORS = (_direct, _url_segment, _json_payload, _embedded)


def extract_ticket_number(raw: str) -> TicketNumber:
    """Return the first valid ticket number any extractor finds in ``raw``.

    Raises:
        InvalidTicketFormatError: If no extractor yields a well-formed number.
    """
    if not raw or not raw.strip():
        raise InvalidTicketFormatError()

    for extractor in EXTRACTORS:
        candidate = extractor(raw)
        if candidate is None:
            continue
        candidate = normalize(candidate)
        if TicketNumber.is_valid(candidate):
            return TicketNumber(candidate)

    raise InvalidTicketFormatError()
