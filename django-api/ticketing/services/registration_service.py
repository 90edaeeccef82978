"""Admin review of pending registrations."""

import logging
from collections.abc import Callable
from datetime import datetime

from ticketing.domain import (
    DeliveryKind,
    DeliveryLogEntry,
    Registration,
    RegistrationId,
    RegistrationStatus,
)
from ticketing.domain.errors import InvalidTicketRequestError
from ticketing.services.issuance_service import TicketIssuanceService, utcnow
from ticketing.stores.interfaces import RegistrationStore

logger = logging.getLogger(__name__)


class RegistrationReviewService:
    def __init__(
        self,
        registrations: RegistrationStore,
        issuance: TicketIssuanceService,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._registrations = registrations
        self._issuance = issuance
        self._clock = clock

    def approve(self, registration_id: str, actor: str, notes: str = "") -> Registration:
        """Approve a pending registration.

        EMS customers become VERIFIED and get their complimentary tickets right
        away; public customers move on to PAYMENT_PENDING. A failed issuance is
        logged and leaves the approval in place.

        Raises:
            InvalidIdentifierError: If the registration_id is not a valid UUID.
            RegistrationNotFoundError: If the registration does not exist.
            RegistrationStateError: If the registration is not PENDING.
        """
        if not actor:
            raise InvalidTicketRequestError("An acting user is required to review")
        rid = RegistrationId.from_string(registration_id)
        current = self._registrations.get_registration(rid)
        new_status = (
            RegistrationStatus.VERIFIED
            if current is not None and current.is_ems_client
            else RegistrationStatus.PAYMENT_PENDING
        )
        registration = self._registrations.review_registration(
            rid, new_status, actor, self._clock(), notes
        )
        logger.info("Registration %s approved by %s", rid, actor)
        self._notify(
            registration,
            DeliveryKind.REGISTRATION_APPROVED,
            "Registration Approved",
            actor,
        )

        if registration.status is RegistrationStatus.VERIFIED:
            try:
                self._issuance.auto_issue_tickets(registration_id, actor)
            except Exception:
                logger.exception("Approved registration %s but ticket generation failed", rid)
            registration = self._registrations.get_registration(rid) or registration
        return registration

    def reject(self, registration_id: str, actor: str, reason: str = "") -> Registration:
        """Reject a pending registration.

        Raises:
            InvalidIdentifierError: If the registration_id is not a valid UUID.
            RegistrationNotFoundError: If the registration does not exist.
            RegistrationStateError: If the registration is not PENDING.
        """
        if not actor:
            raise InvalidTicketRequestError("An acting user is required to review")
        rid = RegistrationId.from_string(registration_id)
        registration = self._registrations.review_registration(
            rid, RegistrationStatus.REJECTED, actor, self._clock(), reason
        )
        logger.info("Registration %s rejected by %s", rid, actor)
        self._notify(
            registration,
            DeliveryKind.REGISTRATION_REJECTED,
            "Registration Update - Unable to Verify Customer Status",
            actor,
        )
        return registration

    def _notify(
        self, registration: Registration, kind: DeliveryKind, subject: str, actor: str
    ) -> None:
        try:
            self._registrations.record_delivery(
                DeliveryLogEntry(
                    registration_id=registration.id,
                    kind=kind,
                    subject=subject,
                    recipient=registration.email,
                    actor=actor,
                )
            )
        except Exception:
            logger.exception("Failed to record %s for %s", kind.value, registration.id)
