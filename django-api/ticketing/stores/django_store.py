"""Django ORM implementation of the ticketing stores.

Contended rows are locked with SELECT ... FOR UPDATE inside ``transaction.atomic``.
On backends without row locks (SQLite) the conditional updates and unique
constraints still keep admission and issuance single-shot.
"""

import functools
import logging
from datetime import datetime

from django.db import IntegrityError, OperationalError, transaction
from django.db.models import Count, F

from ticketing import models
from ticketing.domain import (
    AdmissionOutcome,
    CheckIn,
    DeliveryLogEntry,
    EntryOutcome,
    IssuanceResult,
    Money,
    Payment,
    PaymentStatus,
    Registration,
    RegistrationId,
    RegistrationStatus,
    StockLevel,
    Ticket,
    TicketDetails,
    TicketNumber,
    TicketRequest,
    TicketStats,
    TicketStatus,
    TicketType,
    TicketTypeId,
)
from ticketing.domain.errors import (
    RegistrationNotFoundError,
    RegistrationStateError,
    TicketNotFoundError,
    TicketStateError,
    TicketTypeNotFoundError,
    TicketTypeUnavailableError,
    TransactionConflictError,
)
from ticketing.domain.rules import entry_outcome
from ticketing.stores.interfaces import RegistrationStore, TicketStore

logger = logging.getLogger(__name__)

MAX_TICKET_NUMBER_ATTEMPTS = 10


def retry_on_conflict(func):
    """Run a transactional store method again once if it hits a write conflict.

    Deadlocks, lock timeouts and uniqueness races surface as OperationalError or
    IntegrityError; the retry starts a fresh transaction and re-reads everything.
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except (OperationalError, IntegrityError) as exc:
            logger.warning("Conflict in %s, retrying once: %s", func.__name__, exc)
        try:
            return func(*args, **kwargs)
        except (OperationalError, IntegrityError) as exc:
            logger.error("Conflict in %s persisted after retry: %s", func.__name__, exc)
            raise TransactionConflictError() from exc

    return wrapper


def _to_payment(row: models.Payment) -> Payment:
    return Payment(
        reference=row.reference,
        registration_id=RegistrationId(row.registration_id),
        status=PaymentStatus(row.status),
        amount=Money(row.amount_in_cents),
        paid_at=row.paid_at,
    )


def _to_registration(row: models.Registration) -> Registration:
    try:
        payment = _to_payment(row.payment)
    except models.Payment.DoesNotExist:
        payment = None
    items = tuple(
        TicketRequest(ticket_type_id=TicketTypeId(item.ticket_type_id), quantity=item.quantity)
        for item in row.items.order_by("pk")
    )
    return Registration(
        id=RegistrationId(row.id),
        first_name=row.first_name,
        last_name=row.last_name,
        email=row.email,
        is_ems_client=row.is_ems_client,
        status=RegistrationStatus(row.status),
        final_amount=Money(row.final_amount_in_cents),
        verified_by=row.verified_by or None,
        payment=payment,
        ticket_count=row.tickets.count(),
        items=items,
    )


def _to_ticket_type(row: models.TicketType) -> TicketType:
    return TicketType(
        id=TicketTypeId(row.id),
        name=row.name,
        price=Money(row.price_in_cents),
        stock=StockLevel(available=row.available_stock, sold=row.sold_stock),
        is_active=row.is_active,
    )


def _to_ticket(row: models.Ticket) -> Ticket:
    return Ticket(
        ticket_number=TicketNumber(row.ticket_number),
        registration_id=RegistrationId(row.registration_id),
        ticket_type_id=TicketTypeId(row.ticket_type_id),
        ticket_type_name=row.ticket_type.name,
        status=TicketStatus(row.status),
        sequence=row.sequence,
        purchase_price=Money(row.purchase_price_in_cents),
        issued_at=row.issued_at,
        sent_at=row.sent_at,
        collected_at=row.collected_at,
        collected_by=row.collected_by,
        used_at=row.used_at,
    )


def _to_details(row: models.Ticket) -> TicketDetails:
    registration = row.registration
    return TicketDetails(
        ticket=_to_ticket(row),
        holder_name=f"{registration.first_name} {registration.last_name}".strip(),
        holder_email=registration.email,
        is_ems_client=registration.is_ems_client,
        registration_status=RegistrationStatus(registration.status),
    )


def _to_check_in(row: models.CheckIn, ticket_number: str) -> CheckIn:
    return CheckIn(
        ticket_number=TicketNumber(ticket_number),
        checked_in_at=row.checked_in_at,
        checked_in_by=row.checked_in_by,
        location=row.location,
    )


class DjangoRegistrationStore(RegistrationStore):
    """Registration store backed by the Django ORM."""

    def get_registration(self, registration_id: RegistrationId) -> Registration | None:
        row = (
            models.Registration.objects.select_related("payment")
            .filter(pk=registration_id.value)
            .first()
        )
        return _to_registration(row) if row else None

    @retry_on_conflict
    def apply_payment_status(
        self, reference: str, status: PaymentStatus, occurred_at: datetime
    ) -> Payment | None:
        with transaction.atomic():
            row = (
                models.Payment.objects.select_for_update()
                .select_related("registration")
                .filter(reference=reference)
                .first()
            )
            if row is None:
                return None

            if row.status == PaymentStatus.SUCCEEDED.value and status is not PaymentStatus.SUCCEEDED:
                logger.warning(
                    "Ignoring %s for payment %s, it already succeeded", status.value, reference
                )
                return _to_payment(row)

            row.status = status.value
            row.paid_at = (row.paid_at or occurred_at) if status is PaymentStatus.SUCCEEDED else None
            row.save(update_fields=["status", "paid_at", "updated_at"])

            registration = row.registration
            if status is PaymentStatus.SUCCEEDED:
                if RegistrationStatus(registration.status).is_closed:
                    logger.warning(
                        "Payment %s succeeded for closed registration %s (%s)",
                        reference,
                        registration.pk,
                        registration.status,
                    )
                elif registration.status != RegistrationStatus.COMPLETED.value:
                    registration.status = RegistrationStatus.COMPLETED.value
                    registration.save(update_fields=["status", "updated_at"])
            return _to_payment(row)

    @retry_on_conflict
    def review_registration(
        self,
        registration_id: RegistrationId,
        new_status: RegistrationStatus,
        actor: str,
        reviewed_at: datetime,
        notes: str = "",
    ) -> Registration:
        with transaction.atomic():
            row = (
                models.Registration.objects.select_for_update()
                .filter(pk=registration_id.value)
                .first()
            )
            if row is None:
                raise RegistrationNotFoundError(str(registration_id))
            if row.status != RegistrationStatus.PENDING.value:
                raise RegistrationStateError(
                    f"Registration is not pending approval (current status: {row.status})"
                )

            row.status = new_status.value
            row.verified_by = actor
            row.verified_at = reviewed_at
            row.admin_notes = notes
            fields = ["status", "verified_by", "verified_at", "admin_notes", "updated_at"]
            if new_status is RegistrationStatus.REJECTED:
                row.rejected_reason = notes or "Customer status could not be verified"
                fields.append("rejected_reason")
            row.save(update_fields=fields)
            return _to_registration(row)

    def record_delivery(self, entry: DeliveryLogEntry) -> None:
        models.DeliveryLog.objects.create(
            registration_id=entry.registration_id.value,
            kind=entry.kind.value,
            subject=entry.subject,
            recipient=entry.recipient,
            actor=entry.actor,
            ticket_count=entry.ticket_count,
            template=entry.template,
        )


class DjangoTicketStore(TicketStore):
    """Ticket store backed by the Django ORM."""

    def _new_ticket_number(self, year: int, taken: set[str]) -> str:
        for _ in range(MAX_TICKET_NUMBER_ATTEMPTS):
            candidate = TicketNumber.generate(year).value
            if candidate in taken:
                continue
            if not models.Ticket.objects.filter(ticket_number=candidate).exists():
                taken.add(candidate)
                return candidate
        # The unique constraint turns this into a retried IntegrityError upstream.
        raise IntegrityError("Could not allocate a unique ticket number")

    @retry_on_conflict
    def issue_batch(
        self,
        registration_id: RegistrationId,
        requests: list[TicketRequest],
        issued_at: datetime,
    ) -> IssuanceResult:
        with transaction.atomic():
            registration = (
                models.Registration.objects.select_for_update()
                .filter(pk=registration_id.value)
                .first()
            )
            if registration is None:
                raise RegistrationNotFoundError(str(registration_id))

            existing = list(
                registration.tickets.select_related("ticket_type").order_by("sequence")
            )
            if existing:
                return IssuanceResult(tickets=tuple(map(_to_ticket, existing)), created=False)

            # Lock in primary-key order so concurrent batches cannot deadlock.
            type_ids = sorted({request.ticket_type_id.value for request in requests})
            locked_types = {
                row.pk: row
                for row in models.TicketType.objects.select_for_update()
                .filter(pk__in=type_ids)
                .order_by("pk")
            }

            levels: dict = {}
            for request in requests:
                row = locked_types.get(request.ticket_type_id.value)
                if row is None:
                    raise TicketTypeNotFoundError(str(request.ticket_type_id))
                ticket_type = _to_ticket_type(row)
                if not ticket_type.is_active:
                    raise TicketTypeUnavailableError(ticket_type.name)
                level = levels.get(row.pk, ticket_type.stock)
                levels[row.pk] = level.allocate(request.quantity, ticket_type.name)

            taken: set[str] = set()
            created: list[models.Ticket] = []
            sequence = 0
            for request in requests:
                row = locked_types[request.ticket_type_id.value]
                price = 0 if registration.is_ems_client else row.price_in_cents
                for _ in range(request.quantity):
                    sequence += 1
                    created.append(
                        models.Ticket.objects.create(
                            ticket_number=self._new_ticket_number(issued_at.year, taken),
                            registration=registration,
                            ticket_type=row,
                            status=TicketStatus.GENERATED.value,
                            sequence=sequence,
                            purchase_price_in_cents=price,
                            issued_at=issued_at,
                        )
                    )
                models.TicketType.objects.filter(pk=row.pk).update(
                    available_stock=F("available_stock") - request.quantity,
                    sold_stock=F("sold_stock") + request.quantity,
                )

            registration.tickets_issued_at = issued_at
            registration.save(update_fields=["tickets_issued_at", "updated_at"])
            return IssuanceResult(tickets=tuple(map(_to_ticket, created)), created=True)

    def _ticket_rows(self):
        return models.Ticket.objects.select_related("registration", "ticket_type")

    def _latest_check_in_row(self, row: models.Ticket) -> CheckIn | None:
        check_in = row.check_ins.order_by("-checked_in_at").first()
        return _to_check_in(check_in, row.ticket_number) if check_in else None

    @retry_on_conflict
    def admit(
        self,
        ticket_number: TicketNumber,
        checked_in_by: str,
        location: str,
        admitted_at: datetime,
    ) -> AdmissionOutcome:
        with transaction.atomic():
            row = (
                self._ticket_rows()
                .select_for_update(of=("self",))
                .filter(ticket_number=ticket_number.value)
                .first()
            )
            if row is None:
                raise TicketNotFoundError(ticket_number.value)

            details = _to_details(row)
            outcome = entry_outcome(details)
            if outcome is not EntryOutcome.ADMITTED:
                return AdmissionOutcome(
                    details=details, outcome=outcome, check_in=self._latest_check_in_row(row)
                )

            moved = models.Ticket.objects.filter(
                pk=row.pk,
                status__in=[status.value for status in TicketStatus if status.admits_entry],
            ).update(status=TicketStatus.USED.value, used_at=admitted_at)
            if moved != 1:
                # Another scan won the race; report what it left behind.
                row.refresh_from_db()
                details = _to_details(row)
                return AdmissionOutcome(
                    details=details,
                    outcome=entry_outcome(details),
                    check_in=self._latest_check_in_row(row),
                )

            check_in = models.CheckIn.objects.create(
                ticket=row,
                checked_in_at=admitted_at,
                checked_in_by=checked_in_by,
                location=location,
            )
            row.status = TicketStatus.USED.value
            row.used_at = admitted_at
            return AdmissionOutcome(
                details=_to_details(row),
                outcome=EntryOutcome.ADMITTED,
                check_in=_to_check_in(check_in, row.ticket_number),
            )

    def get_ticket_details(self, ticket_number: TicketNumber) -> TicketDetails | None:
        row = self._ticket_rows().filter(ticket_number=ticket_number.value).first()
        return _to_details(row) if row else None

    def latest_check_in(self, ticket_number: TicketNumber) -> CheckIn | None:
        row = (
            models.CheckIn.objects.filter(ticket__ticket_number=ticket_number.value)
            .order_by("-checked_in_at")
            .first()
        )
        return _to_check_in(row, ticket_number.value) if row else None

    def list_tickets(self, registration_id: RegistrationId) -> list[Ticket]:
        rows = (
            models.Ticket.objects.select_related("ticket_type")
            .filter(registration_id=registration_id.value)
            .order_by("sequence")
        )
        return [_to_ticket(row) for row in rows]

    def mark_sent(self, registration_id: RegistrationId, sent_at: datetime) -> int:
        return models.Ticket.objects.filter(
            registration_id=registration_id.value,
            status=TicketStatus.GENERATED.value,
        ).update(status=TicketStatus.SENT.value, sent_at=sent_at)

    @retry_on_conflict
    def mark_collected(
        self, ticket_number: TicketNumber, collected_by: str, collected_at: datetime
    ) -> Ticket:
        with transaction.atomic():
            row = (
                models.Ticket.objects.select_for_update(of=("self",))
                .select_related("ticket_type")
                .filter(ticket_number=ticket_number.value)
                .first()
            )
            if row is None:
                raise TicketNotFoundError(ticket_number.value)
            if not TicketStatus(row.status).is_collectable:
                raise TicketStateError(
                    f"Ticket {row.ticket_number} cannot be collected, it is {row.status}"
                )
            row.status = TicketStatus.COLLECTED.value
            row.collected_at = collected_at
            row.collected_by = collected_by
            row.save(update_fields=["status", "collected_at", "collected_by"])
            return _to_ticket(row)

    def ticket_stats(self) -> TicketStats:
        counts = {
            TicketStatus(entry["status"]): entry["count"]
            for entry in models.Ticket.objects.order_by()
            .values("status")
            .annotate(count=Count("id"))
        }
        by_status = {status: counts.get(status, 0) for status in TicketStatus}
        return TicketStats(total=sum(by_status.values()), by_status=by_status)

    @retry_on_conflict
    def restock(self, ticket_type_id: TicketTypeId, quantity: int) -> TicketType:
        with transaction.atomic():
            row = (
                models.TicketType.objects.select_for_update()
                .filter(pk=ticket_type_id.value)
                .first()
            )
            if row is None:
                raise TicketTypeNotFoundError(str(ticket_type_id))
            models.TicketType.objects.filter(pk=row.pk).update(
                available_stock=F("available_stock") + quantity,
                total_stock=F("total_stock") + quantity,
            )
            row.refresh_from_db()
            return _to_ticket_type(row)

    def search_by_suffix(self, suffix: str, limit: int) -> list[TicketDetails]:
        rows = self._ticket_rows().filter(ticket_number__endswith=suffix).order_by(
            "ticket_number"
        )[:limit]
        return [_to_details(row) for row in rows]
