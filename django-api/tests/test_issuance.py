"""Integration tests for ticket issuance against the database.

These cover the payment gate, stock accounting and idempotent issuance.
Run with: pytest tests/test_issuance.py -v
"""

import uuid
from unittest import mock

import pytest
from django.db import DataError, OperationalError

from ticketing import models
from ticketing.domain import (
    PaymentStatus,
    RegistrationStatus,
    TicketNumber,
    TicketRequest,
    TicketStatus,
    TicketTypeId,
)
from ticketing.domain.errors import (
    InsufficientStockError,
    IssuanceNotAllowedError,
    NoPurchasedItemsError,
    RegistrationNotFoundError,
    TicketTypeNotFoundError,
    TicketTypeUnavailableError,
)
from ticketing.services import PaymentWebhookService
from ticketing.services.payment_service import ISSUANCE_FAILED_MESSAGE
from ticketing.stores import django_store
from ticketing.stores.django_store import DjangoRegistrationStore, DjangoTicketStore


def request_for(ticket_type: models.TicketType, quantity: int) -> TicketRequest:
    return TicketRequest(ticket_type_id=TicketTypeId(ticket_type.pk), quantity=quantity)


@pytest.fixture
def webhook(issuance) -> PaymentWebhookService:
    return PaymentWebhookService(DjangoRegistrationStore(), issuance)


@pytest.mark.django_db
class TestIssueTickets:
    """Tests for the manual issuance path."""

    def test_issue_creates_tickets_and_moves_stock(
        self, issuance, ticket_type_factory, registration_factory
    ):
        """Given stock, issuing two tickets sells two and leaves three available."""
        general = ticket_type_factory(available_stock=5)
        registration = registration_factory(
            status=RegistrationStatus.COMPLETED, payment_status=PaymentStatus.SUCCEEDED
        )

        result = issuance.issue_tickets(
            str(registration.pk), [request_for(general, 2)], actor="admin"
        )

        assert result.created is True
        assert [ticket.sequence for ticket in result.tickets] == [1, 2]
        assert all(ticket.status is TicketStatus.GENERATED for ticket in result.tickets)
        assert all(ticket.purchase_price.cents == 2500 for ticket in result.tickets)

        general.refresh_from_db()
        assert (general.available_stock, general.sold_stock, general.total_stock) == (3, 2, 5)
        registration.refresh_from_db()
        assert registration.tickets_issued_at is not None

    def test_ticket_numbers_are_unique_and_well_formed(
        self, issuance, ticket_type_factory, registration_factory
    ):
        general = ticket_type_factory(available_stock=10)
        registration = registration_factory()

        result = issuance.issue_tickets(
            str(registration.pk), [request_for(general, 10)], actor="admin"
        )

        numbers = [ticket.ticket_number.value for ticket in result.tickets]
        assert len(set(numbers)) == 10
        assert all(TicketNumber.is_valid(number) for number in numbers)
        issued_year = result.tickets[0].issued_at.year
        assert all(number.startswith(f"TKT-{issued_year}-") for number in numbers)

    def test_sequence_runs_across_ticket_types(
        self, issuance, ticket_type_factory, registration_factory
    ):
        general = ticket_type_factory(name="General Admission")
        vip = ticket_type_factory(name="VIP", price_in_cents=9000)
        registration = registration_factory()

        result = issuance.issue_tickets(
            str(registration.pk),
            [request_for(general, 2), request_for(vip, 1)],
            actor="admin",
        )

        assert [(t.sequence, t.ticket_type_name) for t in result.tickets] == [
            (1, "General Admission"),
            (2, "General Admission"),
            (3, "VIP"),
        ]
        assert result.tickets[2].purchase_price.cents == 9000

    def test_second_issue_returns_existing_tickets(
        self, issuance, ticket_type_factory, registration_factory
    ):
        """Given tickets exist, issuing again creates nothing and moves no stock."""
        general = ticket_type_factory(available_stock=5)
        registration = registration_factory()
        first = issuance.issue_tickets(
            str(registration.pk), [request_for(general, 2)], actor="admin"
        )

        second = issuance.issue_tickets(
            str(registration.pk), [request_for(general, 3)], actor="other-admin"
        )

        assert second.created is False
        assert second.tickets == first.tickets
        assert models.Ticket.objects.filter(registration=registration).count() == 2
        general.refresh_from_db()
        assert general.available_stock == 3

    def test_insufficient_stock_leaves_nothing_behind(
        self, issuance, ticket_type_factory, registration_factory
    ):
        general = ticket_type_factory(name="General Admission", available_stock=5)
        vip = ticket_type_factory(name="VIP", available_stock=1)
        registration = registration_factory()

        with pytest.raises(InsufficientStockError) as excinfo:
            issuance.issue_tickets(
                str(registration.pk),
                [request_for(general, 2), request_for(vip, 2)],
                actor="admin",
            )

        assert excinfo.value.ticket_type_name == "VIP"
        assert not models.Ticket.objects.exists()
        general.refresh_from_db()
        vip.refresh_from_db()
        assert (general.available_stock, general.sold_stock) == (5, 0)
        assert (vip.available_stock, vip.sold_stock) == (1, 0)

    def test_duplicate_requests_are_checked_together(
        self, issuance, ticket_type_factory, registration_factory
    ):
        """Two requests of 2 against a stock of 3 fail as one request of 4."""
        general = ticket_type_factory(available_stock=3)
        registration = registration_factory()

        with pytest.raises(InsufficientStockError) as excinfo:
            issuance.issue_tickets(
                str(registration.pk),
                [request_for(general, 2), request_for(general, 2)],
                actor="admin",
            )

        assert excinfo.value.requested == 4
        general.refresh_from_db()
        assert general.available_stock == 3

    def test_exact_remaining_stock_can_be_sold(
        self, issuance, ticket_type_factory, registration_factory
    ):
        general = ticket_type_factory(available_stock=2, sold_stock=8)
        registration = registration_factory()

        issuance.issue_tickets(str(registration.pk), [request_for(general, 2)], actor="admin")

        general.refresh_from_db()
        assert (general.available_stock, general.sold_stock, general.total_stock) == (0, 10, 10)

    def test_inactive_ticket_type_rejected(
        self, issuance, ticket_type_factory, registration_factory
    ):
        retired = ticket_type_factory(is_active=False)
        registration = registration_factory()

        with pytest.raises(TicketTypeUnavailableError):
            issuance.issue_tickets(str(registration.pk), [request_for(retired, 1)], "admin")
        assert not models.Ticket.objects.exists()

    def test_unknown_ticket_type_rejected(self, issuance, registration_factory):
        registration = registration_factory()
        missing = TicketRequest(ticket_type_id=TicketTypeId(uuid.uuid4()), quantity=1)

        with pytest.raises(TicketTypeNotFoundError):
            issuance.issue_tickets(str(registration.pk), [missing], "admin")

    def test_unknown_registration_rejected(self, issuance, ticket_type_factory):
        general = ticket_type_factory()

        with pytest.raises(RegistrationNotFoundError):
            issuance.issue_tickets(str(uuid.uuid4()), [request_for(general, 1)], "admin")

    def test_ems_client_tickets_are_free(
        self, issuance, ticket_type_factory, registration_factory
    ):
        vip = ticket_type_factory(name="VIP", price_in_cents=9000)
        registration = registration_factory(
            is_ems_client=True, status=RegistrationStatus.VERIFIED
        )

        result = issuance.issue_tickets(str(registration.pk), [request_for(vip, 2)], "admin")

        assert all(ticket.purchase_price.cents == 0 for ticket in result.tickets)

    def test_issue_writes_delivery_log(
        self, issuance, ticket_type_factory, registration_factory
    ):
        general = ticket_type_factory()
        registration = registration_factory()

        issuance.issue_tickets(str(registration.pk), [request_for(general, 3)], "admin")

        log = models.DeliveryLog.objects.get(registration=registration)
        assert log.kind == "TICKET_DELIVERY"
        assert log.ticket_count == 3
        assert log.recipient == "maria.borg@example.com"
        assert log.actor == "admin"


@pytest.mark.django_db
class TestAutoIssueTickets:
    """Tests for the gated, automatic issuance path."""

    def test_public_customer_blocked_until_payment_succeeds(
        self, issuance, ticket_type_factory, registration_factory
    ):
        general = ticket_type_factory()
        registration = registration_factory(
            status=RegistrationStatus.PAYMENT_PENDING,
            payment_status=PaymentStatus.PENDING,
            items=[(general, 2)],
        )

        assert issuance.should_issue_tickets(str(registration.pk)) is False
        with pytest.raises(IssuanceNotAllowedError):
            issuance.auto_issue_tickets(str(registration.pk), "payment-webhook")
        assert not models.Ticket.objects.exists()

    def test_verified_ems_client_issued_from_items(
        self, issuance, ticket_type_factory, registration_factory
    ):
        general = ticket_type_factory(available_stock=5)
        registration = registration_factory(
            is_ems_client=True,
            status=RegistrationStatus.VERIFIED,
            items=[(general, 2)],
        )

        result = issuance.auto_issue_tickets(str(registration.pk), "admin")

        assert result.created is True
        assert len(result.tickets) == 2
        assert issuance.should_issue_tickets(str(registration.pk)) is False

    def test_no_items_raises(self, issuance, registration_factory):
        registration = registration_factory(
            is_ems_client=True, status=RegistrationStatus.VERIFIED
        )

        with pytest.raises(NoPurchasedItemsError):
            issuance.auto_issue_tickets(str(registration.pk), "admin")

    def test_status_summary_after_issuance(
        self, issuance, ticket_type_factory, registration_factory
    ):
        general = ticket_type_factory()
        registration = registration_factory(
            status=RegistrationStatus.COMPLETED,
            payment_status=PaymentStatus.SUCCEEDED,
            items=[(general, 1)],
        )
        assert issuance.status_summary(str(registration.pk)).can_issue is True

        issuance.auto_issue_tickets(str(registration.pk), "payment-webhook")

        summary = issuance.status_summary(str(registration.pk))
        assert summary.can_issue is False
        assert summary.has_tickets is True
        assert summary.reason.value == "tickets already generated"


@pytest.mark.django_db
class TestPaymentWebhook:
    """Tests for payment events driving issuance."""

    def test_succeeded_payment_completes_registration_and_issues(
        self, webhook, ticket_type_factory, registration_factory
    ):
        general = ticket_type_factory(available_stock=5)
        registration = registration_factory(
            status=RegistrationStatus.PAYMENT_PENDING,
            payment_status=PaymentStatus.PENDING,
            items=[(general, 2)],
        )
        reference = registration.payment.reference

        acknowledgement = webhook.handle_payment_event(reference, PaymentStatus.SUCCEEDED)

        assert acknowledgement.tickets_issued == 2
        registration.refresh_from_db()
        assert registration.status == RegistrationStatus.COMPLETED.value
        assert models.Payment.objects.get(reference=reference).paid_at is not None
        assert registration.tickets.count() == 2

    def test_repeated_success_events_issue_once(
        self, webhook, ticket_type_factory, registration_factory
    ):
        general = ticket_type_factory(available_stock=5)
        registration = registration_factory(
            status=RegistrationStatus.PAYMENT_PENDING,
            payment_status=PaymentStatus.PENDING,
            items=[(general, 2)],
        )
        reference = registration.payment.reference

        for _ in range(3):
            webhook.handle_payment_event(reference, PaymentStatus.SUCCEEDED)

        assert registration.tickets.count() == 2
        general.refresh_from_db()
        assert (general.available_stock, general.sold_stock) == (3, 2)

    def test_failure_after_success_is_ignored(self, webhook, registration_factory):
        registration = registration_factory(
            status=RegistrationStatus.COMPLETED, payment_status=PaymentStatus.SUCCEEDED
        )
        reference = registration.payment.reference

        acknowledgement = webhook.handle_payment_event(reference, PaymentStatus.FAILED)

        assert acknowledgement.payment.status is PaymentStatus.SUCCEEDED
        registration.payment.refresh_from_db()
        assert registration.payment.status == PaymentStatus.SUCCEEDED.value

    def test_failed_payment_issues_nothing(
        self, webhook, ticket_type_factory, registration_factory
    ):
        general = ticket_type_factory()
        registration = registration_factory(
            status=RegistrationStatus.PAYMENT_PENDING,
            payment_status=PaymentStatus.PENDING,
            items=[(general, 1)],
        )

        webhook.handle_payment_event(registration.payment.reference, PaymentStatus.FAILED)

        registration.refresh_from_db()
        assert registration.status == RegistrationStatus.PAYMENT_PENDING.value
        assert not registration.tickets.exists()

    def test_stock_shortage_still_acknowledges_payment(
        self, webhook, ticket_type_factory, registration_factory
    ):
        general = ticket_type_factory(available_stock=1)
        registration = registration_factory(
            status=RegistrationStatus.PAYMENT_PENDING,
            payment_status=PaymentStatus.PENDING,
            items=[(general, 2)],
        )

        acknowledgement = webhook.handle_payment_event(
            registration.payment.reference, PaymentStatus.SUCCEEDED
        )

        assert acknowledgement.received is True
        assert acknowledgement.issuance_error
        registration.refresh_from_db()
        assert registration.status == RegistrationStatus.COMPLETED.value
        assert not registration.tickets.exists()

    def test_payment_on_rejected_registration_issues_nothing(
        self, webhook, ticket_type_factory, registration_factory
    ):
        general = ticket_type_factory()
        registration = registration_factory(
            status=RegistrationStatus.REJECTED,
            payment_status=PaymentStatus.PENDING,
            items=[(general, 1)],
        )

        acknowledgement = webhook.handle_payment_event(
            registration.payment.reference, PaymentStatus.SUCCEEDED
        )

        assert acknowledgement.tickets_issued == 0
        registration.refresh_from_db()
        assert registration.status == RegistrationStatus.REJECTED.value
        assert not registration.tickets.exists()

    def test_database_failure_during_issuance_still_acknowledges_payment(
        self, webhook, ticket_type_factory, registration_factory
    ):
        """Given issuance hits a non-domain error, the paid status stays committed."""
        general = ticket_type_factory()
        registration = registration_factory(
            status=RegistrationStatus.PAYMENT_PENDING,
            payment_status=PaymentStatus.PENDING,
            items=[(general, 1)],
        )
        reference = registration.payment.reference

        with mock.patch.object(
            DjangoTicketStore, "issue_batch", side_effect=DataError("value too long")
        ):
            acknowledgement = webhook.handle_payment_event(reference, PaymentStatus.SUCCEEDED)

        assert acknowledgement.received is True
        assert acknowledgement.issuance_error == ISSUANCE_FAILED_MESSAGE
        assert models.Payment.objects.get(reference=reference).status == "SUCCEEDED"
        registration.refresh_from_db()
        assert registration.status == RegistrationStatus.COMPLETED.value
        assert not registration.tickets.exists()


@pytest.mark.django_db
class TestConcurrentIssuance:
    """Tests for issuance that collides with another registration's purchase."""

    @pytest.fixture
    def conflict_once(self):
        """Make the next issue_batch attempt fail with a deadlock, once."""
        real_new_number = DjangoTicketStore._new_ticket_number
        failed = []

        def new_number(store, year, taken):
            if not failed:
                failed.append(year)
                raise OperationalError("deadlock detected")
            return real_new_number(store, year, taken)

        with mock.patch.object(
            DjangoTicketStore, "_new_ticket_number", autospec=True, side_effect=new_number
        ):
            yield failed

    def test_retry_sees_stock_sold_in_between(
        self, issuance, conflict_once, ticket_type_factory, registration_factory
    ):
        """A retried batch re-reads stock, so the competing sale is never oversold."""
        general = ticket_type_factory(available_stock=3)
        first = registration_factory()
        second = registration_factory(email="john.camilleri@example.com")

        def competing_sale(*args, **kwargs):
            issuance.issue_tickets(str(second.pk), [request_for(general, 2)], "admin")

        with mock.patch.object(django_store.logger, "warning", side_effect=competing_sale):
            with pytest.raises(InsufficientStockError) as excinfo:
                issuance.issue_tickets(str(first.pk), [request_for(general, 2)], "admin")

        assert conflict_once
        assert excinfo.value.available == 1
        assert not first.tickets.exists()
        assert second.tickets.count() == 2
        general.refresh_from_db()
        assert (general.available_stock, general.sold_stock, general.total_stock) == (1, 2, 3)

    def test_retry_succeeds_when_stock_remains(
        self, issuance, conflict_once, ticket_type_factory, registration_factory
    ):
        general = ticket_type_factory(available_stock=4)
        first = registration_factory()
        second = registration_factory(email="john.camilleri@example.com")

        def competing_sale(*args, **kwargs):
            issuance.issue_tickets(str(second.pk), [request_for(general, 2)], "admin")

        with mock.patch.object(django_store.logger, "warning", side_effect=competing_sale):
            result = issuance.issue_tickets(str(first.pk), [request_for(general, 2)], "admin")

        assert [ticket.sequence for ticket in result.tickets] == [1, 2]
        assert models.Ticket.objects.count() == 4
        general.refresh_from_db()
        assert (general.available_stock, general.sold_stock, general.total_stock) == (0, 4, 4)


@pytest.mark.django_db
class TestRestock:
    def test_restock_grows_available_and_total(self, issuance, ticket_type_factory):
        vip = ticket_type_factory(name="VIP", available_stock=0, sold_stock=20)

        restocked = issuance.restock(str(vip.pk), 5, "admin")

        assert (restocked.stock.available, restocked.stock.total) == (5, 25)
        vip.refresh_from_db()
        assert (vip.available_stock, vip.sold_stock, vip.total_stock) == (5, 20, 25)

    def test_restock_unknown_ticket_type(self, issuance, db):
        with pytest.raises(TicketTypeNotFoundError):
            issuance.restock(str(uuid.uuid4()), 5, "admin")
