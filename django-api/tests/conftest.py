"""Pytest configuration and shared fixtures."""

import uuid

import pytest
from django.contrib.auth.models import Permission
from django.contrib.contenttypes.models import ContentType
from rest_framework.test import APIClient

from ticketing import models
from ticketing.domain import (
    Money,
    Payment,
    PaymentStatus,
    Registration,
    RegistrationId,
    RegistrationStatus,
)
from ticketing.services import EntryVerificationService, TicketIssuanceService
from ticketing.stores.django_store import DjangoRegistrationStore, DjangoTicketStore


@pytest.fixture
def api_client() -> APIClient:
    return APIClient()


@pytest.fixture(autouse=True)
def clear_cache():
    from django.core.cache import cache
    cache.clear()
    yield
    cache.clear()


def _grant(user, codename: str) -> None:
    content_type = ContentType.objects.get_for_model(models.Ticket)
    permission, _ = Permission.objects.get_or_create(
        codename=codename,
        content_type=content_type,
        defaults={"name": codename.replace("_", " ")},
    )
    user.user_permissions.add(permission)


@pytest.fixture
def scanner_user(django_user_model):
    user = django_user_model.objects.create_user(
        username="door-staff", password="not-a-real-password", is_staff=True
    )
    _grant(user, "scan_ticket")
    return user


@pytest.fixture
def ticket_type_factory(db):
    def create(
        name: str = "General Admission",
        price_in_cents: int = 2500,
        available_stock: int = 5,
        sold_stock: int = 0,
        is_active: bool = True,
    ) -> models.TicketType:
        return models.TicketType.objects.create(
            name=name,
            price_in_cents=price_in_cents,
            available_stock=available_stock,
            sold_stock=sold_stock,
            total_stock=available_stock + sold_stock,
            is_active=is_active,
        )

    return create


@pytest.fixture
def registration_factory(db):
    def create(
        *,
        is_ems_client: bool = False,
        status: RegistrationStatus = RegistrationStatus.PENDING,
        payment_status: PaymentStatus | None = None,
        items=(),
        verified_by: str | None = None,
        first_name: str = "Maria",
        last_name: str = "Borg",
        email: str = "maria.borg@example.com",
        final_amount_in_cents: int = 5000,
    ) -> models.Registration:
        registration = models.Registration.objects.create(
            first_name=first_name,
            last_name=last_name,
            email=email,
            is_ems_client=is_ems_client,
            status=status.value,
            verified_by=verified_by,
            final_amount_in_cents=final_amount_in_cents,
        )
        for ticket_type, quantity in items:
            models.RegistrationItem.objects.create(
                registration=registration, ticket_type=ticket_type, quantity=quantity
            )
        if payment_status is not None:
            models.Payment.objects.create(
                registration=registration,
                reference=f"pi_{registration.pk.hex[:16]}",
                status=payment_status.value,
                amount_in_cents=final_amount_in_cents,
            )
        return registration

    return create


@pytest.fixture
def issuance() -> TicketIssuanceService:
    return TicketIssuanceService(DjangoRegistrationStore(), DjangoTicketStore())


@pytest.fixture
def verification() -> EntryVerificationService:
    return EntryVerificationService(DjangoTicketStore())


@pytest.fixture
def registration_snapshot():
    """Build a domain Registration without touching the database."""

    def build(
        *,
        is_ems_client: bool = False,
        status: RegistrationStatus = RegistrationStatus.PENDING,
        payment_status: PaymentStatus | None = None,
        ticket_count: int = 0,
        verified_by: str | None = None,
        items=(),
    ) -> Registration:
        registration_id = RegistrationId(uuid.uuid4())
        payment = None
        if payment_status is not None:
            payment = Payment(
                reference="pi_test",
                registration_id=registration_id,
                status=payment_status,
                amount=Money(5000),
                paid_at=None,
            )
        return Registration(
            id=registration_id,
            first_name="Maria",
            last_name="Borg",
            email="maria.borg@example.com",
            is_ems_client=is_ems_client,
            status=status,
            final_amount=Money(5000),
            verified_by=verified_by,
            payment=payment,
            ticket_count=ticket_count,
            items=tuple(items),
        )

    return build
