"""Django ORM models (persistence layer).

These models handle database concerns. Domain logic lives in domain/.
"""

import uuid

from django.db import models

from ticketing.domain.statuses import (
    DeliveryKind,
    PaymentStatus,
    RegistrationStatus,
    TicketStatus,
)


def _choices(enum_cls) -> list[tuple[str, str]]:
    return [(member.value, member.name.replace("_", " ").title()) for member in enum_cls]


class TicketType(models.Model):
    """Persistence model for ticket types and their inventory."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=100)
    description = models.TextField(blank=True)
    price_in_cents = models.PositiveIntegerField()
    available_stock = models.PositiveIntegerField()
    sold_stock = models.PositiveIntegerField(default=0)
    total_stock = models.PositiveIntegerField()
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(available_stock__gte=0),
                name="ticket_type_available_stock_non_negative",
            ),
            models.CheckConstraint(
                condition=models.Q(
                    total_stock=models.F("available_stock") + models.F("sold_stock")
                ),
                name="ticket_type_stock_conserved",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.name} ({self.available_stock}/{self.total_stock})"


class Registration(models.Model):
    """Persistence model for customer sign-ups."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    email = models.EmailField()
    is_ems_client = models.BooleanField(default=False)
    status = models.CharField(
        max_length=20,
        choices=_choices(RegistrationStatus),
        default=RegistrationStatus.PENDING.value,
        db_index=True,
    )
    final_amount_in_cents = models.PositiveIntegerField(default=0)
    verified_by = models.CharField(max_length=150, blank=True, null=True)
    verified_at = models.DateTimeField(blank=True, null=True)
    admin_notes = models.TextField(blank=True)
    rejected_reason = models.TextField(blank=True)
    tickets_issued_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["email"]),
        ]

    def __str__(self) -> str:
        return f"{self.first_name} {self.last_name} <{self.email}>"


class RegistrationItem(models.Model):
    """Ticket types and quantities captured at checkout."""

    registration = models.ForeignKey(
        Registration, on_delete=models.CASCADE, related_name="items"
    )
    ticket_type = models.ForeignKey(
        TicketType, on_delete=models.PROTECT, related_name="registration_items"
    )
    quantity = models.PositiveIntegerField()

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["registration", "ticket_type"],
                name="unique_registration_item_ticket_type",
            ),
            models.CheckConstraint(
                condition=models.Q(quantity__gte=1),
                name="registration_item_quantity_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.quantity} x {self.ticket_type.name}"


class Payment(models.Model):
    """Persistence model for the processor payment backing a registration."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    registration = models.OneToOneField(
        Registration, on_delete=models.CASCADE, related_name="payment"
    )
    reference = models.CharField(max_length=255, unique=True)
    status = models.CharField(
        max_length=20,
        choices=_choices(PaymentStatus),
        default=PaymentStatus.PENDING.value,
    )
    amount_in_cents = models.PositiveIntegerField(default=0)
    paid_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"{self.reference} ({self.status})"


class Ticket(models.Model):
    """Persistence model for admission credentials."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    ticket_number = models.CharField(max_length=20, unique=True, editable=False)
    registration = models.ForeignKey(
        Registration, on_delete=models.PROTECT, related_name="tickets"
    )
    ticket_type = models.ForeignKey(
        TicketType, on_delete=models.PROTECT, related_name="tickets"
    )
    status = models.CharField(
        max_length=20,
        choices=_choices(TicketStatus),
        default=TicketStatus.GENERATED.value,
        db_index=True,
    )
    sequence = models.PositiveIntegerField()
    purchase_price_in_cents = models.PositiveIntegerField()
    issued_at = models.DateTimeField()
    sent_at = models.DateTimeField(blank=True, null=True)
    collected_at = models.DateTimeField(blank=True, null=True)
    collected_by = models.CharField(max_length=150, blank=True, null=True)
    used_at = models.DateTimeField(blank=True, null=True)

    class Meta:
        ordering = ["registration", "sequence"]
        constraints = [
            models.UniqueConstraint(
                fields=["registration", "sequence"],
                name="unique_ticket_sequence_per_registration",
            ),
        ]
        permissions = [
            ("scan_ticket", "Can verify tickets at the entrance"),
            ("issue_ticket", "Can issue tickets manually"),
        ]

    def __str__(self) -> str:
        return self.ticket_number


class CheckIn(models.Model):
    """Append-only record of a successful entry scan."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    ticket = models.ForeignKey(Ticket, on_delete=models.PROTECT, related_name="check_ins")
    checked_in_at = models.DateTimeField()
    checked_in_by = models.CharField(max_length=150)
    location = models.CharField(max_length=255)

    class Meta:
        ordering = ["-checked_in_at"]
        constraints = [
            models.UniqueConstraint(fields=["ticket"], name="unique_check_in_per_ticket"),
        ]

    def __str__(self) -> str:
        return f"{self.ticket.ticket_number} @ {self.location}"


class DeliveryLog(models.Model):
    """Audit trail of ticket deliveries and review notifications."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    registration = models.ForeignKey(
        Registration, on_delete=models.CASCADE, related_name="delivery_logs"
    )
    kind = models.CharField(max_length=32, choices=_choices(DeliveryKind))
    subject = models.CharField(max_length=255)
    recipient = models.EmailField()
    actor = models.CharField(max_length=150)
    ticket_count = models.PositiveIntegerField(default=0)
    template = models.CharField(max_length=64, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.kind} -> {self.recipient}"
