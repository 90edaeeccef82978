"""Serializers for request validation and for transforming domain models to API responses."""

from django.conf import settings
from rest_framework import serializers

from ticketing.domain import PaymentStatus, TicketRequest, TicketTypeId


class TicketRequestSerializer(serializers.Serializer):
    ticketTypeId = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1)

    def validate_quantity(self, value: int) -> int:
        limit = settings.TICKETING["MAX_TICKETS_PER_REQUEST"]
        if value > limit:
            raise serializers.ValidationError(f"At most {limit} tickets per request")
        return value


class IssueTicketsRequestSerializer(serializers.Serializer):
    registrationId = serializers.CharField()
    ticketRequests = TicketRequestSerializer(many=True, allow_empty=False)

    def ticket_requests(self) -> list[TicketRequest]:
        return [
            TicketRequest(
                ticket_type_id=TicketTypeId(item["ticketTypeId"]),
                quantity=item["quantity"],
            )
            for item in self.validated_data["ticketRequests"]
        ]


class VerifyRequestSerializer(serializers.Serializer):
    ticketNumber = serializers.CharField(max_length=2048)
    checkedInBy = serializers.CharField(required=False, allow_blank=True, max_length=150)
    location = serializers.CharField(required=False, allow_blank=True, max_length=255)


class CollectRequestSerializer(serializers.Serializer):
    ticketNumber = serializers.CharField(max_length=2048)


class ReviewRequestSerializer(serializers.Serializer):
    action = serializers.ChoiceField(choices=["APPROVE", "REJECT"])
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class PaymentEventSerializer(serializers.Serializer):
    paymentReference = serializers.CharField(max_length=255)
    status = serializers.ChoiceField(choices=[status.value for status in PaymentStatus])


class TicketSerializer(serializers.Serializer):
    """Serializer for Ticket domain model."""

    ticketNumber = serializers.CharField(source="ticket_number.value")
    registrationId = serializers.CharField(source="registration_id.value")
    ticketTypeId = serializers.CharField(source="ticket_type_id.value")
    ticketType = serializers.CharField(source="ticket_type_name")
    status = serializers.CharField(source="status.value")
    sequence = serializers.IntegerField()
    purchasePriceInCents = serializers.IntegerField(source="purchase_price.cents")
    issuedAt = serializers.DateTimeField(source="issued_at")
    sentAt = serializers.DateTimeField(source="sent_at", allow_null=True)
    collectedAt = serializers.DateTimeField(source="collected_at", allow_null=True)
    collectedBy = serializers.CharField(source="collected_by", allow_null=True)
    usedAt = serializers.DateTimeField(source="used_at", allow_null=True)


class IssuanceResultSerializer(serializers.Serializer):
    created = serializers.BooleanField()
    tickets = TicketSerializer(many=True)


class TicketDetailsSerializer(serializers.Serializer):
    """Customer-facing fields shown to scanning staff."""

    ticketNumber = serializers.CharField(source="ticket.ticket_number.value")
    customerName = serializers.CharField(source="holder_name")
    email = serializers.CharField(source="holder_email")
    isEmsClient = serializers.BooleanField(source="is_ems_client")
    ticketType = serializers.CharField(source="ticket.ticket_type_name")
    status = serializers.CharField(source="ticket.status.value")


class TicketSearchResultSerializer(serializers.Serializer):
    ticketNumber = serializers.CharField(source="ticket.ticket_number.value")
    status = serializers.CharField(source="ticket.status.value")
    customerName = serializers.CharField(source="holder_name")


class CheckInSerializer(serializers.Serializer):
    timestamp = serializers.DateTimeField(source="checked_in_at")
    location = serializers.CharField()
    checkedInBy = serializers.CharField(source="checked_in_by")


class VerificationResultSerializer(serializers.Serializer):
    success = serializers.BooleanField()
    canEnter = serializers.BooleanField(source="can_enter")
    message = serializers.CharField()
    outcome = serializers.CharField(source="outcome.value")
    ticket = TicketDetailsSerializer()
    checkIn = CheckInSerializer(source="check_in", allow_null=True)


class StatusSummarySerializer(serializers.Serializer):
    canIssue = serializers.BooleanField(source="can_issue")
    hasTickets = serializers.BooleanField(source="has_tickets")
    reason = serializers.CharField(source="reason.value")
    nextSteps = serializers.ListField(source="next_steps", child=serializers.CharField())
    registrationStatus = serializers.CharField(source="registration_status.value")
    paymentStatus = serializers.CharField(source="payment_status.value", allow_null=True)


class TicketStatsSerializer(serializers.Serializer):
    total = serializers.IntegerField()
    byStatus = serializers.SerializerMethodField()

    def get_byStatus(self, stats) -> dict[str, int]:
        return {status.value: count for status, count in stats.by_status.items()}


class RegistrationSerializer(serializers.Serializer):
    id = serializers.CharField(source="id.value")
    customerName = serializers.CharField(source="full_name")
    email = serializers.CharField()
    isEmsClient = serializers.BooleanField(source="is_ems_client")
    status = serializers.CharField(source="status.value")
    verifiedBy = serializers.CharField(source="verified_by", allow_null=True)
    ticketCount = serializers.IntegerField(source="ticket_count")


class PaymentAcknowledgementSerializer(serializers.Serializer):
    received = serializers.BooleanField()
    paymentReference = serializers.CharField(source="payment.reference")
    paymentStatus = serializers.CharField(source="payment.status.value")
    ticketsIssued = serializers.IntegerField(source="tickets_issued")
    issuanceError = serializers.CharField(source="issuance_error", allow_null=True)
