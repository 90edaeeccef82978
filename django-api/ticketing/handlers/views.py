"""HTTP handlers (views) - handle HTTP concerns only.

Handlers:
- Parse requests and validate input format
- Call services for business logic
- Map domain errors to HTTP responses
- Never contain business logic
- Never expose internal error details
"""

import hashlib
import hmac
import logging

from django.conf import settings
from django.core.cache import cache
from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from ticketing.domain import PaymentStatus, RegistrationId
from ticketing.domain.errors import DomainError, ErrorCode
from ticketing.handlers.permissions import CanIssueTickets, CanScanTickets
from ticketing.handlers.serializers import (
    CollectRequestSerializer,
    IssuanceResultSerializer,
    IssueTicketsRequestSerializer,
    PaymentAcknowledgementSerializer,
    PaymentEventSerializer,
    RegistrationSerializer,
    ReviewRequestSerializer,
    StatusSummarySerializer,
    TicketSearchResultSerializer,
    TicketSerializer,
    TicketStatsSerializer,
    VerificationResultSerializer,
    VerifyRequestSerializer,
)
from ticketing.services import (
    EntryVerificationService,
    PaymentWebhookService,
    RegistrationReviewService,
    TicketIssuanceService,
)
from ticketing.signals import ticket_status_cache_key
from ticketing.stores.django_store import DjangoRegistrationStore, DjangoTicketStore

logger = logging.getLogger(__name__)

HTTP_STATUS_BY_CODE = {
    ErrorCode.INVALID_IDENTIFIER: status.HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_TICKET_FORMAT: status.HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_TICKET_REQUEST: status.HTTP_400_BAD_REQUEST,
    ErrorCode.REGISTRATION_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.TICKET_TYPE_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.TICKET_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.PAYMENT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.INSUFFICIENT_STOCK: status.HTTP_409_CONFLICT,
    ErrorCode.TICKET_TYPE_UNAVAILABLE: status.HTTP_409_CONFLICT,
    ErrorCode.NO_PURCHASED_ITEMS: status.HTTP_409_CONFLICT,
    ErrorCode.ISSUANCE_NOT_ALLOWED: status.HTTP_409_CONFLICT,
    ErrorCode.REGISTRATION_STATE: status.HTTP_409_CONFLICT,
    ErrorCode.TICKET_STATE: status.HTTP_409_CONFLICT,
    ErrorCode.TRANSACTION_CONFLICT: status.HTTP_409_CONFLICT,
}


def error_response(error: DomainError, **extra) -> Response:
    body = {"success": False, **extra, "code": error.code.value, "message": error.message}
    return Response(
        body, status=HTTP_STATUS_BY_CODE.get(error.code, status.HTTP_400_BAD_REQUEST)
    )


def invalid_input_response(errors, message: str, **extra) -> Response:
    body = {"success": False, **extra, "message": message, "errors": errors}
    return Response(body, status=status.HTTP_400_BAD_REQUEST)


def issuance_service() -> TicketIssuanceService:
    return TicketIssuanceService(DjangoRegistrationStore(), DjangoTicketStore())


def verification_service() -> EntryVerificationService:
    return EntryVerificationService(DjangoTicketStore())


def actor_for(request: Request) -> str:
    return request.user.get_username()


class VerifyView(APIView):
    """Handler for POST /api/verify (check-in) and GET /api/verify?ticket= (look-up)."""

    permission_classes = [CanScanTickets]

    def post(self, request: Request) -> Response:
        serializer = VerifyRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_input_response(
                serializer.errors,
                "Invalid data provided for verification",
                canEnter=False,
            )
        data = serializer.validated_data
        try:
            result = verification_service().verify(
                data["ticketNumber"],
                checked_in_by=data.get("checkedInBy") or actor_for(request),
                location=data.get("location")
                or settings.TICKETING["DEFAULT_CHECK_IN_LOCATION"],
            )
        except DomainError as exc:
            return error_response(exc, canEnter=False)
        return Response(VerificationResultSerializer(result).data)

    def get(self, request: Request) -> Response:
        identifier = request.query_params.get("ticket", "")
        if not identifier:
            return invalid_input_response(
                {"ticket": ["This query parameter is required."]},
                "Ticket number is required for verification",
                canEnter=False,
            )
        try:
            result = verification_service().inspect(identifier)
        except DomainError as exc:
            return error_response(exc, canEnter=False)
        return Response(VerificationResultSerializer(result).data)


class TicketSearchView(APIView):
    """Handler for GET /api/tickets/search?query= (manual entry when a code will not scan)."""

    permission_classes = [CanScanTickets]

    def get(self, request: Request) -> Response:
        try:
            results = verification_service().search(
                request.query_params.get("query", ""), actor_for(request)
            )
        except DomainError as exc:
            return error_response(exc)
        return Response(TicketSearchResultSerializer(results, many=True).data)


class CollectTicketView(APIView):
    """Handler for POST /api/tickets/collect"""

    permission_classes = [CanScanTickets]

    def post(self, request: Request) -> Response:
        serializer = CollectRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_input_response(serializer.errors, "Invalid data")
        try:
            ticket = issuance_service().mark_ticket_collected(
                serializer.validated_data["ticketNumber"], actor_for(request)
            )
        except DomainError as exc:
            return error_response(exc)
        return Response({"success": True, "ticket": TicketSerializer(ticket).data})


class AdminIssueTicketsView(APIView):
    """Handler for POST /api/admin/tickets/generate (bypasses the payment gate)."""

    permission_classes = [CanIssueTickets]

    def post(self, request: Request) -> Response:
        serializer = IssueTicketsRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_input_response(serializer.errors, "Invalid data")
        try:
            result = issuance_service().issue_tickets(
                serializer.validated_data["registrationId"],
                serializer.ticket_requests(),
                actor=actor_for(request),
            )
        except DomainError as exc:
            return error_response(exc)

        if result.created:
            message = f"Admin generated {len(result.tickets)} tickets"
            http_status = status.HTTP_201_CREATED
        else:
            message = "Tickets already exist"
            http_status = status.HTTP_200_OK
        body = {"success": True, "message": message, **IssuanceResultSerializer(result).data}
        return Response(body, status=http_status)


class TicketStatsView(APIView):
    """Handler for GET /api/admin/tickets/stats"""

    permission_classes = [CanIssueTickets]

    def get(self, request: Request) -> Response:
        return Response(TicketStatsSerializer(issuance_service().ticket_stats()).data)


class RegistrationReviewView(APIView):
    """Handler for POST /api/admin/registrations/{registration_id}/review"""

    permission_classes = [CanIssueTickets]

    def post(self, request: Request, registration_id: str) -> Response:
        serializer = ReviewRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_input_response(serializer.errors, "Invalid data")
        review = RegistrationReviewService(DjangoRegistrationStore(), issuance_service())
        action = serializer.validated_data["action"]
        notes = serializer.validated_data["notes"]
        try:
            if action == "APPROVE":
                registration = review.approve(registration_id, actor_for(request), notes)
            else:
                registration = review.reject(registration_id, actor_for(request), notes)
        except DomainError as exc:
            return error_response(exc)
        return Response(
            {"success": True, "registration": RegistrationSerializer(registration).data}
        )


class MarkTicketsSentView(APIView):
    """Handler for POST /api/admin/registrations/{registration_id}/tickets/sent"""

    permission_classes = [CanIssueTickets]

    def post(self, request: Request, registration_id: str) -> Response:
        try:
            moved = issuance_service().mark_tickets_sent(registration_id, actor_for(request))
        except DomainError as exc:
            return error_response(exc)
        return Response({"success": True, "ticketsSent": moved})


class TicketStatusView(APIView):
    """Handler for GET /api/registrations/{registration_id}/ticket-status"""

    permission_classes = [AllowAny]

    def get(self, request: Request, registration_id: str) -> Response:
        try:
            key = ticket_status_cache_key(RegistrationId.from_string(registration_id))
        except DomainError as exc:
            return error_response(exc)
        data = cache.get(key)
        if data is None:
            try:
                summary = issuance_service().status_summary(registration_id)
            except DomainError as exc:
                return error_response(exc)
            data = dict(StatusSummarySerializer(summary).data)
            cache.set(key, data, settings.TICKETING["STATUS_CACHE_TIMEOUT"])
        return Response(data)


class PaymentWebhookView(APIView):
    """Handler for POST /api/webhooks/payments

    The body must be signed with HMAC-SHA256 using PAYMENT_WEBHOOK_SECRET and the
    hex digest sent in the X-Payment-Signature header.
    """

    authentication_classes = []
    permission_classes = [AllowAny]

    def _signature_is_valid(self, request: Request) -> bool:
        secret = settings.TICKETING["PAYMENT_WEBHOOK_SECRET"]
        if not secret:
            logger.error("Payment webhook received but no webhook secret is configured")
            return False
        provided = request.headers.get("X-Payment-Signature", "")
        expected = hmac.new(secret.encode("utf-8"), request.body, hashlib.sha256).hexdigest()
        return hmac.compare_digest(provided, expected)

    def post(self, request: Request) -> Response:
        if not self._signature_is_valid(request):
            return Response(
                {"success": False, "message": "Invalid signature"},
                status=status.HTTP_400_BAD_REQUEST,
            )
        serializer = PaymentEventSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_input_response(serializer.errors, "Invalid payment event")

        webhook = PaymentWebhookService(DjangoRegistrationStore(), issuance_service())
        try:
            acknowledgement = webhook.handle_payment_event(
                serializer.validated_data["paymentReference"],
                PaymentStatus(serializer.validated_data["status"]),
            )
        except DomainError as exc:
            return error_response(exc)
        return Response(PaymentAcknowledgementSerializer(acknowledgement).data)
