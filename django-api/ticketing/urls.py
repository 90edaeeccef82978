from django.urls import path

from ticketing.handlers import (
    AdminIssueTicketsView,
    CollectTicketView,
    MarkTicketsSentView,
    PaymentWebhookView,
    RegistrationReviewView,
    TicketStatsView,
    TicketSearchView,
    TicketStatusView,
    VerifyView,
)

urlpatterns = [
    path("verify", VerifyView.as_view(), name="verify"),
    path("tickets/search", TicketSearchView.as_view(), name="ticket-search"),
    path("tickets/collect", CollectTicketView.as_view(), name="ticket-collect"),
    path(
        "registrations/<str:registration_id>/ticket-status",
        TicketStatusView.as_view(),
        name="ticket-status",
    ),
    path(
        "admin/tickets/generate",
        AdminIssueTicketsView.as_view(),
        name="admin-ticket-generate",
    ),
    path("admin/tickets/stats", TicketStatsView.as_view(), name="admin-ticket-stats"),
    path(
        "admin/registrations/<str:registration_id>/review",
        RegistrationReviewView.as_view(),
        name="admin-registration-review",
    ),
    path(
        "admin/registrations/<str:registration_id>/tickets/sent",
        MarkTicketsSentView.as_view(),
        name="admin-tickets-sent",
    ),
    path("webhooks/payments", PaymentWebhookView.as_view(), name="payment-webhook"),
]
