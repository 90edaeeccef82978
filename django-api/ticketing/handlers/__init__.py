from ticketing.handlers.views import (
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

__all__ = [
    "AdminIssueTicketsView",
    "CollectTicketView",
    "MarkTicketsSentView",
    "PaymentWebhookView",
    "RegistrationReviewView",
    "TicketStatsView",
    "TicketSearchView",
    "TicketStatusView",
    "VerifyView",
]
