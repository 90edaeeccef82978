from rest_framework.permissions import BasePermission


class _TicketingPermission(BasePermission):
    permission = ""

    def has_permission(self, request, view) -> bool:
        user = request.user
        return bool(user and user.is_authenticated and user.has_perm(self.permission))


class CanScanTickets(_TicketingPermission):
    """Entrance staff: verify, inspect and hand out tickets."""

    permission = "ticketing.scan_ticket"


class CanIssueTickets(_TicketingPermission):
    """Back-office admins: manual issuance, reviews and stats."""

    permission = "ticketing.issue_ticket"
