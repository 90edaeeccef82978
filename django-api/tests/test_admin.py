"""Tests for the Django admin inventory controls.

Run with: pytest tests/test_admin.py -v
"""

import pytest
from django.contrib import admin
from django.urls import reverse

from ticketing import models
from ticketing.admin import TicketTypeAdmin
from ticketing.domain import TicketRequest, TicketTypeId

CHANGELIST = "admin:ticketing_tickettype_changelist"


def restock(client, ticket_types, quantity):
    return client.post(
        reverse(CHANGELIST),
        {
            "action": "restock",
            "_selected_action": [str(ticket_type.pk) for ticket_type in ticket_types],
            "quantity": quantity,
            "index": 0,
        },
    )


@pytest.mark.django_db
class TestRestockAction:
    """Tests for the restock admin action."""

    def test_restock_keeps_stock_conserved(
        self, admin_client, issuance, ticket_type_factory, registration_factory
    ):
        """Given sold tickets, restocking grows available and total together."""
        general = ticket_type_factory(available_stock=5)
        issuance.issue_tickets(
            str(registration_factory().pk),
            [TicketRequest(ticket_type_id=TicketTypeId(general.pk), quantity=3)],
            actor="admin",
        )

        response = restock(admin_client, [general], 10)

        assert response.status_code == 302
        general.refresh_from_db()
        assert (general.available_stock, general.sold_stock, general.total_stock) == (12, 3, 15)
        assert general.total_stock == general.available_stock + general.sold_stock

    def test_restock_applies_to_every_selected_type(self, admin_client, ticket_type_factory):
        general = ticket_type_factory(name="General Admission", available_stock=1)
        vip = ticket_type_factory(name="VIP", available_stock=0)

        restock(admin_client, [general, vip], 4)

        stock = dict(models.TicketType.objects.values_list("name", "available_stock"))
        assert stock == {"General Admission": 5, "VIP": 4}

    @pytest.mark.parametrize("quantity", ["", "0", "-3"])
    def test_restock_without_positive_quantity_changes_nothing(
        self, admin_client, ticket_type_factory, quantity
    ):
        general = ticket_type_factory(available_stock=5)

        restock(admin_client, [general], quantity)

        general.refresh_from_db()
        assert (general.available_stock, general.total_stock) == (5, 5)


@pytest.mark.django_db
class TestTicketTypeChangeForm:
    def test_available_stock_is_read_only_once_created(
        self, rf, admin_user, ticket_type_factory
    ):
        model_admin = TicketTypeAdmin(models.TicketType, admin.site)
        request = rf.get("/")
        request.user = admin_user

        assert "available_stock" not in model_admin.get_readonly_fields(request)
        assert "available_stock" in model_admin.get_readonly_fields(
            request, ticket_type_factory()
        )

    def test_editing_details_leaves_stock_alone(
        self, admin_client, issuance, ticket_type_factory, registration_factory
    ):
        """A stale change form cannot write back stock sold after it was opened."""
        general = ticket_type_factory(available_stock=5)
        url = reverse("admin:ticketing_tickettype_change", args=[general.pk])
        issuance.issue_tickets(
            str(registration_factory().pk),
            [TicketRequest(ticket_type_id=TicketTypeId(general.pk), quantity=2)],
            actor="admin",
        )

        response = admin_client.post(
            url,
            {
                "name": "General Admission (Early)",
                "description": "",
                "price_in_cents": 2000,
                "available_stock": 5,
                "is_active": "on",
            },
        )

        assert response.status_code == 302
        general.refresh_from_db()
        assert general.name == "General Admission (Early)"
        assert (general.available_stock, general.sold_stock, general.total_stock) == (3, 2, 5)
