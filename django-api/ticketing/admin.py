from django import forms
from django.contrib import admin, messages
from django.contrib.admin.helpers import ActionForm

from ticketing.models import (
    CheckIn,
    DeliveryLog,
    Payment,
    Registration,
    RegistrationItem,
    Ticket,
    TicketType,
)
from ticketing.services import TicketIssuanceService
from ticketing.stores.django_store import DjangoRegistrationStore, DjangoTicketStore


class RestockActionForm(ActionForm):
    quantity = forms.IntegerField(min_value=1, required=False, label="Restock quantity")


class RegistrationItemInline(admin.TabularInline):
    model = RegistrationItem
    extra = 1


class PaymentInline(admin.StackedInline):
    model = Payment
    extra = 0
    readonly_fields = ["paid_at"]


class TicketInline(admin.TabularInline):
    model = Ticket
    extra = 0
    can_delete = False
    fields = ["ticket_number", "ticket_type", "status", "sequence", "issued_at"]
    readonly_fields = fields

    def has_add_permission(self, request, obj=None) -> bool:
        return False


@admin.register(TicketType)
class TicketTypeAdmin(admin.ModelAdmin):
    list_display = [
        "name",
        "price_in_cents",
        "available_stock",
        "sold_stock",
        "total_stock",
        "is_active",
    ]
    list_filter = ["is_active"]
    readonly_fields = ["sold_stock", "total_stock"]
    action_form = RestockActionForm
    actions = ["restock"]

    def get_readonly_fields(self, request, obj=None):
        # Once created, stock moves only through issuance and the restock action.
        if obj is not None:
            return [*self.readonly_fields, "available_stock"]
        return self.readonly_fields

    def save_model(self, request, obj, form, change):
        if change:
            obj.save(update_fields=[*form.changed_data, "updated_at"])
            return
        obj.total_stock = obj.available_stock + obj.sold_stock
        super().save_model(request, obj, form, change)

    @admin.action(description="Restock selected ticket types")
    def restock(self, request, queryset):
        form = self.action_form(request.POST, auto_id=None)
        form.fields["action"].choices = self.get_action_choices(request)
        if not form.is_valid() or not form.cleaned_data.get("quantity"):
            self.message_user(
                request, "Enter a restock quantity of at least 1.", messages.ERROR
            )
            return
        quantity = form.cleaned_data["quantity"]
        issuance = TicketIssuanceService(DjangoRegistrationStore(), DjangoTicketStore())
        actor = request.user.get_username()
        for ticket_type in queryset:
            issuance.restock(str(ticket_type.pk), quantity, actor)
        self.message_user(
            request,
            f"Added {quantity} tickets to {queryset.count()} ticket types.",
            messages.SUCCESS,
        )


@admin.register(Registration)
class RegistrationAdmin(admin.ModelAdmin):
    list_display = ["email", "first_name", "last_name", "is_ems_client", "status", "created_at"]
    list_filter = ["status", "is_ems_client"]
    search_fields = ["email", "first_name", "last_name"]
    readonly_fields = ["verified_by", "verified_at", "tickets_issued_at"]
    inlines = [RegistrationItemInline, PaymentInline, TicketInline]


@admin.register(Ticket)
class TicketAdmin(admin.ModelAdmin):
    list_display = ["ticket_number", "registration", "ticket_type", "status", "issued_at"]
    list_filter = ["status", "ticket_type"]
    search_fields = ["ticket_number", "registration__email"]
    readonly_fields = ["ticket_number", "registration", "ticket_type", "sequence", "issued_at"]

    def has_add_permission(self, request) -> bool:
        return False


@admin.register(CheckIn)
class CheckInAdmin(admin.ModelAdmin):
    list_display = ["ticket", "checked_in_at", "checked_in_by", "location"]
    search_fields = ["ticket__ticket_number", "checked_in_by"]


@admin.register(DeliveryLog)
class DeliveryLogAdmin(admin.ModelAdmin):
    list_display = ["kind", "recipient", "actor", "ticket_count", "created_at"]
    list_filter = ["kind"]
