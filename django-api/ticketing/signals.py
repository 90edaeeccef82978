"""Django signals for cache invalidation.

The ticket status summary of a registration is cached; anything that can change
it (the registration, its payment, its tickets) drops the entry once the
surrounding transaction commits.
"""

from django.core.cache import cache
from django.db import transaction
from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from ticketing.models import Payment, Registration, Ticket


def ticket_status_cache_key(registration_id) -> str:
    return f"registrations:{registration_id}:ticket-status"


def _invalidate_ticket_status(registration_id) -> None:
    key = ticket_status_cache_key(registration_id)
    transaction.on_commit(lambda: cache.delete(key))


@receiver([post_save, post_delete], sender=Registration)
def invalidate_registration_status(sender, instance, **kwargs):
    """Invalidate the status summary when a registration is saved or deleted."""
    _invalidate_ticket_status(instance.pk)


@receiver([post_save, post_delete], sender=Payment)
def invalidate_payment_status(sender, instance, **kwargs):
    """Invalidate the status summary when a payment is saved or deleted."""
    _invalidate_ticket_status(instance.registration_id)


@receiver([post_save, post_delete], sender=Ticket)
def invalidate_ticket_status(sender, instance, **kwargs):
    """Invalidate the status summary when a ticket is saved or deleted."""
    _invalidate_ticket_status(instance.registration_id)
