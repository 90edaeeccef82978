from ticketing.stores.interfaces import RegistrationStore, TicketStore

__all__ = ["RegistrationStore", "TicketStore"]
