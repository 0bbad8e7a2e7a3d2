from .event import Discount, Event, EventAddon, TicketTier
from .organizer import MAX_FEE_PERCENT, Organizer, OrganizerTeamMember
from .reservation import Reservation, ReservationAddon, Ticket

__all__ = [
    "MAX_FEE_PERCENT",
    # Organizers
    "Organizer",
    "OrganizerTeamMember",
    # Events
    "Discount",
    "Event",
    "EventAddon",
    "TicketTier",
    # Checkout
    "Reservation",
    "ReservationAddon",
    "Ticket",
]
