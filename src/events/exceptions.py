class ReservationError(Exception):
    """Base class for reservation problems a guest can fix by changing their basket."""


class TierSoldOutError(ReservationError):
    """Raised when a ticket tier cannot cover the requested quantity."""


class InvalidDiscountCodeError(ReservationError):
    """Raised when a discount code does not exist, has expired or is used up."""


class InvalidAddonError(ReservationError):
    """Raised when an add-on does not belong to the event or is no longer offered."""


class ReservationNotPayableError(ReservationError):
    """Raised when a reservation has expired or is no longer pending."""
