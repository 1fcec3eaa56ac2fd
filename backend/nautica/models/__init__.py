from nautica.models.owner import Owner
from nautica.models.boat import Boat, BoatPhoto, BoatType
from nautica.models.pricing_rule import PricingRule, PricingType
from nautica.models.availability import AvailabilityBlock
from nautica.models.holiday import Holiday
from nautica.models.profile import Profile
from nautica.models.booking import Booking, BookingStatus
from nautica.models.payment import Payment, PaymentStatus

__all__ = [
    "Owner",
    "Boat",
    "BoatPhoto",
    "BoatType",
    "PricingRule",
    "PricingType",
    "AvailabilityBlock",
    "Holiday",
    "Profile",
    "Booking",
    "BookingStatus",
    "Payment",
    "PaymentStatus",
]
