from rentaldesk.models.booking import Booking
from rentaldesk.models.booking_line_item import BookingLineItem
from rentaldesk.models.booking_sequence import BookingSequence
from rentaldesk.models.booking_vehicle import BookingVehicle
from rentaldesk.models.customer import Customer
from rentaldesk.models.inspection import Inspection
from rentaldesk.models.inspection_damage import InspectionDamage, InspectionExtra
from rentaldesk.models.pricing_group import PricingGroup
from rentaldesk.models.vehicle import Vehicle

__all__ = [
    "Booking",
    "BookingLineItem",
    "BookingSequence",
    "BookingVehicle",
    "Customer",
    "Inspection",
    "InspectionDamage",
    "InspectionExtra",
    "PricingGroup",
    "Vehicle",
]
