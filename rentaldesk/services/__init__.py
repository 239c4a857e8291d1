from rentaldesk.services.booking_number_service import BookingNumberService
from rentaldesk.services.booking_service import BookingService
from rentaldesk.services.contract_service import ContractService
from rentaldesk.services.customer_service import CustomerService
from rentaldesk.services.inspection_service import InspectionService
from rentaldesk.services.media_service import MediaService
from rentaldesk.services.pricing_group_service import PricingGroupService
from rentaldesk.services.pricing_service import PricingService
from rentaldesk.services.vehicle_service import VehicleService

__all__ = [
    "BookingNumberService",
    "BookingService",
    "ContractService",
    "CustomerService",
    "InspectionService",
    "MediaService",
    "PricingGroupService",
    "PricingService",
    "VehicleService",
]
