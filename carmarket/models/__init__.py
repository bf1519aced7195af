"""ORM models package export."""

from carmarket.models.complaint import Complaint, ComplaintStatus
from carmarket.models.favorite import Favorite
from carmarket.models.inquiry import Inquiry, InquiryMessage, InquiryStatus
from carmarket.models.password_reset import PasswordResetToken
from carmarket.models.transaction import (
    DeliveryStatus,
    PaymentEvent,
    PaymentProvider,
    PaymentType,
    Transaction,
    TransactionStatus,
)
from carmarket.models.user import User, UserRole
from carmarket.models.vehicle import FuelType, Transmission, Vehicle, VehicleStatus

__all__ = [
    "Complaint",
    "ComplaintStatus",
    "DeliveryStatus",
    "Favorite",
    "FuelType",
    "Inquiry",
    "InquiryMessage",
    "InquiryStatus",
    "PasswordResetToken",
    "PaymentEvent",
    "PaymentProvider",
    "PaymentType",
    "Transaction",
    "TransactionStatus",
    "Transmission",
    "User",
    "UserRole",
    "Vehicle",
    "VehicleStatus",
]
