"""
Status enums for every entity that goes through the approval workflow.

Values are stored as plain strings in the database; the enums only exist so
code compares against one spelling.
"""
from enum import Enum


class Role(str, Enum):
    RENTER = "renter"
    HOST = "host"
    ADMIN = "admin"


class EntityType(str, Enum):
    USER = "user"
    LISTING = "listing"
    BOOKING = "booking"
    DOCUMENT = "document"


class UserApprovalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class UserDocumentStatus(str, Enum):
    NOT_UPLOADED = "not_uploaded"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ListingStatus(str, Enum):
    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    INACTIVE = "inactive"


class ListingApprovalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    APPROVED = "approved"
    DECLINED = "declined"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    DISPUTED = "disputed"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"
    PARTIALLY_REFUNDED = "partially_refunded"


class DocumentStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class DocumentType(str, Enum):
    LICENSE = "license"
    ID = "id"
    INSURANCE = "insurance"
    REGISTRATION = "registration"
    ROADWORTHY = "roadworthy"
    OTHER = "other"


class VehicleType(str, Enum):
    CAR = "car"
    TRAILER = "trailer"
    BAKKIE = "bakkie"
    TRUCK = "truck"
    MOTORCYCLE = "motorcycle"
    VAN = "van"
    SUV = "suv"


class Transmission(str, Enum):
    MANUAL = "manual"
    AUTOMATIC = "automatic"


class FuelType(str, Enum):
    PETROL = "petrol"
    DIESEL = "diesel"
    ELECTRIC = "electric"


class NotificationPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class OutboxStatus(str, Enum):
    PENDING = "pending"
    DISPATCHED = "dispatched"
    FAILED = "failed"


# Bookings in these states hold the vehicle for their date range
BLOCKING_BOOKING_STATUSES = (
    BookingStatus.CONFIRMED.value,
    BookingStatus.APPROVED.value,
    BookingStatus.COMPLETED.value,
)
