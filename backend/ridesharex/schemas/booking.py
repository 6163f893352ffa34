# ridesharex/schemas/booking.py
from datetime import date, datetime
from typing import Optional
from pydantic import BaseModel, Field


class BookingCreate(BaseModel):
    listing_id: int
    start_date: date
    end_date: date
    special_requests: Optional[str] = Field(default=None, max_length=2000)


class BookingOut(BaseModel):
    id: int
    listing_id: int
    renter_id: int
    start_date: date
    end_date: date
    total_days: int
    price_per_day: float
    subtotal: float
    service_fee: float
    insurance_fee: float
    total_amount: float
    status: str
    payment_status: str
    special_requests: Optional[str] = None
    cancellation_reason: Optional[str] = None
    cancellation_fee: Optional[float] = None
    decline_reason: Optional[str] = None
    dispute_reason: Optional[str] = None
    admin_notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
