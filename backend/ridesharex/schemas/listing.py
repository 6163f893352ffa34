# ridesharex/schemas/listing.py
from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field, field_validator

from ridesharex.workflow.states import FuelType, Transmission, VehicleType


class HostInfo(BaseModel):
    id: int
    name: str
    phone: Optional[str] = None

    model_config = {"from_attributes": True}


class ListingBase(BaseModel):
    id: int
    host_id: int
    title: str
    description: Optional[str] = None
    make: str
    model: str
    year: int
    vehicle_type: str
    transmission: str
    fuel_type: str
    seats: int
    features: List[str]
    price_per_day: float
    location: str
    images: List[str]
    # exposed so hosts see draft/pending/approved/rejected/inactive
    status: str
    approval_status: str
    rejection_reason: Optional[str] = None
    approved_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ListingDetail(ListingBase):
    host: HostInfo


def _check_year(v: Optional[int]) -> Optional[int]:
    if v is None:
        return v
    max_year = datetime.now().year + 1
    if not 1900 <= v <= max_year:
        raise ValueError(f"year must be between 1900 and {max_year}")
    return v


class ListingCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str = ""
    make: str = Field(min_length=1, max_length=100)
    model: str = Field(min_length=1, max_length=100)
    year: int
    vehicle_type: VehicleType = VehicleType.CAR
    transmission: Transmission = Transmission.MANUAL
    fuel_type: FuelType = FuelType.PETROL
    seats: int = Field(default=5, ge=1)
    features: List[str] = []
    price_per_day: float = Field(ge=0)
    location: str = Field(min_length=1, max_length=255)
    images: List[str] = []
    # false keeps the listing as a draft
    submit: bool = True

    @field_validator("year")
    @classmethod
    def _year_in_range(cls, v):
        return _check_year(v)


class ListingUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    make: Optional[str] = None
    model: Optional[str] = None
    year: Optional[int] = None
    vehicle_type: Optional[VehicleType] = None
    transmission: Optional[Transmission] = None
    fuel_type: Optional[FuelType] = None
    seats: Optional[int] = Field(default=None, ge=1)
    features: Optional[List[str]] = None
    price_per_day: Optional[float] = Field(default=None, ge=0)
    location: Optional[str] = None
    images: Optional[List[str]] = None

    @field_validator("year")
    @classmethod
    def _year_in_range(cls, v):
        return _check_year(v)


class ListingsPage(BaseModel):
    items: list[ListingBase]
    total: int
    page: int
    per_page: int
