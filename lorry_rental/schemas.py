from pydantic import BaseModel, Field, validator
from pydantic.alias_generators import to_camel
from datetime import datetime, timezone
from typing import Dict, Literal, Optional


class CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


# Auth

class LoginRequest(CamelModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class UserOut(CamelModel):
    id: int
    username: str
    role: str


class LoginResponse(CamelModel):
    message: str
    token: str
    user: UserOut


# Vehicles

class VehicleBase(CamelModel):
    name: str = Field(..., min_length=1)
    image: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    price_day: float = Field(..., gt=0, allow_inf_nan=False)
    price_hour: float = Field(..., gt=0, allow_inf_nan=False)
    available: bool = True


class VehicleCreate(VehicleBase):
    pass


class VehicleUpdate(CamelModel):
    image: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = Field(None, min_length=1)
    price_day: Optional[float] = Field(None, gt=0, allow_inf_nan=False)
    price_hour: Optional[float] = Field(None, gt=0, allow_inf_nan=False)
    available: Optional[bool] = None


class Vehicle(VehicleBase):
    id: int
    created_at: datetime


class VehicleResult(CamelModel):
    message: str
    vehicle: Vehicle


# Bookings

class BookingBase(CamelModel):
    customer_name: str = Field(..., min_length=1)
    contact: str = Field(..., min_length=1)
    date: datetime
    location: str = Field(..., min_length=1)
    vehicle: str = Field(..., min_length=1)
    rental_type: Literal["hourly", "daily"]
    duration: float = Field(..., gt=0, allow_inf_nan=False)
    payment_method: str = Field(..., min_length=1)

    @validator("date", pre=True)
    def accept_plain_date(cls, v):
        # "2025-01-15" from a date picker means midnight of that day
        if isinstance(v, str) and len(v) == 10:
            return f"{v}T00:00:00"
        return v

    @validator("date")
    def ensure_naive_datetime(cls, v):
        if v.tzinfo is not None:
            v = v.astimezone(timezone.utc).replace(tzinfo=None)
        return v


class BookingCreate(BookingBase):
    pass


class Booking(BookingBase):
    id: int
    booking_id: str
    customer_id: int
    cost: float
    status: str
    timestamp: datetime


class BookingResult(CamelModel):
    message: str
    booking: Booking


class BookingStatusUpdate(CamelModel):
    status: str


class QuoteRequest(CamelModel):
    vehicle: str = Field(..., min_length=1)
    rental_type: Literal["hourly", "daily"]
    duration: float = Field(..., gt=0, allow_inf_nan=False)


class Quote(CamelModel):
    vehicle: str
    rental_type: str
    duration: float
    base: float
    tax: float
    maintenance_fee: float
    total: float


# Settings

class AgencySettings(CamelModel):
    tax_percentage: float = Field(..., ge=0, allow_inf_nan=False)
    maintenance_fee: float = Field(..., ge=0, allow_inf_nan=False)
    agency_name: str = Field(..., min_length=1)
    contact_number: str = Field(..., min_length=1)
    address: str = Field(..., min_length=1)


class SettingsResult(CamelModel):
    message: str
    settings: AgencySettings


class PaymentMethodUpdate(CamelModel):
    upi_id: str = Field(..., min_length=1)
    custom_qr: Optional[str] = None


class PaymentSettingsUpdate(CamelModel):
    gpay: PaymentMethodUpdate
    paytm: PaymentMethodUpdate
    phonepe: PaymentMethodUpdate


class PaymentMethod(CamelModel):
    upi_id: str
    qr_code: str
    custom_qr: Optional[str] = None


PaymentSettings = Dict[str, PaymentMethod]


class AdminStats(CamelModel):
    total_bookings: int
    pending_bookings: int
    confirmed_bookings: int
    total_revenue: float
