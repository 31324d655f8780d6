from sqlalchemy import Column, Integer, String, Boolean, Float, DateTime, ForeignKey
from datetime import datetime

from .database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    role = Column(String, default="customer", nullable=False)  # customer, admin
    created_at = Column(DateTime, default=datetime.utcnow)


class Vehicle(Base):
    __tablename__ = "vehicles"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, index=True, nullable=False)
    image = Column(String, nullable=False)
    description = Column(String, nullable=False)
    price_day = Column(Float, nullable=False)
    price_hour = Column(Float, nullable=False)
    available = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(String, unique=True, index=True, nullable=False)
    customer_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    customer_name = Column(String, nullable=False)
    contact = Column(String, nullable=False)
    date = Column(DateTime, nullable=False)
    location = Column(String, nullable=False)
    # vehicles.name, not vehicles.id
    vehicle = Column(String, index=True, nullable=False)
    rental_type = Column(String, nullable=False)  # hourly, daily
    duration = Column(Float, nullable=False)
    cost = Column(Float, nullable=False)
    payment_method = Column(String, nullable=False)
    status = Column(String, default="pending", index=True)  # pending, confirmed, cancelled
    timestamp = Column(DateTime, default=datetime.utcnow)


class AgencySettings(Base):
    __tablename__ = "settings"

    id = Column(Integer, primary_key=True)
    tax_percentage = Column(Float, default=10)
    maintenance_fee = Column(Float, default=500)
    agency_name = Column(String, default="Lorry Rental Agency")
    contact_number = Column(String, default="+91 98765 43210")
    address = Column(String, default="Lorry Rentals, Pollachi, Coimbatore")


class PaymentSetting(Base):
    __tablename__ = "payment_settings"

    id = Column(Integer, primary_key=True)
    method = Column(String, unique=True, nullable=False)  # gpay, paytm, phonepe
    upi_id = Column(String, nullable=False)
    qr_code = Column(String, nullable=False)
    custom_qr = Column(String, nullable=True)
