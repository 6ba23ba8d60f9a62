from datetime import datetime, timezone

from sqlalchemy import (
    Column, Integer, String, Float, DateTime, ForeignKey, Index, CheckConstraint
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()

def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)

class User(Base):
    __tablename__ = "Users"
    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password = Column(String(255), nullable=False)  # bcrypt hash
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    phone_number = Column(String(50), nullable=False)

    reservations = relationship("Reservation", back_populates="user", cascade="all, delete-orphan")

class Property(Base):
    __tablename__ = "Properties"
    __table_args__ = (
        CheckConstraint("price > 0", name="ck_properties_price_positive"),
        CheckConstraint("capacity > 0", name="ck_properties_capacity_positive"),
    )
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    address = Column(String(255), nullable=False)
    city = Column(String(100), nullable=False)
    price = Column(Float, nullable=False)
    capacity = Column(Integer, nullable=False, index=True)

    reservations = relationship("Reservation", back_populates="property", cascade="all, delete-orphan")

class Reservation(Base):
    __tablename__ = "Reservations"
    __table_args__ = (
        CheckConstraint("departure_time > arrival_time", name="ck_reservations_range"),
    )
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("Users.id"), nullable=False, index=True)
    property_id = Column(Integer, ForeignKey("Properties.id"), nullable=False)
    arrival_time = Column(DateTime, nullable=False)  # naive UTC
    departure_time = Column(DateTime, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    user = relationship("User", back_populates="reservations")
    property = relationship("Property", back_populates="reservations")

# overlap lookups filter on property first, then the interval bounds
Index("ix_reservations_property_interval", Reservation.property_id, Reservation.arrival_time, Reservation.departure_time)
