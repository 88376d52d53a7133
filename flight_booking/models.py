"""SQLAlchemy models for the flight booking store."""
from __future__ import annotations

from datetime import date
from typing import Dict, List, Optional

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Date,
    Enum,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

ROLES = ("traveler", "operator", "admin")
BOOKING_STATUSES = ("confirmed", "cancelled", "pending")
PAYMENT_STATUSES = ("pending", "completed", "failed")


class Base(DeclarativeBase):
    pass


class Flight(Base):
    __tablename__ = "flights"
    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_price_non_negative"),
        CheckConstraint("available_seats >= 0", name="ck_available_non_negative"),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    airline: Mapped[str] = mapped_column(String(60), nullable=False)
    flight_number: Mapped[str] = mapped_column(String(12), nullable=False)
    departure_airport: Mapped[str] = mapped_column(String(120), nullable=False)
    departure_city: Mapped[str] = mapped_column(String(60), nullable=False)
    departure_code: Mapped[str] = mapped_column(String(3), nullable=False)
    departure_time: Mapped[str] = mapped_column(String(5), nullable=False)
    departure_date: Mapped[str] = mapped_column(String(10), nullable=False)
    arrival_airport: Mapped[str] = mapped_column(String(120), nullable=False)
    arrival_city: Mapped[str] = mapped_column(String(60), nullable=False)
    arrival_code: Mapped[str] = mapped_column(String(3), nullable=False)
    arrival_time: Mapped[str] = mapped_column(String(5), nullable=False)
    arrival_date: Mapped[str] = mapped_column(String(10), nullable=False)
    duration: Mapped[str] = mapped_column(String(12), nullable=False)
    stops: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    price: Mapped[int] = mapped_column(Integer, nullable=False)
    aircraft: Mapped[str] = mapped_column(String(40), nullable=False)
    cabin_class: Mapped[str] = mapped_column(String(20), nullable=False)
    available_seats: Mapped[int] = mapped_column(Integer, nullable=False)

    def as_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "airline": self.airline,
            "flight_number": self.flight_number,
            "departure": {
                "airport": self.departure_airport,
                "city": self.departure_city,
                "code": self.departure_code,
                "time": self.departure_time,
                "date": self.departure_date,
            },
            "arrival": {
                "airport": self.arrival_airport,
                "city": self.arrival_city,
                "code": self.arrival_code,
                "time": self.arrival_time,
                "date": self.arrival_date,
            },
            "duration": self.duration,
            "stops": self.stops,
            "price": self.price,
            "aircraft": self.aircraft,
            "cabin_class": self.cabin_class,
            "available_seats": self.available_seats,
        }


class Account(Base):
    __tablename__ = "accounts"
    __table_args__ = (
        UniqueConstraint("username", name="uq_account_username"),
        UniqueConstraint("email", name="uq_account_email"),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    username: Mapped[str] = mapped_column(String(50), nullable=False)
    email: Mapped[str] = mapped_column(String(120), nullable=False)
    first_name: Mapped[str] = mapped_column(String(50), nullable=False)
    last_name: Mapped[str] = mapped_column(String(50), nullable=False)
    role: Mapped[str] = mapped_column(Enum(*ROLES, name="account_role"), default="traveler", nullable=False)
    phone: Mapped[str] = mapped_column(String(20), nullable=False)
    date_of_birth: Mapped[str] = mapped_column(String(10), nullable=False)
    created_at: Mapped[date] = mapped_column(Date, default=date.today, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(60), nullable=False)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def as_dict(self) -> Dict[str, object]:
        """Serializable view of the account, without the credential."""

        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "role": self.role,
            "phone": self.phone,
            "date_of_birth": self.date_of_birth,
            "created_at": self.created_at.isoformat(),
        }


class Booking(Base):
    __tablename__ = "bookings"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    # Plain ids: bookings outlive the flights and accounts they point at.
    user_id: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    flight_id: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    booking_date: Mapped[date] = mapped_column(Date, default=date.today, nullable=False)
    status: Mapped[str] = mapped_column(
        Enum(*BOOKING_STATUSES, name="booking_status"), default="pending", nullable=False
    )
    selected_seats: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    total_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    payment_status: Mapped[str] = mapped_column(
        Enum(*PAYMENT_STATUSES, name="payment_status"), default="pending", nullable=False
    )

    passengers: Mapped[List["Passenger"]] = relationship(
        back_populates="booking",
        cascade="all, delete-orphan",
        order_by="Passenger.position",
        lazy="selectin",
    )
    payment: Mapped[Optional["Payment"]] = relationship(
        back_populates="booking", uselist=False, cascade="all, delete-orphan", lazy="selectin"
    )

    @property
    def reference(self) -> str:
        digits = "".join(ch for ch in self.id if ch.isdigit())
        return f"FF{digits[-6:]}"

    def as_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "reference": self.reference,
            "user_id": self.user_id,
            "flight_id": self.flight_id,
            "booking_date": self.booking_date.isoformat(),
            "status": self.status,
            "passengers": [passenger.as_dict() for passenger in self.passengers],
            "selected_seats": list(self.selected_seats),
            "total_amount": self.total_amount,
            "payment_status": self.payment_status,
        }


class Passenger(Base):
    __tablename__ = "booking_passengers"

    id: Mapped[int] = mapped_column(primary_key=True)
    booking_id: Mapped[str] = mapped_column(ForeignKey("bookings.id", ondelete="CASCADE"))
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    first_name: Mapped[str] = mapped_column(String(50), nullable=False)
    last_name: Mapped[str] = mapped_column(String(50), nullable=False)
    email: Mapped[str] = mapped_column(String(120), nullable=False)
    phone: Mapped[str] = mapped_column(String(20), nullable=False)
    date_of_birth: Mapped[str] = mapped_column(String(10), nullable=False)
    passport_number: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    booking: Mapped[Booking] = relationship(back_populates="passengers")

    def as_dict(self) -> Dict[str, object]:
        data: Dict[str, object] = {
            "first_name": self.first_name,
            "last_name": self.last_name,
            "email": self.email,
            "phone": self.phone,
            "date_of_birth": self.date_of_birth,
        }
        if self.passport_number:
            data["passport_number"] = self.passport_number
        return data


class Payment(Base):
    __tablename__ = "payments"

    id: Mapped[int] = mapped_column(primary_key=True)
    booking_id: Mapped[str] = mapped_column(ForeignKey("bookings.id", ondelete="CASCADE"))
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(
        Enum(*PAYMENT_STATUSES, name="payment_record_status"), default="pending", nullable=False
    )
    transaction_ref: Mapped[str] = mapped_column(String(40), nullable=False)

    booking: Mapped[Booking] = relationship(back_populates="payment")
