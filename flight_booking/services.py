"""Business logic for the flight booking store."""
from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Type

from sqlalchemy import select
from sqlalchemy.orm import Session

from .dataset import city_code
from .forms import MissingFieldError, PassengerDetails, PaymentDetails, SearchCriteria
from .models import Account, Base, Booking, Flight, Passenger, Payment
from .seating import SeatMap

logger = logging.getLogger(__name__)

TAX_RATE = Decimal("0.15")
OPERATOR_AIRLINES: Sequence[str] = ("American Airlines", "Delta Air Lines")
SORT_KEYS = ("price", "duration", "departure")

FLIGHT_FIELDS = (
    "airline",
    "flight_number",
    "departure_airport",
    "departure_city",
    "departure_code",
    "departure_time",
    "departure_date",
    "arrival_airport",
    "arrival_city",
    "arrival_code",
    "arrival_time",
    "arrival_date",
    "duration",
    "stops",
    "price",
    "aircraft",
    "cabin_class",
    "available_seats",
)
NON_NEGATIVE_FLIGHT_FIELDS = ("stops", "price", "available_seats")
REQUIRED_FLIGHT_FIELDS = (
    "airline",
    "flight_number",
    "departure_city",
    "departure_time",
    "departure_date",
    "arrival_city",
    "arrival_time",
    "arrival_date",
    "duration",
    "aircraft",
)


@dataclass(frozen=True)
class PriceQuote:
    fare: int
    taxes: int
    total: int


def quote_price(price: int, passengers: int) -> PriceQuote:
    """Fare for ``passengers`` seats plus the fixed tax markup, halves rounded up."""

    fare = price * passengers
    taxes = int((Decimal(fare) * TAX_RATE).quantize(Decimal(1), rounding=ROUND_HALF_UP))
    return PriceQuote(fare=fare, taxes=taxes, total=fare + taxes)


@dataclass
class PaymentResult:
    success: bool
    transaction_ref: str
    message: str = ""


def mock_payment_gateway(amount: int, payment: PaymentDetails) -> PaymentResult:
    """Mock payment integration; every charge is accepted."""

    return PaymentResult(success=True, transaction_ref=f"TXN-{payment.last_four}-{amount * 100}")


def _time_id(session: Session, model: Type[Base], prefix: str = "") -> str:
    stamp = int(time.time() * 1000)
    while session.get(model, f"{prefix}{stamp}") is not None:
        stamp += 1
    return f"{prefix}{stamp}"


# Catalog


def _matches(criteria: SearchCriteria, flight: Flight) -> bool:
    origin = criteria.departure.lower()
    destination = criteria.destination.lower()
    return (
        (origin in flight.departure_city.lower() or origin in flight.departure_code.lower())
        and (destination in flight.arrival_city.lower() or destination in flight.arrival_code.lower())
        and flight.cabin_class.lower() == criteria.cabin_class.lower()
        and flight.departure_date == criteria.departure_date
    )


def search_flights(session: Session, criteria: SearchCriteria) -> List[Flight]:
    """Return the flights matching ``criteria``, cheapest first."""

    flights = [flight for flight in list_flights(session) if _matches(criteria, flight)]
    return sort_flights(flights, "price")


def duration_minutes(duration: str) -> int:
    hours = re.search(r"(\d+)\s*h", duration)
    minutes = re.search(r"(\d+)\s*m", duration)
    return (int(hours.group(1)) * 60 if hours else 0) + (int(minutes.group(1)) if minutes else 0)


_SORTERS: Dict[str, Callable[[Flight], object]] = {
    "price": lambda flight: flight.price,
    "duration": lambda flight: duration_minutes(flight.duration),
    "departure": lambda flight: flight.departure_time,
}


def sort_flights(flights: Iterable[Flight], by: str = "price") -> List[Flight]:
    key = _SORTERS.get(by)
    if key is None:
        raise ValueError(f"Unsupported sort key '{by}'.")
    return sorted(flights, key=key)


def filter_by_airline(flights: Iterable[Flight], airline: str = "") -> List[Flight]:
    if not airline:
        return list(flights)
    return [flight for flight in flights if flight.airline == airline]


def list_airlines(flights: Iterable[Flight]) -> List[str]:
    return list(dict.fromkeys(flight.airline for flight in flights))


def list_flights(session: Session) -> List[Flight]:
    return list(session.scalars(select(Flight).order_by(Flight.id)))


def get_flight(session: Session, flight_id: str) -> Optional[Flight]:
    return session.get(Flight, flight_id)


def operator_flights(session: Session, airlines: Sequence[str] = OPERATOR_AIRLINES) -> List[Flight]:
    return [flight for flight in list_flights(session) if flight.airline in airlines]


# Flight administration


def _check_flight_fields(fields: Mapping[str, object], allowed: Iterable[str] = FLIGHT_FIELDS) -> None:
    unknown = set(fields) - set(allowed)
    if unknown:
        raise ValueError(f"unknown flight field(s): {', '.join(sorted(unknown))}")
    negative = sorted(
        name
        for name in NON_NEGATIVE_FLIGHT_FIELDS
        if isinstance(fields.get(name), (int, float)) and fields[name] < 0
    )
    if negative:
        raise ValueError(f"flight field(s) must not be negative: {', '.join(negative)}")


def add_flight(session: Session, **fields: object) -> Flight:
    """Create a flight; form fields must be present and counts non-negative."""

    _check_flight_fields(fields)
    values: Dict[str, object] = {"stops": 0, "price": 0, "cabin_class": "Business", "available_seats": 0}
    values.update({name: value for name, value in fields.items() if value is not None})
    for side in ("departure", "arrival"):
        city = values.get(f"{side}_city")
        if city and not values.get(f"{side}_airport"):
            values[f"{side}_airport"] = f"{city} International Airport"
        if city and not values.get(f"{side}_code"):
            values[f"{side}_code"] = city_code(str(city)) or ""
    missing = [
        name
        for name in REQUIRED_FLIGHT_FIELDS + ("departure_code", "arrival_code")
        if not str(values.get(name) or "").strip()
    ]
    if missing:
        raise MissingFieldError(missing)

    flight = Flight(id=_time_id(session, Flight, "NEW"), **values)
    session.add(flight)
    session.flush()
    logger.info("Added flight %s (%s)", flight.id, flight.flight_number)
    return flight


def update_flight(session: Session, flight_id: str, updates: Mapping[str, object]) -> Optional[Flight]:
    """Merge ``updates`` into the flight; ``None`` when the flight does not exist."""

    _check_flight_fields(updates, FLIGHT_FIELDS + ("id",))
    flight = session.get(Flight, flight_id)
    if flight is None:
        return None
    for name, value in updates.items():
        if name != "id":
            setattr(flight, name, value)
    session.flush()
    logger.info("Updated flight %s: %s", flight_id, ", ".join(sorted(updates)))
    return flight


def delete_flight(session: Session, flight_id: str) -> bool:
    """Remove a flight. Bookings that reference it are left untouched."""

    flight = session.get(Flight, flight_id)
    if flight is None:
        return False
    session.delete(flight)
    session.flush()
    logger.info("Deleted flight %s", flight_id)
    return True


# Bookings


def _persist_payment(session: Session, booking: Booking, amount: int, result: PaymentResult) -> Payment:
    payment = Payment(
        booking=booking,
        amount=amount,
        status="completed" if result.success else "failed",
        transaction_ref=result.transaction_ref,
    )
    session.add(payment)
    session.flush()
    return payment


def create_booking(
    session: Session,
    *,
    account_id: str,
    flight_id: str,
    passenger: PassengerDetails,
    seats: Sequence[str],
    passengers: int,
    payment: PaymentDetails,
    payment_fn: Callable[[int, PaymentDetails], PaymentResult] = mock_payment_gateway,
) -> Booking:
    """Charge the quoted total and record a confirmed booking."""

    account = session.get(Account, account_id)
    if account is None:
        raise ValueError("user not authenticated")
    flight = session.get(Flight, flight_id)
    if flight is None:
        raise ValueError("flight not found")
    chosen = SeatMap(passengers).select_all(seats)
    quote = quote_price(flight.price, passengers)

    payment_result = payment_fn(quote.total, payment)
    booking = Booking(
        id=_time_id(session, Booking, "BK"),
        user_id=account.id,
        flight_id=flight.id,
        status="confirmed" if payment_result.success else "pending",
        selected_seats=list(chosen),
        total_amount=quote.total,
        payment_status="completed" if payment_result.success else "failed",
        passengers=[
            Passenger(
                position=0,
                first_name=passenger.first_name,
                last_name=passenger.last_name,
                email=passenger.email,
                phone=passenger.phone,
                date_of_birth=passenger.date_of_birth,
                passport_number=passenger.passport_number,
            )
        ],
    )
    session.add(booking)
    session.flush()
    _persist_payment(session, booking, quote.total, payment_result)
    logger.info(
        "Booking %s %s for %s on %s seats=%s total=%s",
        booking.id,
        booking.status,
        account.username,
        flight.id,
        ",".join(chosen),
        quote.total,
    )
    return booking


def get_booking(session: Session, booking_id: str) -> Optional[Booking]:
    return session.get(Booking, booking_id)


def list_bookings(session: Session) -> List[Booking]:
    return list(session.scalars(select(Booking).order_by(Booking.booking_date, Booking.id)))


def list_user_bookings(session: Session, user_id: str) -> List[Booking]:
    return list(
        session.scalars(
            select(Booking).where(Booking.user_id == user_id).order_by(Booking.booking_date, Booking.id)
        )
    )


def cancel_booking(session: Session, *, booking_id: str) -> bool:
    """Flip the booking to cancelled; seats and revenue figures are not touched."""

    booking = session.get(Booking, booking_id)
    if booking is None:
        return False
    booking.status = "cancelled"
    session.flush()
    logger.info("Booking %s cancelled", booking_id)
    return True


def active_bookings(bookings: Iterable[Booking]) -> List[Booking]:
    return [booking for booking in bookings if booking.status == "confirmed"]


def total_revenue(bookings: Iterable[Booking]) -> int:
    return sum(booking.total_amount for booking in bookings)
