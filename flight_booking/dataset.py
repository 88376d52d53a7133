"""Sample catalog, accounts and bookings used to seed the in-memory store."""
from __future__ import annotations

from datetime import date
from functools import lru_cache
from typing import Dict, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from .accounts import hash_password
from .models import Account, Booking, Flight, Passenger

CITIES: Sequence[Dict[str, str]] = (
    {"code": "NYC", "name": "New York City", "country": "USA"},
    {"code": "PAR", "name": "Paris", "country": "France"},
    {"code": "LON", "name": "London", "country": "UK"},
    {"code": "TOK", "name": "Tokyo", "country": "Japan"},
    {"code": "SYD", "name": "Sydney", "country": "Australia"},
    {"code": "DXB", "name": "Dubai", "country": "UAE"},
    {"code": "LAX", "name": "Los Angeles", "country": "USA"},
    {"code": "BER", "name": "Berlin", "country": "Germany"},
    {"code": "ROM", "name": "Rome", "country": "Italy"},
    {"code": "BCN", "name": "Barcelona", "country": "Spain"},
)
AIRLINES: Sequence[str] = (
    "American Airlines",
    "British Airways",
    "Delta Air Lines",
    "Lufthansa",
    "Emirates",
    "Qatar Airways",
    "Singapore Airlines",
    "Air France",
    "KLM",
    "United Airlines",
)

JFK = ("John F. Kennedy International Airport", "New York", "JFK")
EWR = ("Newark Liberty International Airport", "New York", "EWR")
CDG = ("Charles de Gaulle Airport", "Paris", "CDG")
LHR = ("Heathrow Airport", "London", "LHR")
FRA = ("Frankfurt Airport", "Frankfurt", "FRA")

# (id, airline, number, departure, dep time, dep date, arrival, arr time, arr date,
#  duration, price, aircraft, seats)
SAMPLE_FLIGHTS = (
    ("AA101", "American Airlines", "AA 101", JFK, "08:30", "2024-04-10", CDG, "21:45", "2024-04-10",
     "7h 15m", 2450, "Boeing 777-300ER", 12),
    ("BA207", "British Airways", "BA 207", JFK, "10:15", "2024-04-10", LHR, "21:30", "2024-04-10",
     "6h 45m", 1899, "Airbus A350-1000", 8),
    ("DL456", "Delta Air Lines", "DL 456", JFK, "14:20", "2024-04-10", CDG, "03:45", "2024-04-11",
     "7h 25m", 2199, "Airbus A330-900", 15),
    ("LH440", "Lufthansa", "LH 440", EWR, "16:45", "2024-04-10", FRA, "06:30", "2024-04-11",
     "7h 45m", 2650, "Boeing 747-8", 6),
)

SAMPLE_ACCOUNTS = (
    # id, username, email, first, last, role, phone, birth date, joined, password
    ("1", "john.doe", "john.doe@email.com", "John", "Doe", "traveler", "+1-555-0123", "1985-06-15",
     date(2024, 1, 15), "password123"),
    ("2", "admin", "admin@flightfinder.com", "Admin", "User", "admin", "+1-555-0001", "1980-01-01",
     date(2024, 1, 1), "admin123"),
    ("3", "operator", "operator@airline.com", "Flight", "Operator", "operator", "+1-555-0002",
     "1982-03-20", date(2024, 1, 10), "operator123"),
)


def city_code(name: str) -> Optional[str]:
    for city in CITIES:
        if city["name"].lower() == name.lower():
            return city["code"]
    return None


@lru_cache(maxsize=None)
def _sample_password_hash(password: str) -> str:
    return hash_password(password)


def _sample_flights() -> List[Flight]:
    flights = []
    for (flight_id, airline, number, dep, dep_time, dep_date, arr, arr_time, arr_date,
         duration, price, aircraft, seats) in SAMPLE_FLIGHTS:
        flights.append(
            Flight(
                id=flight_id,
                airline=airline,
                flight_number=number,
                departure_airport=dep[0],
                departure_city=dep[1],
                departure_code=dep[2],
                departure_time=dep_time,
                departure_date=dep_date,
                arrival_airport=arr[0],
                arrival_city=arr[1],
                arrival_code=arr[2],
                arrival_time=arr_time,
                arrival_date=arr_date,
                duration=duration,
                stops=0,
                price=price,
                aircraft=aircraft,
                cabin_class="Business",
                available_seats=seats,
            )
        )
    return flights


def _sample_accounts() -> List[Account]:
    return [
        Account(
            id=account_id,
            username=username,
            email=email,
            first_name=first,
            last_name=last,
            role=role,
            phone=phone,
            date_of_birth=born,
            created_at=joined,
            password_hash=_sample_password_hash(password),
        )
        for account_id, username, email, first, last, role, phone, born, joined, password in SAMPLE_ACCOUNTS
    ]


def _sample_bookings() -> List[Booking]:
    return [
        Booking(
            id="BK001",
            user_id="1",
            flight_id="AA101",
            booking_date=date(2024, 3, 15),
            status="confirmed",
            selected_seats=["1A"],
            total_amount=2450,
            payment_status="completed",
            passengers=[
                Passenger(
                    position=0,
                    first_name="John",
                    last_name="Doe",
                    email="john.doe@email.com",
                    phone="+1-555-0123",
                    date_of_birth="1985-06-15",
                )
            ],
        )
    ]


def seed_sample_data(session: Session) -> Dict[str, int]:
    """Add the sample rows to ``session`` unless the catalog already holds flights."""

    if session.scalars(select(Flight).limit(1)).first() is not None:
        return {"flights": 0, "accounts": 0, "bookings": 0}
    flights = _sample_flights()
    accounts = _sample_accounts()
    bookings = _sample_bookings()
    session.add_all([*flights, *accounts, *bookings])
    session.flush()
    return {"flights": len(flights), "accounts": len(accounts), "bookings": len(bookings)}


def load_sample_data(session_factory: sessionmaker[Session]) -> Dict[str, int]:
    """Populate the store behind ``session_factory`` with the sample dataset."""

    with session_factory() as session:
        summary = seed_sample_data(session)
        session.commit()
    return summary
