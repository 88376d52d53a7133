"""Role dashboards: one read view per account role, chosen by ``dashboard_for``."""
from __future__ import annotations

from typing import Dict, Sequence, Type

from sqlalchemy.orm import Session

from .accounts import AccountSnapshot, list_accounts
from .models import Booking, Flight
from .services import (
    OPERATOR_AIRLINES,
    active_bookings,
    get_flight,
    list_bookings,
    list_flights,
    list_user_bookings,
    operator_flights,
    total_revenue,
)

RECENT_BOOKINGS_LIMIT = 10


class Dashboard:
    """Base dashboard. Subclasses build the view for one role."""

    role: str = ""
    can_manage_flights: bool = False
    can_export_reports: bool = False

    def __init__(self, account: AccountSnapshot) -> None:
        self.account = account

    def build(self, session: Session) -> Dict[str, object]:
        raise NotImplementedError

    def can_cancel(self, booking: Booking) -> bool:
        return False


class TravelerDashboard(Dashboard):
    role = "traveler"

    def build(self, session: Session) -> Dict[str, object]:
        bookings = list_user_bookings(session, self.account.id)
        flights: Dict[str, Flight] = {}
        for booking in bookings:
            flight = get_flight(session, booking.flight_id)
            if flight is not None:
                flights[booking.flight_id] = flight
        return {
            "role": self.role,
            "account": self.account.as_dict(),
            "bookings": bookings,
            "flights": flights,
            "upcoming": [booking for booking in bookings if booking.status == "confirmed"],
            "past": [booking for booking in bookings if booking.status != "confirmed"],
        }

    def can_cancel(self, booking: Booking) -> bool:
        return booking.user_id == self.account.id


class OperatorDashboard(Dashboard):
    role = "operator"
    can_manage_flights = True
    airlines: Sequence[str] = OPERATOR_AIRLINES

    def build(self, session: Session) -> Dict[str, object]:
        flights = operator_flights(session, self.airlines)
        flight_ids = {flight.id for flight in flights}
        bookings = [booking for booking in list_bookings(session) if booking.flight_id in flight_ids]
        confirmed = active_bookings(bookings)
        return {
            "role": self.role,
            "account": self.account.as_dict(),
            "flights": flights,
            "bookings": bookings,
            "total_revenue": total_revenue(bookings),
            "active_bookings": len(confirmed),
            "flight_revenue": {
                flight.id: total_revenue(b for b in confirmed if b.flight_id == flight.id)
                for flight in flights
            },
            "recent_bookings": bookings[::-1][:RECENT_BOOKINGS_LIMIT],
        }


class AdminDashboard(Dashboard):
    role = "admin"
    can_manage_flights = True
    can_export_reports = True

    def build(self, session: Session) -> Dict[str, object]:
        flights = list_flights(session)
        bookings = list_bookings(session)
        accounts = list_accounts(session)
        booking_counts: Dict[str, int] = {account.id: 0 for account in accounts}
        for booking in bookings:
            if booking.user_id in booking_counts:
                booking_counts[booking.user_id] += 1
        return {
            "role": self.role,
            "account": self.account.as_dict(),
            "flights": flights,
            "bookings": bookings,
            "accounts": accounts,
            "booking_counts": booking_counts,
            "total_flights": len(flights),
            "total_bookings": len(bookings),
            "total_users": len(accounts),
            "total_revenue": total_revenue(bookings),
            "active_bookings": len(active_bookings(bookings)),
        }

    def can_cancel(self, booking: Booking) -> bool:
        return True


_DASHBOARDS: Dict[str, Type[Dashboard]] = {
    cls.role: cls for cls in (TravelerDashboard, OperatorDashboard, AdminDashboard)
}


def dashboard_for(account: AccountSnapshot) -> Dashboard:
    """Return the dashboard matching the account's role."""

    dashboard_cls = _DASHBOARDS.get(account.role)
    if dashboard_cls is None:
        raise ValueError(f"Unsupported role '{account.role}'.")
    return dashboard_cls(account)
