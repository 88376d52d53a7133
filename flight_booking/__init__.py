"""Flight booking domain: catalog, seats, bookings, accounts and dashboards."""
from .accounts import AccountConflictError, AccountSnapshot, AuthenticationError, AuthService
from .dashboards import dashboard_for
from .database import create_session_factory, init_db, session_scope
from .dataset import load_sample_data
from .flow import BookingFlow, FlowError, Step
from .forms import MissingFieldError, PassengerDetails, PaymentDetails, SearchCriteria
from .seating import SeatMap
from .services import (
    add_flight,
    cancel_booking,
    create_booking,
    delete_flight,
    quote_price,
    search_flights,
    update_flight,
)
from .session_store import SessionStore

__all__ = [
    "AccountConflictError",
    "AccountSnapshot",
    "AuthenticationError",
    "AuthService",
    "BookingFlow",
    "FlowError",
    "MissingFieldError",
    "PassengerDetails",
    "PaymentDetails",
    "SearchCriteria",
    "SeatMap",
    "SessionStore",
    "Step",
    "add_flight",
    "cancel_booking",
    "create_booking",
    "create_session_factory",
    "dashboard_for",
    "delete_flight",
    "init_db",
    "load_sample_data",
    "quote_price",
    "search_flights",
    "session_scope",
    "update_flight",
]
