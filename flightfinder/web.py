"""FastAPI application serving the search page and the booking API."""
from __future__ import annotations

import logging
from io import BytesIO, StringIO
from pathlib import Path
from typing import Dict, Iterable, List, Literal, Optional, Sequence

import pandas as pd
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import HTMLResponse, StreamingResponse
from fastapi.templating import Jinja2Templates
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session, sessionmaker

from flight_booking.accounts import (
    AccountConflictError,
    AccountSnapshot,
    AuthenticationError,
    AuthService,
)
from flight_booking.dashboards import dashboard_for
from flight_booking.database import init_db, session_scope
from flight_booking.dataset import load_sample_data
from flight_booking.forms import (
    BillingAddress,
    MissingFieldError,
    PassengerDetails,
    PaymentDetails,
    SearchCriteria,
)
from flight_booking.models import Booking
from flight_booking.seating import SeatMap
from flight_booking.services import (
    add_flight,
    cancel_booking,
    create_booking,
    delete_flight,
    filter_by_airline,
    get_booking,
    get_flight,
    list_airlines,
    list_bookings,
    list_flights,
    list_user_bookings,
    quote_price,
    search_flights,
    sort_flights,
    update_flight,
)
from flight_booking.session_store import SessionStore

logger = logging.getLogger(__name__)

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))

SortKey = Literal["price", "duration", "departure"]
CabinClass = Literal["economy", "premium", "business", "first"]
TripType = Literal["oneWay", "roundTrip"]
ReportFormat = Literal["csv", "xlsx"]

MANAGER_ROLES = ("operator", "admin")


class LoginRequest(BaseModel):
    username: str
    password: str


class RegisterRequest(BaseModel):
    username: str = ""
    email: str = ""
    password: str = ""
    first_name: str = ""
    last_name: str = ""
    phone: str = ""
    date_of_birth: str = ""


class PassengerPayload(BaseModel):
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    date_of_birth: str = ""
    passport_number: Optional[str] = None


class BillingPayload(BaseModel):
    street: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""
    country: str = "United States"


class PaymentPayload(BaseModel):
    cardholder_name: str = ""
    card_number: str = ""
    expiry_date: str = ""
    cvv: str = ""
    billing_address: BillingPayload = Field(default_factory=BillingPayload)


class BookingRequest(BaseModel):
    flight_id: str
    passengers: int = 1
    seats: List[str]
    passenger: PassengerPayload
    payment: PaymentPayload


class FlightPayload(BaseModel):
    airline: Optional[str] = None
    flight_number: Optional[str] = None
    departure_airport: Optional[str] = None
    departure_city: Optional[str] = None
    departure_code: Optional[str] = None
    departure_time: Optional[str] = None
    departure_date: Optional[str] = None
    arrival_airport: Optional[str] = None
    arrival_city: Optional[str] = None
    arrival_code: Optional[str] = None
    arrival_time: Optional[str] = None
    arrival_date: Optional[str] = None
    duration: Optional[str] = None
    stops: Optional[int] = Field(None, ge=0)
    price: Optional[int] = Field(None, ge=0)
    aircraft: Optional[str] = None
    cabin_class: Optional[str] = None
    available_seats: Optional[int] = Field(None, ge=0)


def _jsonable(value: object) -> object:
    if hasattr(value, "as_dict"):
        return value.as_dict()
    if isinstance(value, dict):
        return {key: _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    return value


def _validation_error(exc: ValueError) -> HTTPException:
    if isinstance(exc, MissingFieldError):
        return HTTPException(status_code=422, detail={"missing": list(exc.fields)})
    return HTTPException(status_code=422, detail=str(exc))


def _as_dataframe(bookings: Iterable[Booking]) -> pd.DataFrame:
    data: List[Dict[str, object]] = []
    for booking in bookings:
        data.append(
            {
                "Booking": booking.id,
                "Reference": booking.reference,
                "User": booking.user_id,
                "Flight": booking.flight_id,
                "Date": booking.booking_date.isoformat(),
                "Status": booking.status,
                "Seats": ", ".join(booking.selected_seats),
                "Passengers": len(booking.passengers),
                "Total Amount": booking.total_amount,
                "Payment": booking.payment_status,
            }
        )
    return pd.DataFrame(data)


def _format_flights(flights: Iterable) -> List[Dict[str, object]]:
    formatted: List[Dict[str, object]] = []
    for flight in flights:
        formatted.append(
            {
                "id": flight.id,
                "airline": flight.airline,
                "flight_number": flight.flight_number,
                "route": f"{flight.departure_city} ({flight.departure_code}) -> "
                f"{flight.arrival_city} ({flight.arrival_code})",
                "schedule": f"{flight.departure_date} {flight.departure_time} - {flight.arrival_time}",
                "duration": flight.duration,
                "stops": "Nonstop" if flight.stops == 0 else f"{flight.stops} stop(s)",
                "price": f"${flight.price:,}",
                "seats": flight.available_seats,
            }
        )
    return formatted


def create_app(
    session_factory: Optional[sessionmaker[Session]] = None,
    session_store: Optional[SessionStore] = None,
) -> FastAPI:
    """Return an application bound to ``session_factory`` (a seeded in-memory store by default).

    The app serves a single user: one ``AuthService`` backed by
    ``session_store`` holds the login, so every client of the app acts as the
    last account that logged in, admin routes included. Logging out ends the
    session for all of them.
    """

    if session_factory is None:
        session_factory = init_db()
        load_sample_data(session_factory)
    auth = AuthService(session_store or SessionStore())
    logger.debug("Session storage at %s", auth.store.path)

    app = FastAPI(title="FlightFinder", description="Flight search and booking demo")
    app.state.session_factory = session_factory
    app.state.auth = auth

    def current_account(roles: Sequence[str] = ()) -> AccountSnapshot:
        account = auth.current_user
        if account is None:
            raise HTTPException(status_code=401, detail="User not authenticated")
        if roles and account.role not in roles:
            raise HTTPException(status_code=403, detail="Not allowed for this role")
        return account

    @app.get("/", response_class=HTMLResponse)
    async def index(
        request: Request,
        departure: str = Query("", description="Origin city or airport code"),
        destination: str = Query("", description="Destination city or airport code"),
        date: str = Query("", description="Departure date (YYYY-MM-DD)"),
        passengers: int = Query(1, ge=1),
        cabin_class: CabinClass = Query("business"),
        sort: SortKey = Query("price"),
        airline: str = Query(""),
    ) -> HTMLResponse:
        context = {
            "request": request,
            "departure": departure,
            "destination": destination,
            "date": date,
            "passengers": passengers,
            "cabin_class": cabin_class,
            "sort": sort,
            "airline": airline,
            "title": "Find Your Perfect Flight",
            "account": auth.current_user,
            "rows": None,
            "airlines": [],
            "error": None,
        }

        if departure or destination or date:
            try:
                criteria = SearchCriteria(
                    departure=departure,
                    destination=destination,
                    departure_date=date,
                    passengers=passengers,
                    cabin_class=cabin_class,
                )
            except MissingFieldError as exc:
                context["error"] = f"Please fill in: {', '.join(exc.fields)}."
            else:
                with session_scope(session_factory) as session:
                    flights = search_flights(session, criteria)
                    context["airlines"] = list_airlines(flights)
                    shown = filter_by_airline(sort_flights(flights, sort), airline)
                    context["rows"] = _format_flights(shown)
                context["title"] = "Available Flights"

        return templates.TemplateResponse(request, "index.html", context)

    @app.post("/api/auth/login")
    async def login(payload: LoginRequest) -> dict:
        with session_scope(session_factory) as session:
            try:
                account = auth.login(session, payload.username, payload.password)
            except AuthenticationError as exc:
                raise HTTPException(status_code=401, detail=str(exc)) from exc
        return {"user": account.as_dict()}

    @app.post("/api/auth/register", status_code=201)
    async def register(payload: RegisterRequest) -> dict:
        with session_scope(session_factory) as session:
            try:
                account = auth.register(session, **payload.model_dump())
            except AccountConflictError as exc:
                raise HTTPException(status_code=409, detail=str(exc)) from exc
            except ValueError as exc:
                raise _validation_error(exc) from exc
        return {"user": account.as_dict()}

    @app.post("/api/auth/logout")
    async def logout() -> dict:
        auth.logout()
        return {"user": None}

    @app.get("/api/auth/me")
    async def me() -> dict:
        return {"user": current_account().as_dict()}

    @app.get("/api/flights/search")
    async def search(
        departure: str = Query(""),
        destination: str = Query(""),
        date: str = Query(""),
        passengers: int = Query(1, ge=1),
        cabin_class: CabinClass = Query("business"),
        trip_type: TripType = Query("roundTrip"),
        return_date: Optional[str] = Query(None),
        sort: SortKey = Query("price"),
        airline: str = Query(""),
    ) -> dict:
        try:
            criteria = SearchCriteria(
                departure=departure,
                destination=destination,
                departure_date=date,
                passengers=passengers,
                cabin_class=cabin_class,
                trip_type=trip_type,
                return_date=return_date,
            )
        except ValueError as exc:
            raise _validation_error(exc) from exc
        with session_scope(session_factory) as session:
            flights = search_flights(session, criteria)
            shown = filter_by_airline(sort_flights(flights, sort), airline)
            return {
                "flights": _jsonable(shown),
                "airlines": list_airlines(flights),
            }

    @app.get("/api/flights")
    async def all_flights() -> dict:
        with session_scope(session_factory) as session:
            return {"flights": _jsonable(list_flights(session))}

    @app.get("/api/flights/{flight_id}")
    async def flight_detail(flight_id: str) -> dict:
        with session_scope(session_factory) as session:
            flight = get_flight(session, flight_id)
            if flight is None:
                raise HTTPException(status_code=404, detail="Flight not found")
            return flight.as_dict()

    @app.get("/api/flights/{flight_id}/seats")
    async def seat_map(flight_id: str, passengers: int = Query(1, ge=1)) -> dict:
        with session_scope(session_factory) as session:
            if get_flight(session, flight_id) is None:
                raise HTTPException(status_code=404, detail="Flight not found")
        return SeatMap(passengers).as_dict()

    @app.get("/api/flights/{flight_id}/quote")
    async def quote(flight_id: str, passengers: int = Query(1, ge=1)) -> dict:
        with session_scope(session_factory) as session:
            flight = get_flight(session, flight_id)
            if flight is None:
                raise HTTPException(status_code=404, detail="Flight not found")
            result = quote_price(flight.price, passengers)
        return {"fare": result.fare, "taxes": result.taxes, "total": result.total}

    @app.post("/api/flights", status_code=201)
    async def create_flight(payload: FlightPayload) -> dict:
        current_account(MANAGER_ROLES)
        with session_scope(session_factory) as session:
            try:
                flight = add_flight(session, **payload.model_dump(exclude_none=True))
            except ValueError as exc:
                raise _validation_error(exc) from exc
            return flight.as_dict()

    @app.patch("/api/flights/{flight_id}")
    async def edit_flight(flight_id: str, payload: FlightPayload) -> dict:
        current_account(MANAGER_ROLES)
        with session_scope(session_factory) as session:
            updates = {
                name: value
                for name, value in payload.model_dump(exclude_unset=True).items()
                if value is not None
            }
            flight = update_flight(session, flight_id, updates)
            if flight is None:
                raise HTTPException(status_code=404, detail="Flight not found")
            return flight.as_dict()

    @app.delete("/api/flights/{flight_id}")
    async def remove_flight(flight_id: str) -> dict:
        current_account(MANAGER_ROLES)
        with session_scope(session_factory) as session:
            if not delete_flight(session, flight_id):
                raise HTTPException(status_code=404, detail="Flight not found")
        return {"deleted": flight_id}

    @app.post("/api/bookings", status_code=201)
    async def book(payload: BookingRequest) -> dict:
        account = current_account()
        try:
            passenger = PassengerDetails(**payload.passenger.model_dump())
            payment = PaymentDetails(
                cardholder_name=payload.payment.cardholder_name,
                card_number=payload.payment.card_number,
                expiry_date=payload.payment.expiry_date,
                cvv=payload.payment.cvv,
                billing_address=BillingAddress(**payload.payment.billing_address.model_dump()),
            )
        except ValueError as exc:
            raise _validation_error(exc) from exc
        with session_scope(session_factory) as session:
            if get_flight(session, payload.flight_id) is None:
                raise HTTPException(status_code=404, detail="Flight not found")
            try:
                booking = create_booking(
                    session,
                    account_id=account.id,
                    flight_id=payload.flight_id,
                    passenger=passenger,
                    seats=payload.seats,
                    passengers=payload.passengers,
                    payment=payment,
                )
            except ValueError as exc:
                raise _validation_error(exc) from exc
            return booking.as_dict()

    @app.get("/api/bookings")
    async def my_bookings() -> dict:
        account = current_account()
        with session_scope(session_factory) as session:
            return {"bookings": _jsonable(list_user_bookings(session, account.id))}

    @app.get("/api/bookings/{booking_id}")
    async def booking_detail(booking_id: str) -> dict:
        account = current_account()
        with session_scope(session_factory) as session:
            booking = get_booking(session, booking_id)
            if booking is None or (account.role == "traveler" and booking.user_id != account.id):
                raise HTTPException(status_code=404, detail="Booking not found")
            return booking.as_dict()

    @app.post("/api/bookings/{booking_id}/cancel")
    async def cancel(booking_id: str) -> dict:
        dashboard = dashboard_for(current_account())
        with session_scope(session_factory) as session:
            booking = get_booking(session, booking_id)
            if booking is None:
                raise HTTPException(status_code=404, detail="Booking not found")
            if not dashboard.can_cancel(booking):
                raise HTTPException(status_code=403, detail="Not allowed to cancel this booking")
            cancel_booking(session, booking_id=booking_id)
            return booking.as_dict()

    @app.get("/api/dashboard")
    async def dashboard() -> dict:
        view = dashboard_for(current_account())
        with session_scope(session_factory) as session:
            data = _jsonable(view.build(session))
        data["can_manage_flights"] = view.can_manage_flights
        data["can_export_reports"] = view.can_export_reports
        return data

    @app.get("/api/reports/bookings.{file_format}")
    async def bookings_report(file_format: ReportFormat) -> StreamingResponse:
        view = dashboard_for(current_account())
        if not view.can_export_reports:
            raise HTTPException(status_code=403, detail="Not allowed for this role")
        with session_scope(session_factory) as session:
            dataframe = _as_dataframe(list_bookings(session))

        headers = {"Content-Disposition": f"attachment; filename=\"bookings.{file_format}\""}

        if file_format == "csv":
            buffer = StringIO()
            dataframe.to_csv(buffer, index=False)
            buffer.seek(0)
            return StreamingResponse(iter([buffer.getvalue()]), media_type="text/csv", headers=headers)

        buffer = BytesIO()
        with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
            dataframe.to_excel(writer, index=False, sheet_name="Bookings")
        buffer.seek(0)
        return StreamingResponse(
            buffer,
            media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            headers=headers,
        )

    return app


__all__ = ["create_app"]
