"""Command line interface for searching, booking and dashboards."""
from __future__ import annotations

import argparse
import getpass
import logging
import os
import sys
from pathlib import Path
from typing import Callable, Iterable

from sqlalchemy.orm import Session, sessionmaker
from tabulate import tabulate

from flight_booking.accounts import AccountSnapshot, AuthService
from flight_booking.dashboards import dashboard_for
from flight_booking.database import DEFAULT_DB_URL, init_db, session_scope
from flight_booking.dataset import load_sample_data
from flight_booking.flow import BookingFlow
from flight_booking.forms import (
    CABIN_CLASSES,
    BillingAddress,
    PassengerDetails,
    PaymentDetails,
    SearchCriteria,
)
from flight_booking.models import Booking, Flight
from flight_booking.seating import SeatMap
from flight_booking.services import (
    SORT_KEYS,
    cancel_booking,
    filter_by_airline,
    get_booking,
    get_flight,
    search_flights,
    sort_flights,
)
from flight_booking.session_store import SessionStore

logger = logging.getLogger(__name__)

_LOG_LEVEL = os.environ.get("FLIGHTFINDER_LOG_LEVEL", "WARNING")


def _render_flights(flights: Iterable[Flight]) -> str:
    rows = [
        [
            flight.id,
            f"{flight.airline} {flight.flight_number}",
            f"{flight.departure_code} {flight.departure_time} -> {flight.arrival_code} {flight.arrival_time}",
            flight.departure_date,
            flight.duration,
            "Nonstop" if flight.stops == 0 else flight.stops,
            flight.available_seats,
            f"${flight.price:,}",
        ]
        for flight in flights
    ]
    headers = ["ID", "Flight", "Route", "Date", "Duration", "Stops", "Seats", "Price"]
    return tabulate(rows, headers=headers, tablefmt="github")


def _render_bookings(bookings: Iterable[Booking]) -> str:
    rows = [
        [
            booking.id,
            booking.reference,
            booking.flight_id,
            booking.booking_date.isoformat(),
            booking.status,
            ", ".join(booking.selected_seats),
            f"${booking.total_amount:,}",
        ]
        for booking in bookings
    ]
    headers = ["Booking", "Reference", "Flight", "Booked", "Status", "Seats", "Total"]
    return tabulate(rows, headers=headers, tablefmt="github")


def _render_seat_map(seat_map: SeatMap) -> str:
    rows = []
    for row in seat_map.grid():
        cells = []
        for seat in row:
            if seat.is_occupied:
                cells.append("xx")
            elif seat.is_selected:
                cells.append(f"*{seat.letter}")
            else:
                cells.append(f" {seat.letter}")
        half = len(cells) // 2
        rows.append([row[0].row, *cells[:half], "|", *cells[half:]])
    return tabulate(rows, tablefmt="plain")


def _open_store(args: argparse.Namespace) -> sessionmaker[Session]:
    session_factory = init_db(args.db_url)
    load_sample_data(session_factory)
    return session_factory


def _auth(args: argparse.Namespace) -> AuthService:
    return AuthService(SessionStore(Path(args.home)) if args.home else SessionStore())


def _require_login(auth: AuthService) -> AccountSnapshot:
    account = auth.current_user
    if account is None:
        raise RuntimeError("Not logged in. Run 'flightfinder login <username>' first.")
    return account


def _criteria(args: argparse.Namespace) -> SearchCriteria:
    return SearchCriteria(
        departure=args.departure,
        destination=args.destination,
        departure_date=args.date,
        passengers=args.passengers,
        cabin_class=args.cabin_class,
        trip_type="roundTrip" if args.return_date else "oneWay",
        return_date=args.return_date,
    )


def cmd_search(args: argparse.Namespace) -> int:
    criteria = _criteria(args)
    with session_scope(_open_store(args)) as session:
        flights = filter_by_airline(sort_flights(search_flights(session, criteria), args.sort), args.airline)
        if not flights:
            print("No flights found.")
            return 0
        print(f"{len(flights)} flight{'s' if len(flights) > 1 else ''} found")
        print(_render_flights(flights))
    return 0


def cmd_seats(args: argparse.Namespace) -> int:
    with session_scope(_open_store(args)) as session:
        flight = get_flight(session, args.flight_id)
        if flight is None:
            raise KeyError(f"Unknown flight '{args.flight_id}'.")
        print(f"{flight.airline} {flight.flight_number} {flight.departure_city} -> {flight.arrival_city}")
    seat_map = SeatMap(args.passengers)
    for seat_id in args.select or ():
        seat_map.toggle(seat_id)
    print(_render_seat_map(seat_map))
    print(f"Selected: {len(seat_map.selected)} of {seat_map.passengers}")
    return 0


def cmd_login(args: argparse.Namespace) -> int:
    password = args.password if args.password is not None else getpass.getpass("Password: ")
    auth = _auth(args)
    with session_scope(_open_store(args)) as session:
        account = auth.login(session, args.username, password)
    print(f"Logged in as {account.full_name} ({account.role})")
    return 0


def cmd_logout(args: argparse.Namespace) -> int:
    _auth(args).logout()
    print("Logged out")
    return 0


def cmd_whoami(args: argparse.Namespace) -> int:
    account = _require_login(_auth(args))
    print(f"{account.username}: {account.full_name} <{account.email}> ({account.role})")
    return 0


def cmd_register(args: argparse.Namespace) -> int:
    auth = _auth(args)
    with session_scope(_open_store(args)) as session:
        account = auth.register(
            session,
            username=args.username,
            email=args.email,
            password=args.password,
            first_name=args.first_name,
            last_name=args.last_name,
            phone=args.phone,
            date_of_birth=args.dob,
        )
    print(f"Registered and logged in as {account.username}")
    return 0


def cmd_book(args: argparse.Namespace) -> int:
    auth = _auth(args)
    _require_login(auth)
    passenger = PassengerDetails(
        first_name=args.first_name,
        last_name=args.last_name,
        email=args.email,
        phone=args.phone,
        date_of_birth=args.dob,
        passport_number=args.passport,
    )
    payment = PaymentDetails(
        cardholder_name=args.cardholder or passenger.full_name,
        card_number=args.card_number,
        expiry_date=args.expiry,
        cvv=args.cvv,
        billing_address=BillingAddress(
            street=args.street, city=args.city, state=args.state, zip_code=args.zip_code, country=args.country
        ),
    )
    with session_scope(_open_store(args)) as session:
        flow = BookingFlow(session, auth)
        flow.search(_criteria(args))
        flow.select_flight(args.flight)
        for seat_id in args.seat:
            flow.toggle_seat(seat_id)
        flow.confirm_seats()
        quote = flow.submit_details(passenger)
        print(f"Fare ${quote.fare:,} + taxes ${quote.taxes:,} = ${quote.total:,}")
        booking = flow.pay(payment)
        print(f"{flow.title}: {booking.reference} ({booking.id})")
        print(_render_bookings([booking]))
    return 0


def cmd_cancel(args: argparse.Namespace) -> int:
    dashboard = dashboard_for(_require_login(_auth(args)))
    with session_scope(_open_store(args)) as session:
        booking = get_booking(session, args.booking_id)
        if booking is None:
            raise KeyError(f"Unknown booking '{args.booking_id}'.")
        if not dashboard.can_cancel(booking):
            raise PermissionError("You cannot cancel this booking.")
        cancel_booking(session, booking_id=args.booking_id)
    print(f"Booking {args.booking_id} cancelled")
    return 0


def cmd_dashboard(args: argparse.Namespace) -> int:
    account = _require_login(_auth(args))
    view = dashboard_for(account)
    with session_scope(_open_store(args)) as session:
        data = view.build(session)
        print(f"{account.role.capitalize()} dashboard for {account.full_name}")
        if view.role == "traveler":
            print(f"Upcoming trips: {len(data['upcoming'])}  Past trips: {len(data['past'])}")
            print(_render_bookings(data["bookings"]))
            return 0
        print(
            f"Flights: {len(data['flights'])}  Bookings: {len(data['bookings'])}  "
            f"Active: {data['active_bookings']}  Revenue: ${data['total_revenue']:,}"
        )
        print(_render_flights(data["flights"]))
        if view.role == "admin":
            counts = data["booking_counts"]
            print(
                tabulate(
                    [[a.username, a.email, a.role, a.created_at.isoformat(), counts[a.id]] for a in data["accounts"]],
                    headers=["User", "Email", "Role", "Joined", "Bookings"],
                    tablefmt="github",
                )
            )
        print(_render_bookings(data.get("recent_bookings", data["bookings"])))
    return 0


def _add_search_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--from", dest="departure", required=True, help="Origin city or airport code.")
    parser.add_argument("--to", dest="destination", required=True, help="Destination city or airport code.")
    parser.add_argument("--date", required=True, help="Departure date (YYYY-MM-DD).")
    parser.add_argument("--return-date", default=None, help="Return date for round trips.")
    parser.add_argument("--passengers", type=int, default=1, help="Number of passengers (default: 1).")
    parser.add_argument(
        "--class",
        dest="cabin_class",
        choices=CABIN_CLASSES,
        default="business",
        help="Cabin class (default: business).",
    )


def parse_args(argv: Iterable[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Search and book flights from the FlightFinder catalog.")
    parser.add_argument("--db-url", default=DEFAULT_DB_URL, help="SQLAlchemy URL of the store.")
    parser.add_argument("--home", default=None, help="Directory holding the saved login session.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug output.")
    commands = parser.add_subparsers(dest="command", required=True)

    search = commands.add_parser("search", help="Search the flight catalog.")
    _add_search_arguments(search)
    search.add_argument("--sort", choices=SORT_KEYS, default="price", help="Result ordering (default: price).")
    search.add_argument("--airline", default="", help="Only show this airline.")
    search.set_defaults(handler=cmd_search)

    seats = commands.add_parser("seats", help="Show the seat map of a flight.")
    seats.add_argument("flight_id")
    seats.add_argument("--passengers", type=int, default=1)
    seats.add_argument("--select", action="append", help="Seat to select (repeatable).")
    seats.set_defaults(handler=cmd_seats)

    login = commands.add_parser("login", help="Log in and remember the session.")
    login.add_argument("username")
    login.add_argument("--password", default=None, help="Password (prompted when omitted).")
    login.set_defaults(handler=cmd_login)

    commands.add_parser("logout", help="Forget the saved session.").set_defaults(handler=cmd_logout)
    commands.add_parser("whoami", help="Show the logged-in account.").set_defaults(handler=cmd_whoami)

    register = commands.add_parser("register", help="Create a traveler account and log in.")
    for flag in ("--username", "--email", "--password", "--first-name", "--last-name", "--phone", "--dob"):
        register.add_argument(flag, required=True)
    register.set_defaults(handler=cmd_register)

    book = commands.add_parser("book", help="Search, pick seats, pay and confirm in one go.")
    _add_search_arguments(book)
    book.add_argument("--flight", required=True, help="Flight id from the search results.")
    book.add_argument("--seat", action="append", required=True, help="Seat id (repeat per passenger).")
    for flag in ("--first-name", "--last-name", "--email", "--phone", "--dob"):
        book.add_argument(flag, required=True)
    book.add_argument("--passport", default=None)
    book.add_argument("--cardholder", default=None, help="Defaults to the passenger name.")
    book.add_argument("--card-number", required=True)
    book.add_argument("--expiry", required=True)
    book.add_argument("--cvv", required=True)
    book.add_argument("--street", required=True)
    book.add_argument("--city", required=True)
    book.add_argument("--state", required=True)
    book.add_argument("--zip", dest="zip_code", required=True)
    book.add_argument("--country", default="United States")
    book.set_defaults(handler=cmd_book)

    cancel = commands.add_parser("cancel", help="Cancel a booking.")
    cancel.add_argument("booking_id")
    cancel.set_defaults(handler=cmd_cancel)

    commands.add_parser("dashboard", help="Show the dashboard for your role.").set_defaults(handler=cmd_dashboard)

    return parser.parse_args(list(argv))


def main(argv: Iterable[str] | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else _LOG_LEVEL.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    handler: Callable[[argparse.Namespace], int] = args.handler
    try:
        return handler(args)
    except KeyError as exc:
        print(f"Error: {exc.args[0]}", file=sys.stderr)
        return 1
    except Exception as exc:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
