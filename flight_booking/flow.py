"""Booking flow: search, results, seats, passenger details, payment, confirmation."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from .accounts import AuthService
from .forms import PassengerDetails, PaymentDetails, SearchCriteria
from .models import Booking, Flight
from .seating import SeatMap
from .services import PriceQuote, create_booking, filter_by_airline, quote_price, search_flights, sort_flights

logger = logging.getLogger(__name__)


class Step(str, Enum):
    SEARCH = "search"
    RESULTS = "results"
    SEATS = "seats"
    DETAILS = "booking"
    PAYMENT = "payment"
    CONFIRMATION = "confirmation"

    @property
    def heading(self) -> str:
        return STEP_TITLES[self]


STEP_TITLES = {
    Step.SEARCH: "Find Your Perfect Flight",
    Step.RESULTS: "Available Flights",
    Step.SEATS: "Select Your Seats",
    Step.DETAILS: "Passenger Details",
    Step.PAYMENT: "Payment Information",
    Step.CONFIRMATION: "Booking Confirmed",
}
_ORDER: Tuple[Step, ...] = tuple(Step)


class FlowError(RuntimeError):
    """Raised when a flow operation is called from the wrong step."""


@dataclass(frozen=True)
class FlowSnapshot:
    step: Step
    criteria: Optional[SearchCriteria]
    result_ids: Tuple[str, ...]
    flight_id: Optional[str]
    seats: Tuple[str, ...]
    passenger: Optional[PassengerDetails]
    quote: Optional[PriceQuote]
    booking_id: Optional[str]


class BookingFlow:
    """One traveler's walk through the booking screens.

    Each step only accepts its own operation; ``back`` returns to the previous
    step and drops whatever the current step had collected. ``new_search``
    starts over from any step, including the confirmation.
    """

    def __init__(self, session: Session, auth: AuthService) -> None:
        self.session = session
        self.auth = auth
        self.step = Step.SEARCH
        self.criteria: Optional[SearchCriteria] = None
        self.results: List[Flight] = []
        self.flight: Optional[Flight] = None
        self.seat_map: Optional[SeatMap] = None
        self.seats: Tuple[str, ...] = ()
        self.passenger: Optional[PassengerDetails] = None
        self.booking: Optional[Booking] = None

    @property
    def title(self) -> str:
        return self.step.heading

    def _require(self, step: Step) -> None:
        if self.step is not step:
            raise FlowError(f"expected step '{step.value}', flow is at '{self.step.value}'")

    def _move(self, step: Step) -> None:
        logger.debug("Booking flow %s -> %s", self.step.value, step.value)
        self.step = step

    def search(self, criteria: SearchCriteria) -> List[Flight]:
        self._require(Step.SEARCH)
        self.criteria = criteria
        self.results = search_flights(self.session, criteria)
        self._move(Step.RESULTS)
        return self.results

    def view_results(self, *, sort_by: str = "price", airline: str = "") -> List[Flight]:
        self._require(Step.RESULTS)
        return filter_by_airline(sort_flights(self.results, sort_by), airline)

    def select_flight(self, flight_id: str) -> SeatMap:
        self._require(Step.RESULTS)
        for flight in self.results:
            if flight.id == flight_id:
                break
        else:
            raise ValueError(f"flight '{flight_id}' is not in the search results")
        self.flight = flight
        self.seat_map = SeatMap(self.criteria.passengers)
        self._move(Step.SEATS)
        return self.seat_map

    def toggle_seat(self, seat_id: str) -> bool:
        self._require(Step.SEATS)
        return self.seat_map.toggle(seat_id)

    def confirm_seats(self) -> Tuple[str, ...]:
        self._require(Step.SEATS)
        if not self.seat_map.can_continue:
            raise ValueError(
                f"select {self.seat_map.passengers} seat(s) before continuing; "
                f"{self.seat_map.remaining} remaining"
            )
        self.seats = self.seat_map.selected
        self._move(Step.DETAILS)
        return self.seats

    @property
    def quote(self) -> Optional[PriceQuote]:
        if self.flight is None or self.criteria is None:
            return None
        return quote_price(self.flight.price, self.criteria.passengers)

    def submit_details(self, passenger: PassengerDetails) -> PriceQuote:
        self._require(Step.DETAILS)
        self.passenger = passenger
        self._move(Step.PAYMENT)
        return self.quote

    def pay(self, payment: PaymentDetails) -> Booking:
        self._require(Step.PAYMENT)
        account = self.auth.current_user
        if account is None:
            raise FlowError("sign in before completing a booking")
        self.booking = create_booking(
            self.session,
            account_id=account.id,
            flight_id=self.flight.id,
            passenger=self.passenger,
            seats=self.seats,
            passengers=self.criteria.passengers,
            payment=payment,
        )
        self._move(Step.CONFIRMATION)
        return self.booking

    def back(self) -> Step:
        if self.step in (Step.SEARCH, Step.CONFIRMATION):
            raise FlowError(f"cannot go back from '{self.step.value}'")
        if self.step is Step.RESULTS:
            self.criteria = None
            self.results = []
        elif self.step is Step.SEATS:
            self.flight = None
            self.seat_map = None
        elif self.step is Step.DETAILS:
            self.seats = ()
            self.seat_map = SeatMap(self.criteria.passengers)
        elif self.step is Step.PAYMENT:
            self.passenger = None
        self._move(_ORDER[_ORDER.index(self.step) - 1])
        return self.step

    def new_search(self) -> None:
        self.criteria = None
        self.results = []
        self.flight = None
        self.seat_map = None
        self.seats = ()
        self.passenger = None
        self.booking = None
        self._move(Step.SEARCH)

    def snapshot(self) -> FlowSnapshot:
        return FlowSnapshot(
            step=self.step,
            criteria=self.criteria,
            result_ids=tuple(flight.id for flight in self.results),
            flight_id=self.flight.id if self.flight else None,
            seats=self.seats,
            passenger=self.passenger,
            quote=self.quote,
            booking_id=self.booking.id if self.booking else None,
        )
