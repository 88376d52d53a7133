from __future__ import annotations

from types import SimpleNamespace

import pytest

from flight_booking import services
from flight_booking.database import create_session_factory
from flight_booking.dataset import load_sample_data
from flight_booking.forms import (
    BillingAddress,
    MissingFieldError,
    PassengerDetails,
    PaymentDetails,
    SearchCriteria,
)
from flight_booking.models import Base
from flight_booking.services import (
    PaymentResult,
    active_bookings,
    add_flight,
    cancel_booking,
    create_booking,
    delete_flight,
    filter_by_airline,
    get_booking,
    get_flight,
    list_airlines,
    list_bookings,
    quote_price,
    search_flights,
    sort_flights,
    update_flight,
)

PASSENGER = PassengerDetails(
    first_name="Jane",
    last_name="Roe",
    email="jane.roe@example.com",
    phone="+1-555-0199",
    date_of_birth="1990-02-03",
)
CARD = PaymentDetails(
    cardholder_name="Jane Roe",
    card_number="4111 1111 1111 1111",
    expiry_date="12/27",
    cvv="123",
    billing_address=BillingAddress(street="1 Main St", city="Springfield", state="IL", zip_code="62701"),
)


def make_seeded_session_factory():
    engine, session_factory = create_session_factory("sqlite+pysqlite:///:memory:")
    Base.metadata.create_all(engine)
    load_sample_data(session_factory)
    return session_factory


def paris_criteria(**overrides) -> SearchCriteria:
    values = dict(
        departure="New York",
        destination="Paris",
        departure_date="2024-04-10",
        passengers=1,
        cabin_class="business",
    )
    values.update(overrides)
    return SearchCriteria(**values)


def test_search_returns_matching_flights_cheapest_first():
    session_factory = make_seeded_session_factory()
    with session_factory() as session:
        flights = search_flights(session, paris_criteria())

    assert [flight.id for flight in flights] == ["DL456", "AA101"]
    assert flights[1].price == 2450


def test_search_matches_codes_case_insensitively():
    session_factory = make_seeded_session_factory()
    with session_factory() as session:
        flights = search_flights(session, paris_criteria(departure="jfk", destination="lhr"))

    assert [flight.id for flight in flights] == ["BA207"]


@pytest.mark.parametrize(
    "overrides",
    [
        {"departure_date": "2024-04-11"},
        {"cabin_class": "economy"},
        {"destination": "Tokyo"},
        {"departure": "Boston"},
    ],
)
def test_search_without_full_match_is_empty(overrides):
    session_factory = make_seeded_session_factory()
    with session_factory() as session:
        assert search_flights(session, paris_criteria(**overrides)) == []


def test_search_results_are_non_decreasing_in_price():
    session_factory = make_seeded_session_factory()
    with session_factory() as session:
        # "r" appears in Paris, LHR and Frankfurt, so every sample flight matches.
        flights = search_flights(session, paris_criteria(destination="r"))

    prices = [flight.price for flight in flights]
    assert len(prices) == 4
    assert prices == sorted(prices)


def test_result_views_sort_and_filter():
    session_factory = make_seeded_session_factory()
    with session_factory() as session:
        flights = search_flights(session, paris_criteria(destination="r"))

        by_duration = [flight.id for flight in sort_flights(flights, "duration")]
        by_departure = [flight.id for flight in sort_flights(flights, "departure")]

        assert by_duration == ["BA207", "AA101", "DL456", "LH440"]
        assert by_departure == ["AA101", "BA207", "DL456", "LH440"]
        assert [f.id for f in filter_by_airline(flights, "Lufthansa")] == ["LH440"]
        assert len(filter_by_airline(flights, "")) == 4
        assert list_airlines(flights) == [
            "British Airways",
            "Delta Air Lines",
            "American Airlines",
            "Lufthansa",
        ]
        with pytest.raises(ValueError):
            sort_flights(flights, "stops")


def test_quote_adds_rounded_tax():
    assert quote_price(2450, 1).total == 2818
    quote = quote_price(2450, 2)
    assert (quote.fare, quote.taxes, quote.total) == (4900, 735, 5635)


@pytest.mark.parametrize(
    "price, passengers, taxes, total",
    [
        (2450, 3, 1103, 8453),
        (10, 1, 2, 12),
        (30, 1, 5, 35),
    ],
)
def test_quote_rounds_half_taxes_up(price, passengers, taxes, total):
    quote = quote_price(price, passengers)
    assert (quote.taxes, quote.total) == (taxes, total)


def test_booking_is_confirmed_with_quoted_total():
    session_factory = make_seeded_session_factory()
    with session_factory() as session:
        booking = create_booking(
            session,
            account_id="1",
            flight_id="AA101",
            passenger=PASSENGER,
            seats=["1A"],
            passengers=1,
            payment=CARD,
        )
        session.commit()
        booking_id = booking.id

    with session_factory() as session:
        stored = get_booking(session, booking_id)
        assert stored.status == "confirmed"
        assert stored.payment_status == "completed"
        assert stored.total_amount == 2450 + 368
        assert stored.selected_seats == ["1A"]
        assert stored.passengers[0].first_name == "Jane"
        assert stored.payment.transaction_ref.startswith("TXN-1111-")
        assert stored.payment.amount == 2818
    assert booking_id.startswith("BK")
    assert booking.reference == "FF" + booking_id[-6:]


@pytest.mark.parametrize(
    "seats, passengers",
    [
        (["1A"], 2),
        (["1B"], 1),
        (["1A", "1C"], 1),
        (["9A"], 1),
    ],
)
def test_booking_requires_exact_available_seats(seats, passengers):
    session_factory = make_seeded_session_factory()
    with session_factory() as session:
        with pytest.raises(ValueError):
            create_booking(
                session,
                account_id="1",
                flight_id="AA101",
                passenger=PASSENGER,
                seats=seats,
                passengers=passengers,
                payment=CARD,
            )
        assert len(list_bookings(session)) == 1


def test_booking_requires_known_account_and_flight():
    session_factory = make_seeded_session_factory()
    with session_factory() as session:
        with pytest.raises(ValueError, match="not authenticated"):
            create_booking(
                session,
                account_id="missing",
                flight_id="AA101",
                passenger=PASSENGER,
                seats=["1A"],
                passengers=1,
                payment=CARD,
            )
        with pytest.raises(ValueError, match="flight not found"):
            create_booking(
                session,
                account_id="1",
                flight_id="ZZ999",
                passenger=PASSENGER,
                seats=["1A"],
                passengers=1,
                payment=CARD,
            )


def test_declined_payment_leaves_booking_pending():
    session_factory = make_seeded_session_factory()

    def failing_payment(amount, payment):
        return PaymentResult(False, "DECLINED", "card declined")

    with session_factory() as session:
        booking = create_booking(
            session,
            account_id="1",
            flight_id="BA207",
            passenger=PASSENGER,
            seats=["4A"],
            passengers=1,
            payment=CARD,
            payment_fn=failing_payment,
        )
        assert booking.status == "pending"
        assert booking.payment_status == "failed"
        assert booking.payment.status == "failed"


def test_time_derived_ids_do_not_collide(monkeypatch):
    monkeypatch.setattr(services, "time", SimpleNamespace(time=lambda: 1_712_000_000.0))
    session_factory = make_seeded_session_factory()
    with session_factory() as session:
        first = create_booking(
            session, account_id="1", flight_id="AA101", passenger=PASSENGER,
            seats=["1A"], passengers=1, payment=CARD,
        )
        second = create_booking(
            session, account_id="1", flight_id="AA101", passenger=PASSENGER,
            seats=["1A"], passengers=1, payment=CARD,
        )
    assert first.id == "BK1712000000000"
    assert second.id == "BK1712000000001"


def test_cancel_changes_only_status():
    session_factory = make_seeded_session_factory()
    with session_factory() as session:
        before = get_booking(session, "BK001").as_dict()
        assert len(active_bookings(list_bookings(session))) == 1

        assert cancel_booking(session, booking_id="BK001") is True
        session.commit()

    with session_factory() as session:
        after = get_booking(session, "BK001").as_dict()
        assert after.pop("status") == "cancelled"
        before.pop("status")
        assert after == before
        assert len(active_bookings(list_bookings(session))) == 0
        assert len(list_bookings(session)) == 1


def test_cancel_unknown_booking_returns_false():
    session_factory = make_seeded_session_factory()
    with session_factory() as session:
        assert cancel_booking(session, booking_id="BK404") is False


def test_add_flight_fills_airport_and_code_from_city():
    session_factory = make_seeded_session_factory()
    with session_factory() as session:
        flight = add_flight(
            session,
            airline="Emirates",
            flight_number="EK 2",
            departure_city="Dubai",
            departure_time="09:00",
            departure_date="2024-05-01",
            arrival_city="London",
            arrival_time="13:30",
            arrival_date="2024-05-01",
            duration="7h 30m",
            aircraft="Airbus A380",
            price=980,
            available_seats=20,
        )
        session.commit()

    assert flight.id.startswith("NEW")
    assert flight.departure_code == "DXB"
    assert flight.arrival_code == "LON"
    assert flight.arrival_airport == "London International Airport"
    assert flight.cabin_class == "Business"
    assert flight.stops == 0


def test_add_flight_requires_form_fields():
    session_factory = make_seeded_session_factory()
    with session_factory() as session:
        with pytest.raises(MissingFieldError) as excinfo:
            add_flight(session, airline="Emirates", departure_city="Atlantis")
        with pytest.raises(ValueError, match="unknown flight field"):
            add_flight(session, airline="Emirates", gate="B12")

    assert "flight_number" in excinfo.value.fields
    assert "departure_code" in excinfo.value.fields


def test_update_flight_merges_partial_fields():
    session_factory = make_seeded_session_factory()
    with session_factory() as session:
        flight = update_flight(session, "AA101", {"price": 2300, "available_seats": 10})
        assert flight.price == 2300
        assert flight.available_seats == 10
        assert flight.airline == "American Airlines"
        assert update_flight(session, "ZZ999", {"price": 1}) is None


@pytest.mark.parametrize("field", ["price", "stops", "available_seats"])
def test_flight_counts_must_not_be_negative(field):
    session_factory = make_seeded_session_factory()
    with session_factory() as session:
        with pytest.raises(ValueError, match="must not be negative"):
            update_flight(session, "AA101", {field: -5})
        with pytest.raises(ValueError, match="must not be negative"):
            add_flight(session, airline="Emirates", **{field: -1})
        assert get_flight(session, "AA101").as_dict()[field] >= 0


def test_delete_flight_leaves_bookings_dangling():
    session_factory = make_seeded_session_factory()
    with session_factory() as session:
        assert delete_flight(session, "AA101") is True
        session.commit()

    with session_factory() as session:
        assert get_flight(session, "AA101") is None
        assert get_booking(session, "BK001").flight_id == "AA101"
        assert delete_flight(session, "AA101") is False
