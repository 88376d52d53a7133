import pytest

from flight_booking.accounts import AuthService
from flight_booking.database import init_db
from flight_booking.dataset import load_sample_data
from flight_booking.flow import BookingFlow, FlowError, Step
from flight_booking.forms import BillingAddress, PassengerDetails, PaymentDetails, SearchCriteria
from flight_booking.services import get_booking, list_bookings
from flight_booking.session_store import SessionStore

CRITERIA = SearchCriteria(
    departure="New York",
    destination="Paris",
    departure_date="2024-04-10",
    passengers=1,
    cabin_class="business",
)
PASSENGER = PassengerDetails(
    first_name="John",
    last_name="Doe",
    email="john.doe@email.com",
    phone="+1-555-0123",
    date_of_birth="1985-06-15",
)
CARD = PaymentDetails(
    cardholder_name="John Doe",
    card_number="4111111111111111",
    expiry_date="12/27",
    cvv="123",
    billing_address=BillingAddress(street="1 Main St", city="New York", state="NY", zip_code="10001"),
)


@pytest.fixture
def session(tmp_path):
    session_factory = init_db("sqlite+pysqlite:///:memory:")
    load_sample_data(session_factory)
    with session_factory() as session:
        yield session


@pytest.fixture
def auth(tmp_path, session):
    service = AuthService(SessionStore(tmp_path))
    service.login(session, "john.doe", "password123")
    return service


def advance_to_payment(flow: BookingFlow) -> None:
    flow.search(CRITERIA)
    flow.select_flight("AA101")
    flow.toggle_seat("1A")
    flow.confirm_seats()
    flow.submit_details(PASSENGER)


def test_flow_books_selected_flight(session, auth):
    flow = BookingFlow(session, auth)
    assert flow.title == "Find Your Perfect Flight"

    results = flow.search(CRITERIA)
    assert [flight.id for flight in results] == ["DL456", "AA101"]
    assert flow.title == "Available Flights"

    seat_map = flow.select_flight("AA101")
    assert seat_map.passengers == 1
    assert flow.toggle_seat("1A")
    assert flow.confirm_seats() == ("1A",)
    assert flow.step is Step.DETAILS

    summary = flow.submit_details(PASSENGER)
    assert summary.total == 2818
    assert flow.title == "Payment Information"

    booking = flow.pay(CARD)
    assert booking.total_amount == summary.total
    assert booking.status == "confirmed"
    assert flow.title == "Booking Confirmed"
    assert flow.snapshot().booking_id == booking.id
    assert get_booking(session, booking.id).user_id == "1"


def test_operation_in_wrong_step_raises(session, auth):
    flow = BookingFlow(session, auth)
    with pytest.raises(FlowError):
        flow.pay(CARD)
    with pytest.raises(FlowError):
        flow.select_flight("AA101")

    flow.search(CRITERIA)
    with pytest.raises(FlowError):
        flow.search(CRITERIA)


def test_results_view_sorts_and_filters(session, auth):
    flow = BookingFlow(session, auth)
    flow.search(CRITERIA)

    assert [f.id for f in flow.view_results(sort_by="departure")] == ["AA101", "DL456"]
    assert [f.id for f in flow.view_results(airline="Delta Air Lines")] == ["DL456"]
    with pytest.raises(ValueError):
        flow.select_flight("BA207")


def test_seats_must_be_complete_before_continuing(session, auth):
    flow = BookingFlow(session, auth)
    flow.search(SearchCriteria(
        departure="New York",
        destination="Paris",
        departure_date="2024-04-10",
        passengers=2,
    ))
    flow.select_flight("DL456")
    flow.toggle_seat("3A")

    with pytest.raises(ValueError, match="1 remaining"):
        flow.confirm_seats()
    assert flow.step is Step.SEATS

    flow.toggle_seat("3B")
    flow.confirm_seats()
    assert flow.submit_details(PASSENGER).total == 2199 * 2 + round(2199 * 2 * 0.15)


def test_back_discards_forward_state(session, auth):
    flow = BookingFlow(session, auth)
    advance_to_payment(flow)

    assert flow.back() is Step.DETAILS
    assert flow.passenger is None
    assert flow.back() is Step.SEATS
    assert flow.seats == ()
    assert flow.seat_map.selected == ()
    assert flow.back() is Step.RESULTS
    assert flow.flight is None
    assert flow.back() is Step.SEARCH
    assert flow.criteria is None
    with pytest.raises(FlowError):
        flow.back()


def test_confirmation_is_terminal_except_new_search(session, auth):
    flow = BookingFlow(session, auth)
    advance_to_payment(flow)
    flow.pay(CARD)

    with pytest.raises(FlowError):
        flow.back()

    flow.new_search()
    snapshot = flow.snapshot()
    assert snapshot.step is Step.SEARCH
    assert snapshot.criteria is None
    assert snapshot.booking_id is None
    assert snapshot.quote is None


def test_payment_requires_login(tmp_path, session):
    flow = BookingFlow(session, AuthService(SessionStore(tmp_path / "anonymous")))
    advance_to_payment(flow)

    with pytest.raises(FlowError, match="sign in"):
        flow.pay(CARD)
    assert flow.step is Step.PAYMENT
    assert len(list_bookings(session)) == 1
