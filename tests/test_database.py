import pytest

from flight_booking.database import create_session_factory, init_db, session_scope
from flight_booking.dataset import load_sample_data
from flight_booking.models import Flight
from flight_booking.services import get_flight


def test_in_memory_store_is_shared_between_sessions():
    session_factory = init_db("sqlite+pysqlite:///:memory:")
    load_sample_data(session_factory)

    with session_scope(session_factory) as session:
        get_flight(session, "AA101").price = 2000
    with session_scope(session_factory) as session:
        assert get_flight(session, "AA101").price == 2000


def test_session_scope_rolls_back_on_error():
    session_factory = init_db("sqlite+pysqlite:///:memory:")
    load_sample_data(session_factory)

    with pytest.raises(RuntimeError):
        with session_scope(session_factory) as session:
            get_flight(session, "AA101").price = 1
            session.flush()
            raise RuntimeError("boom")
    with session_scope(session_factory) as session:
        assert get_flight(session, "AA101").price == 2450


def test_file_store_outlives_its_engine(tmp_path):
    db_url = f"sqlite+pysqlite:///{tmp_path / 'flights.db'}"
    assert load_sample_data(init_db(db_url))["flights"] == 4

    engine, session_factory = create_session_factory(db_url)
    with session_factory() as session:
        assert session.get(Flight, "LH440").airline == "Lufthansa"
    assert load_sample_data(session_factory)["flights"] == 0
    engine.dispose()
