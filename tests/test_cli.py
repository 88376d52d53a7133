import pytest

from flightfinder.cli import main

BOOK_ARGS = [
    "book",
    "--from", "New York",
    "--to", "Paris",
    "--date", "2024-04-10",
    "--flight", "AA101",
    "--seat", "1A",
    "--first-name", "John",
    "--last-name", "Doe",
    "--email", "john.doe@email.com",
    "--phone", "+1-555-0123",
    "--dob", "1985-06-15",
    "--card-number", "4111111111111111",
    "--expiry", "12/27",
    "--cvv", "123",
    "--street", "1 Main St",
    "--city", "New York",
    "--state", "NY",
    "--zip", "10001",
]


@pytest.fixture
def run(tmp_path):
    db_url = f"sqlite+pysqlite:///{tmp_path / 'flights.db'}"

    def _run(*argv):
        return main(["--home", str(tmp_path), "--db-url", db_url, *argv])

    return _run


def test_search_prints_cheapest_first(run, capsys):
    assert run("search", "--from", "New York", "--to", "Paris", "--date", "2024-04-10") == 0

    out = capsys.readouterr().out
    assert "2 flights found" in out
    assert out.index("DL456") < out.index("AA101")
    assert "$2,199" in out


def test_search_without_matches(run, capsys):
    assert run("search", "--from", "New York", "--to", "Tokyo", "--date", "2024-04-10") == 0
    assert "No flights found." in capsys.readouterr().out


def test_seat_map_marks_occupied_and_selected(run, capsys):
    assert run("seats", "AA101", "--passengers", "2", "--select", "1A", "--select", "1B") == 0

    out = capsys.readouterr().out
    assert "xx" in out
    assert "*A" in out
    assert "Selected: 1 of 2" in out

    assert run("seats", "ZZ999") == 1
    assert "Unknown flight 'ZZ999'." in capsys.readouterr().err


def test_login_session_is_remembered(run, capsys):
    assert run("login", "john.doe", "--password", "password123") == 0
    assert "Logged in as John Doe (traveler)" in capsys.readouterr().out

    assert run("whoami") == 0
    assert "john.doe: John Doe <john.doe@email.com> (traveler)" in capsys.readouterr().out

    assert run("logout") == 0
    assert run("whoami") == 1
    assert "Not logged in" in capsys.readouterr().err


def test_login_failure_is_reported(run, capsys):
    assert run("login", "john.doe", "--password", "wrong") == 1
    assert "Error: Invalid password" in capsys.readouterr().err


def test_book_then_cancel_from_dashboard(run, capsys):
    run("login", "john.doe", "--password", "password123")
    capsys.readouterr()

    assert run(*BOOK_ARGS) == 0
    out = capsys.readouterr().out
    assert "Fare $2,450 + taxes $368 = $2,818" in out
    assert "Booking Confirmed: FF" in out

    assert run("cancel", "BK001") == 0
    assert "Booking BK001 cancelled" in capsys.readouterr().out

    assert run("dashboard") == 0
    out = capsys.readouterr().out
    assert "Traveler dashboard for John Doe" in out
    assert "Upcoming trips: 1  Past trips: 1" in out


def test_book_requires_login(run, capsys):
    assert run(*BOOK_ARGS) == 1
    assert "Not logged in" in capsys.readouterr().err


def test_register_conflict_is_reported(run, capsys):
    args = [
        "register",
        "--username", "john.doe",
        "--email", "new@example.com",
        "--password", "pw",
        "--first-name", "New",
        "--last-name", "Person",
        "--phone", "1",
        "--dob", "2000-01-01",
    ]
    assert run(*args) == 1
    assert "Username already exists" in capsys.readouterr().err


def test_admin_dashboard_lists_accounts(run, capsys):
    run("login", "admin", "--password", "admin123")
    capsys.readouterr()

    assert run("dashboard") == 0
    out = capsys.readouterr().out
    assert "Flights: 4  Bookings: 1  Active: 1  Revenue: $2,450" in out
    assert "operator@airline.com" in out


def test_corrupt_session_file_is_treated_as_logged_out(run, tmp_path, capsys):
    (tmp_path / "session.json").write_text("{oops", encoding="utf-8")

    assert run("whoami") == 1
    assert "Not logged in" in capsys.readouterr().err
    assert run("login", "admin", "--password", "admin123") == 0
