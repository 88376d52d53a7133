"""Immutable values captured by the search, passenger and payment forms."""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

CABIN_CLASSES = ("economy", "premium", "business", "first")
TRIP_TYPES = ("oneWay", "roundTrip")


class MissingFieldError(ValueError):
    """Raised when a form is submitted without one or more required fields."""

    def __init__(self, fields: Iterable[str]):
        self.fields = tuple(fields)
        super().__init__(f"missing required field(s): {', '.join(self.fields)}")


def _missing(values: object, names: Iterable[str]) -> List[str]:
    missing = []
    for name in names:
        value = getattr(values, name)
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append(name)
    return missing


def format_card_number(value: str) -> str:
    """Keep at most 16 digits and group them in blocks of four."""

    digits = re.sub(r"\D", "", value)
    if len(digits) < 4:
        return digits
    digits = digits[:16]
    return " ".join(digits[i : i + 4] for i in range(0, len(digits), 4))


@dataclass(frozen=True)
class SearchCriteria:
    departure: str
    destination: str
    departure_date: str
    passengers: int = 1
    cabin_class: str = "business"
    trip_type: str = "roundTrip"
    return_date: Optional[str] = None

    def __post_init__(self) -> None:
        missing = _missing(self, ("departure", "destination", "departure_date"))
        if missing:
            raise MissingFieldError(missing)
        if self.passengers < 1:
            raise ValueError("at least one passenger is required")
        if self.cabin_class.lower() not in CABIN_CLASSES:
            raise ValueError(f"unsupported cabin class '{self.cabin_class}'")
        if self.trip_type not in TRIP_TYPES:
            raise ValueError(f"unsupported trip type '{self.trip_type}'")
        if self.trip_type == "oneWay" and self.return_date is not None:
            object.__setattr__(self, "return_date", None)


@dataclass(frozen=True)
class PassengerDetails:
    first_name: str
    last_name: str
    email: str
    phone: str
    date_of_birth: str
    passport_number: Optional[str] = None

    def __post_init__(self) -> None:
        missing = _missing(self, ("first_name", "last_name", "email", "phone", "date_of_birth"))
        if missing:
            raise MissingFieldError(missing)
        if self.passport_number is not None and not self.passport_number.strip():
            object.__setattr__(self, "passport_number", None)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


@dataclass(frozen=True)
class BillingAddress:
    street: str
    city: str
    state: str
    zip_code: str
    country: str = "United States"


@dataclass(frozen=True)
class PaymentDetails:
    cardholder_name: str
    card_number: str
    expiry_date: str
    cvv: str
    billing_address: BillingAddress = field(
        default_factory=lambda: BillingAddress(street="", city="", state="", zip_code="")
    )

    def __post_init__(self) -> None:
        object.__setattr__(self, "card_number", format_card_number(self.card_number))
        missing = _missing(self, ("cardholder_name", "card_number", "expiry_date", "cvv"))
        missing += [
            f"billing_address.{name}"
            for name in _missing(self.billing_address, ("street", "city", "state", "zip_code", "country"))
        ]
        if missing:
            raise MissingFieldError(missing)

    @property
    def last_four(self) -> str:
        return self.card_number.replace(" ", "")[-4:]
