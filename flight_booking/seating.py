"""Seat map generation and the per-session seat selection rules."""
from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet, Iterable, List, Sequence, Tuple

ROWS = 8
SEAT_LETTERS: Sequence[str] = tuple("ABCD")
OCCUPIED_SEATS: FrozenSet[str] = frozenset({"1B", "2A", "3C", "5D", "6A", "7B"})


@dataclass(frozen=True)
class Seat:
    row: int
    letter: str
    is_occupied: bool
    is_selected: bool

    @property
    def id(self) -> str:
        return f"{self.row}{self.letter}"

    @property
    def is_window(self) -> bool:
        return self.letter in (SEAT_LETTERS[0], SEAT_LETTERS[-1])

    @property
    def is_aisle(self) -> bool:
        return not self.is_window


class SeatMap:
    """Fixed cabin layout plus the seats picked for one booking."""

    def __init__(
        self,
        passengers: int,
        *,
        rows: int = ROWS,
        letters: Sequence[str] = SEAT_LETTERS,
        occupied: Iterable[str] = OCCUPIED_SEATS,
    ) -> None:
        if passengers < 1:
            raise ValueError("at least one passenger is required")
        self.passengers = passengers
        self.rows = rows
        self.letters = tuple(letters)
        self.occupied = frozenset(occupied)
        self._selected: List[str] = []

    @property
    def seat_ids(self) -> Tuple[str, ...]:
        return tuple(f"{row}{letter}" for row in range(1, self.rows + 1) for letter in self.letters)

    @property
    def selected(self) -> Tuple[str, ...]:
        return tuple(self._selected)

    @property
    def remaining(self) -> int:
        return self.passengers - len(self._selected)

    @property
    def can_continue(self) -> bool:
        return len(self._selected) == self.passengers

    def is_occupied(self, seat_id: str) -> bool:
        return seat_id in self.occupied

    def grid(self) -> List[List[Seat]]:
        return [
            [
                Seat(
                    row=row,
                    letter=letter,
                    is_occupied=f"{row}{letter}" in self.occupied,
                    is_selected=f"{row}{letter}" in self._selected,
                )
                for letter in self.letters
            ]
            for row in range(1, self.rows + 1)
        ]

    def toggle(self, seat_id: str) -> bool:
        """Apply one click on ``seat_id``; return whether the selection changed."""

        seat_id = seat_id.strip().upper()
        if seat_id not in self.seat_ids:
            raise ValueError(f"unknown seat '{seat_id}'")
        if seat_id in self.occupied:
            return False
        if seat_id in self._selected:
            self._selected.remove(seat_id)
            return True
        if len(self._selected) < self.passengers:
            self._selected.append(seat_id)
            return True
        return False

    def select_all(self, seat_ids: Iterable[str]) -> Tuple[str, ...]:
        """Select ``seat_ids`` on a cleared map and require an exact selection."""

        seat_ids = list(seat_ids)
        self._selected.clear()
        for seat_id in seat_ids:
            self.toggle(seat_id)
        if len(seat_ids) != self.passengers or not self.can_continue:
            raise ValueError(
                f"select exactly {self.passengers} available seat(s); got {', '.join(seat_ids) or 'none'}"
            )
        return self.selected

    def as_dict(self) -> dict:
        return {
            "passengers": self.passengers,
            "selected": list(self._selected),
            "can_continue": self.can_continue,
            "rows": [
                [
                    {
                        "id": seat.id,
                        "occupied": seat.is_occupied,
                        "selected": seat.is_selected,
                        "window": seat.is_window,
                    }
                    for seat in row
                ]
                for row in self.grid()
            ],
        }
