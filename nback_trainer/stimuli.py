from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Generic, Protocol, TypeVar

from .cognitive_core import RandomSource

T = TypeVar("T")
E = TypeVar("E", bound=StrEnum)


class StimulusDomain(Protocol[T]):
    """A closed set of stimulus values with one distinguished "no stimulus yet" member."""

    @property
    def sentinel(self) -> T:
        ...

    def sample(self, rng: RandomSource) -> T:
        """Uniform draw over every member of the domain, sentinel included."""
        ...


class Cell(StrEnum):
    TOP_LEFT = "top_left"
    TOP_CENTER = "top_center"
    TOP_RIGHT = "top_right"
    CENTER_LEFT = "center_left"
    CENTER = "center"
    CENTER_RIGHT = "center_right"
    BOTTOM_LEFT = "bottom_left"
    BOTTOM_CENTER = "bottom_center"
    BOTTOM_RIGHT = "bottom_right"
    NONE = "none"


class Pigment(StrEnum):
    A = "a"
    B = "b"
    C = "c"
    D = "d"
    E = "e"
    NONE = "none"


class Letter(StrEnum):
    C = "C"
    H = "H"
    K = "K"
    L = "L"
    Q = "Q"
    R = "R"
    S = "S"
    T = "T"
    NONE = "none"


@dataclass(frozen=True, slots=True)
class EnumDomain(Generic[E]):
    members: tuple[E, ...]
    none: E

    def __post_init__(self) -> None:
        if self.none not in self.members:
            raise ValueError("sentinel must be a member of the domain")

    @property
    def sentinel(self) -> E:
        return self.none

    def sample(self, rng: RandomSource) -> E:
        return rng.choice(self.members)


CELL_DOMAIN: EnumDomain[Cell] = EnumDomain(members=tuple(Cell), none=Cell.NONE)
PIGMENT_DOMAIN: EnumDomain[Pigment] = EnumDomain(members=tuple(Pigment), none=Pigment.NONE)
LETTER_DOMAIN: EnumDomain[Letter] = EnumDomain(members=tuple(Letter), none=Letter.NONE)


# (row, column) with row +1 at the top and column +1 on the right; NONE sits in the middle.
_CELL_GRID: dict[Cell, tuple[int, int]] = {
    Cell.TOP_LEFT: (1, -1),
    Cell.TOP_CENTER: (1, 0),
    Cell.TOP_RIGHT: (1, 1),
    Cell.CENTER_LEFT: (0, -1),
    Cell.CENTER: (0, 0),
    Cell.CENTER_RIGHT: (0, 1),
    Cell.BOTTOM_LEFT: (-1, -1),
    Cell.BOTTOM_CENTER: (-1, 0),
    Cell.BOTTOM_RIGHT: (-1, 1),
    Cell.NONE: (0, 0),
}

_PIGMENT_RGB: dict[Pigment, tuple[float, float, float]] = {
    Pigment.A: (1.0, 0.56, 0.0),
    Pigment.B: (0.60, 0.05, 1.0),
    Pigment.C: (1.0, 0.0, 0.65),
    Pigment.D: (0.12, 1.0, 0.14),
    Pigment.E: (0.12, 0.80, 1.0),
    Pigment.NONE: (0.0, 0.0, 0.0),
}


def cell_row(cell: Cell) -> int:
    return _CELL_GRID[cell][0]


def cell_column(cell: Cell) -> int:
    return _CELL_GRID[cell][1]


def pigment_rgb(pigment: Pigment) -> tuple[int, int, int]:
    r, g, b = _PIGMENT_RGB[pigment]
    return (int(round(r * 255)), int(round(g * 255)), int(round(b * 255)))
