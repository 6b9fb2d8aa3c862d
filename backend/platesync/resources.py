"""Normalized resources produced by the event decoders."""

# purpose: represent plates, tube racks and orders independently of their wire shape
# inputs: decoded pydantic payloads
# outputs: grid-shaped Plate and role-keyed Order value objects
# status: active

from __future__ import annotations

from dataclasses import dataclass, field
from string import ascii_uppercase
from typing import Any, Iterator


def row_label(index: int) -> str:
    """Return the row letter(s) for a zero-based row index (A..Z, AA, AB...)."""

    label = ""
    index += 1
    while index:
        index, remainder = divmod(index - 1, 26)
        label = ascii_uppercase[remainder] + label
    return label


def grid_locations(number_of_rows: int, number_of_columns: int) -> Iterator[str]:
    """Yield every location of a grid in row-major order (A1, A2, ..., B1...)."""

    for row in range(number_of_rows):
        letter = row_label(row)
        for column in range(1, number_of_columns + 1):
            yield f"{letter}{column}"


@dataclass(slots=True)
class Aliquot:
    sample_uuid: str | None = None


@dataclass(slots=True)
class Plate:
    """A rows x columns grid of locations, each holding zero or more aliquots."""

    number_of_rows: int
    number_of_columns: int
    wells: dict[str, list[Aliquot]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for location in self.locations():
            self.wells.setdefault(location, [])

    @property
    def asset_size(self) -> int:
        return self.number_of_rows * self.number_of_columns

    def locations(self) -> list[str]:
        return list(grid_locations(self.number_of_rows, self.number_of_columns))

    def __getitem__(self, location: str) -> list[Aliquot]:
        return self.wells[location]

    def __contains__(self, location: object) -> bool:
        return location in self.wells


@dataclass(slots=True)
class OrderItem:
    uuid: str
    status: str


@dataclass(slots=True)
class Order:
    """Mapping of role names to the items filling that role."""

    items: dict[str, list[OrderItem]] = field(default_factory=dict)

    def roles(self) -> list[str]:
        return list(self.items)

    def __getitem__(self, role: str) -> list[OrderItem]:
        return self.items.get(role, [])


@dataclass(slots=True)
class DecodedResource:
    """Decoder output: the resource, its upstream UUID and sample UUIDs per location."""

    model: str
    resource: Any
    external_uuid: str | None
    sample_uuids_by_location: dict[str, list[str]] = field(default_factory=dict)
