"""Location maps scoped by plate size."""

from __future__ import annotations

from sqlalchemy.orm import Session

from . import models
from .resources import grid_locations


def seed_maps(db: Session, number_of_rows: int, number_of_columns: int) -> int:
    """Insert the missing location maps for a plate size and return how many were added."""

    # purpose: wells are stored against a (location, asset_size) map row which must exist first
    asset_size = number_of_rows * number_of_columns
    existing = {
        description
        for (description,) in db.query(models.Map.description)
        .filter(models.Map.asset_size == asset_size)
        .all()
    }
    added = 0
    for location in grid_locations(number_of_rows, number_of_columns):
        if location in existing:
            continue
        db.add(models.Map(description=location, asset_size=asset_size))
        added += 1
    return added
