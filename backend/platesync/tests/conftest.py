import sys
from pathlib import Path
from types import SimpleNamespace

import pytest
from sqlalchemy.orm import sessionmaker

sys.path.append(str(Path(__file__).resolve().parents[2]))

from platesync import models
from platesync.database import Base, create_db_engine, create_session_factory
from platesync.maps import seed_maps
from platesync.reconciler import Reconciler

STOCK_ROLE = "WGS Stock Plate"
SEEDED_SIZES = [(2, 2), (8, 12), (16, 24)]


@pytest.fixture
def session_factory(tmp_path) -> sessionmaker:
    engine = create_db_engine(f"sqlite:///{tmp_path / 'store.db'}")
    Base.metadata.create_all(bind=engine)
    factory = create_session_factory(engine)
    with factory.begin() as db:
        for rows, columns in SEEDED_SIZES:
            seed_maps(db, rows, columns)
    yield factory
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def reconciler(session_factory) -> Reconciler:
    return Reconciler(session_factory, stock_plate_roles=[STOCK_ROLE])


def plate_body(uuid: str, rows: int = 2, columns: int = 2, wells: dict | None = None) -> dict:
    return {
        "plate": {
            "uuid": uuid,
            "number_of_rows": rows,
            "number_of_columns": columns,
            "wells": wells or {},
        }
    }


def order_body(items: dict, uuid: str = "order-1") -> dict:
    return {"order": {"uuid": uuid, "items": items}}


def lookup_plate(db, external_uuid: str) -> models.Asset | None:
    """Return the plate asset mapped to an external uuid, or None."""

    db.expire_all()
    mapping = (
        db.query(models.Uuid)
        .filter_by(resource_type=models.ASSET, external_id=external_uuid)
        .first()
    )
    if mapping is None:
        return None
    return db.get(models.Asset, mapping.resource_id)


def well_ids(db, plate: models.Asset) -> list[int]:
    return [
        content_id
        for (content_id,) in db.query(models.ContainerAssociation.content_id)
        .filter(models.ContainerAssociation.container_id == plate.id)
        .all()
    ]


def samples_by_location(db, plate: models.Asset) -> dict[str, list[str]]:
    """Map each well location of a plate to the external uuids of its samples."""

    rows = (
        db.query(models.Map.description, models.Uuid.external_id)
        .join(models.Asset, models.Asset.map_id == models.Map.id)
        .join(
            models.ContainerAssociation,
            models.ContainerAssociation.content_id == models.Asset.id,
        )
        .join(models.Aliquot, models.Aliquot.receptacle_id == models.Asset.id)
        .join(
            models.Uuid,
            (models.Uuid.resource_id == models.Aliquot.sample_id)
            & (models.Uuid.resource_type == models.SAMPLE),
        )
        .filter(models.ContainerAssociation.container_id == plate.id)
        .order_by(models.Aliquot.id)
        .all()
    )
    result: dict[str, list[str]] = {}
    for location, sample_uuid in rows:
        result.setdefault(location, []).append(sample_uuid)
    return result


class FakeMessage:
    """Stand-in for a kombu message recording how it was settled."""

    def __init__(self, routing_key: str, body: bytes, content_type: str | None = "application/json"):
        self.delivery_info = {"routing_key": routing_key}
        self.body = body
        self.content_type = content_type
        self.settled = SimpleNamespace(acked=False, rejected=False, requeue=None)

    def ack(self) -> None:
        self.settled.acked = True

    def reject(self, requeue: bool = False) -> None:
        self.settled.rejected = True
        self.settled.requeue = requeue
