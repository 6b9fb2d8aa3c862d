"""Apply decoded plate, order and transfer events to the relational store."""

# purpose: keep the store's plates, wells, purposes and sample links consistent with upstream events
# inputs: DecodedResource values from the decoders, a sessionmaker built at startup
# outputs: store mutations plus an Outcome telling the consumer to ack or requeue
# status: active

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterable, Iterator, Mapping

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from . import models
from .config import ITEM_DONE_STATUS, STOCK_PLATE_ROLES
from .errors import MalformedEvent, PlateNotFound, PlatesyncError, TransactionFailure
from .resources import DecodedResource, Order, Plate
from .routing import Outcome

_logger = logging.getLogger(__name__)


class Reconciler:
    """Store operations and the per-event handling policies built on them.

    Every operation runs in its own transaction: it commits when the operation
    returns and rolls back on any error raised inside it, so a failed operation
    never leaves partial rows behind. Store errors surface as
    TransactionFailure; a missing UUID mapping surfaces as PlateNotFound where
    the operation needs the plate to exist.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        stock_plate_roles: Iterable[str] = STOCK_PLATE_ROLES,
        done_status: str = ITEM_DONE_STATUS,
    ) -> None:
        self._session_factory = session_factory
        self.stock_plate_roles = frozenset(stock_plate_roles)
        self.done_status = done_status

    @contextmanager
    def _transaction(self, action: str) -> Iterator[Session]:
        session = self._session_factory()
        try:
            with session.begin():
                yield session
        except PlatesyncError:
            raise
        except SQLAlchemyError as exc:
            raise TransactionFailure(f"{action} failed: {exc}") from exc
        finally:
            session.close()

    @staticmethod
    def _find_plate(session: Session, external_uuid: str) -> models.Asset | None:
        return (
            session.query(models.Asset)
            .join(models.Uuid, models.Uuid.resource_id == models.Asset.id)
            .filter(
                models.Uuid.resource_type == models.ASSET,
                models.Uuid.external_id == external_uuid,
                models.Asset.sti_type == models.PLATE,
            )
            .first()
        )

    @staticmethod
    def _sample_id(session: Session, sample_uuid: str) -> int:
        mapping = (
            session.query(models.Uuid)
            .filter_by(resource_type=models.SAMPLE, external_id=sample_uuid)
            .first()
        )
        if mapping is not None:
            return mapping.resource_id
        sample = models.Sample(name=sample_uuid)
        session.add(sample)
        session.flush()
        session.add(
            models.Uuid(
                resource_type=models.SAMPLE,
                resource_id=sample.id,
                external_id=sample_uuid,
            )
        )
        # autoflush is off; the next lookup of this UUID must see the mapping
        session.flush()
        return sample.id

    def _attach_samples(self, session: Session, well_id: int, sample_uuids: Iterable[str]) -> None:
        for sample_uuid in sample_uuids:
            session.add(
                models.Aliquot(
                    receptacle_id=well_id,
                    sample_id=self._sample_id(session, sample_uuid),
                )
            )

    def create_plate(
        self,
        plate: Plate,
        external_uuid: str,
        sample_uuids: Mapping[str, list[str]] | None = None,
    ) -> int:
        """Insert an Unassigned plate with one well per grid location and return its id.

        A plate whose UUID is already mapped is left untouched (redelivered
        creation message) and its existing id is returned.
        """

        sample_uuids = sample_uuids or {}
        with self._transaction("create plate") as session:
            existing = self._find_plate(session, external_uuid)
            if existing is not None:
                _logger.info("Plate %s already exists as asset %s", external_uuid, existing.id)
                return existing.id

            map_ids = dict(
                session.query(models.Map.description, models.Map.id)
                .filter(models.Map.asset_size == plate.asset_size)
                .all()
            )

            plate_asset = models.Asset(
                sti_type=models.PLATE, plate_purpose=models.UNASSIGNED_PURPOSE
            )
            session.add(plate_asset)
            session.flush()
            session.add(
                models.Uuid(
                    resource_type=models.ASSET,
                    resource_id=plate_asset.id,
                    external_id=external_uuid,
                )
            )

            for location in plate.locations():
                map_id = map_ids.get(location)
                if map_id is None:
                    raise TransactionFailure(
                        f"no map for location {location} on a {plate.asset_size}-well plate"
                    )
                well = models.Asset(sti_type=models.WELL, map_id=map_id)
                session.add(well)
                session.flush()
                session.add(
                    models.ContainerAssociation(container_id=plate_asset.id, content_id=well.id)
                )
                self._attach_samples(session, well.id, sample_uuids.get(location, ()))

            _logger.info(
                "Created plate %s as asset %s with %s wells",
                external_uuid,
                plate_asset.id,
                plate.asset_size,
            )
            return plate_asset.id

    def promote_plate(self, item_uuid: str) -> bool:
        """Set the plate's purpose to Stock Plate; False when it already was."""

        with self._transaction("promote plate") as session:
            plate = self._find_plate(session, item_uuid)
            if plate is None:
                raise PlateNotFound(item_uuid)
            if plate.plate_purpose == models.STOCK_PLATE_PURPOSE:
                return False
            plate.plate_purpose = models.STOCK_PLATE_PURPOSE
            _logger.info("Plate %s promoted to %s", item_uuid, models.STOCK_PLATE_PURPOSE)
            return True

    def delete_unassigned_plate(self, item_uuid: str) -> bool:
        """Remove a provisional plate with its wells, links and mapping.

        Unmapped UUIDs and stock plates are left alone and return False.
        """

        with self._transaction("delete unassigned plate") as session:
            plate = self._find_plate(session, item_uuid)
            if plate is None:
                return False
            if plate.plate_purpose == models.STOCK_PLATE_PURPOSE:
                _logger.info("Keeping stock plate %s referenced under a non-stock role", item_uuid)
                return False

            well_ids = [
                content_id
                for (content_id,) in session.query(models.ContainerAssociation.content_id)
                .filter(models.ContainerAssociation.container_id == plate.id)
                .all()
            ]
            if well_ids:
                session.query(models.Aliquot).filter(
                    models.Aliquot.receptacle_id.in_(well_ids)
                ).delete(synchronize_session=False)
            session.query(models.ContainerAssociation).filter(
                models.ContainerAssociation.container_id == plate.id
            ).delete(synchronize_session=False)
            if well_ids:
                session.query(models.Asset).filter(models.Asset.id.in_(well_ids)).delete(
                    synchronize_session=False
                )
            session.query(models.Asset).filter(models.Asset.id == plate.id).delete(
                synchronize_session=False
            )
            session.query(models.Uuid).filter(
                models.Uuid.resource_type == models.ASSET,
                models.Uuid.external_id == item_uuid,
            ).delete(synchronize_session=False)
            _logger.info("Deleted unassigned plate %s and %s wells", item_uuid, len(well_ids))
            return True

    def update_aliquots(
        self,
        plate_external_uuid: str,
        wells: Iterable[str],
        sample_uuids: Mapping[str, list[str]],
    ) -> None:
        """Replace the sample links of each listed well with the given sample UUIDs."""

        with self._transaction("update aliquots") as session:
            plate = self._find_plate(session, plate_external_uuid)
            if plate is None:
                raise PlateNotFound(plate_external_uuid)

            well_ids = dict(
                session.query(models.Map.description, models.Asset.id)
                .join(models.Asset, models.Asset.map_id == models.Map.id)
                .join(
                    models.ContainerAssociation,
                    models.ContainerAssociation.content_id == models.Asset.id,
                )
                .filter(models.ContainerAssociation.container_id == plate.id)
                .all()
            )
            for location in wells:
                well_id = well_ids.get(location)
                if well_id is None:
                    raise MalformedEvent(
                        f"plate {plate_external_uuid} has {len(well_ids)} wells "
                        f"and none at {location}"
                    )
                session.query(models.Aliquot).filter(
                    models.Aliquot.receptacle_id == well_id
                ).delete(synchronize_session=False)
                self._attach_samples(session, well_id, sample_uuids.get(location, ()))

    def handle_plate_create(self, decoded: DecodedResource) -> Outcome:
        try:
            self.create_plate(
                decoded.resource,
                decoded.external_uuid,
                decoded.sample_uuids_by_location,
            )
        except TransactionFailure as exc:
            _logger.error(
                "Error saving plate %s: %s (cause: %r)",
                decoded.external_uuid,
                exc,
                exc.__cause__,
            )
            return Outcome.REQUEUE
        return Outcome.ACK

    def handle_order(self, decoded: DecodedResource) -> Outcome:
        """Delete provisional plates, then promote every done stock plate item.

        The order is acknowledged only when every promotion succeeded; a
        missing plate or a failed transaction requeues the whole message.
        Promotions already applied stay applied since promotion is idempotent.
        """

        order: Order = decoded.resource
        stock_roles = [role for role in order.roles() if role in self.stock_plate_roles]
        stock_uuids = {item.uuid for role in stock_roles for item in order[role]}

        for role in order.roles():
            if role in self.stock_plate_roles:
                continue
            for item in order[role]:
                # any listing under a stock role, done or pending, protects the plate
                if item.uuid in stock_uuids:
                    continue
                try:
                    self.delete_unassigned_plate(item.uuid)
                except PlatesyncError as exc:
                    _logger.warning(
                        "Could not delete unassigned plate %s (role %s): %s",
                        item.uuid,
                        role,
                        exc,
                    )

        success = True
        for role in stock_roles:
            for item in order[role]:
                if item.status != self.done_status:
                    continue
                try:
                    self.promote_plate(item.uuid)
                except PlateNotFound as exc:
                    success = False
                    _logger.info("Plate not found, order %s will be requeued: %s", decoded.external_uuid, exc)
                except TransactionFailure as exc:
                    success = False
                    _logger.error(
                        "Error updating plate %s: %s (cause: %r)",
                        item.uuid,
                        exc,
                        exc.__cause__,
                    )
        return Outcome.ACK if success else Outcome.REQUEUE

    def handle_plate_transfer(self, decoded: DecodedResource) -> Outcome:
        plate: Plate = decoded.resource
        try:
            self.update_aliquots(
                decoded.external_uuid,
                plate.locations(),
                decoded.sample_uuids_by_location,
            )
        except PlateNotFound as exc:
            _logger.info("Transfer target not found, requeueing: %s", exc)
            return Outcome.REQUEUE
        except MalformedEvent as exc:
            _logger.warning("Transfer result does not fit the stored plate, dropping: %s", exc)
            return Outcome.DROP
        except TransactionFailure as exc:
            _logger.error(
                "Error updating plate aliquots %s: %s (cause: %r)",
                decoded.external_uuid,
                exc,
                exc.__cause__,
            )
            return Outcome.REQUEUE
        return Outcome.ACK
