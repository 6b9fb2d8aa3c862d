"""Decoders turning message bus JSON bodies into normalized resources."""

# purpose: map each top-level model name to a pure decoder producing a DecodedResource
# inputs: raw message body (bytes/str/dict) keyed by a single model name
# outputs: DecodedResource with plate or order resource, external uuid and sample uuids
# status: active

from __future__ import annotations

import json
from typing import Any, Callable, Iterable

from pydantic import ValidationError

from .errors import MalformedEvent, UnsupportedModel
from .resources import Aliquot, DecodedResource, Order, OrderItem, Plate
from .schemas import (
    AliquotPayload,
    OrderPayload,
    PlatePayload,
    PlateTransferPayload,
    TubeRackPayload,
)

Decoder = Callable[[dict[str, Any]], DecodedResource]


def parse_body(raw: bytes | str | dict[str, Any]) -> dict[str, Any]:
    """Return the JSON object carried by a message body."""

    if isinstance(raw, dict):
        return raw
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedEvent("message body is not utf-8") from exc
    try:
        body = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise MalformedEvent(f"message body is not valid JSON: {exc}") from exc
    if not isinstance(body, dict):
        raise MalformedEvent("message body must be a JSON object")
    return body


def model_name(body: dict[str, Any]) -> str:
    # the model is the first key; envelope fields such as action/date may follow
    if not body:
        raise MalformedEvent("message body has no model")
    return next(iter(body))


def _validate(schema, value: Any, model: str):
    if not isinstance(value, dict):
        raise MalformedEvent(f"'{model}' body must be a JSON object")
    try:
        return schema.model_validate(value)
    except ValidationError as exc:
        raise MalformedEvent(f"invalid '{model}' payload: {exc}") from exc


def _build_plate(
    number_of_rows: int,
    number_of_columns: int,
    contents: Iterable[tuple[str, list[AliquotPayload] | None]],
) -> tuple[Plate, dict[str, list[str]]]:
    plate = Plate(number_of_rows=number_of_rows, number_of_columns=number_of_columns)
    sample_uuids: dict[str, list[str]] = {}
    for location, aliquots in contents:
        if location not in plate:
            raise MalformedEvent(
                f"location {location} is outside a {number_of_rows}x{number_of_columns} grid"
            )
        for aliquot in aliquots or []:
            sample_uuid = aliquot.sample.uuid if aliquot.sample else None
            plate[location].append(Aliquot(sample_uuid=sample_uuid))
            if sample_uuid is not None:
                sample_uuids.setdefault(location, []).append(sample_uuid)
    return plate, sample_uuids


def decode_plate(body: dict[str, Any]) -> DecodedResource:
    payload = _validate(PlatePayload, body.get("plate"), "plate")
    plate, sample_uuids = _build_plate(
        payload.number_of_rows, payload.number_of_columns, payload.wells.items()
    )
    return DecodedResource(
        model="plate",
        resource=plate,
        external_uuid=payload.uuid,
        sample_uuids_by_location=sample_uuids,
    )


def decode_tube_rack(body: dict[str, Any]) -> DecodedResource:
    """Decode a tube rack into the Plate shape; each tube stands for the well at its location."""

    payload = _validate(TubeRackPayload, body.get("tube_rack"), "tube_rack")
    plate, sample_uuids = _build_plate(
        payload.number_of_rows,
        payload.number_of_columns,
        (
            (location, tube.aliquots if tube else None)
            for location, tube in payload.tubes.items()
        ),
    )
    return DecodedResource(
        model="tube_rack",
        resource=plate,
        external_uuid=payload.uuid,
        sample_uuids_by_location=sample_uuids,
    )


def decode_order(body: dict[str, Any]) -> DecodedResource:
    payload = _validate(OrderPayload, body.get("order"), "order")
    order = Order(
        items={
            role: [OrderItem(uuid=item.uuid, status=item.status) for item in items]
            for role, items in payload.items.items()
        }
    )
    return DecodedResource(model="order", resource=order, external_uuid=payload.uuid)


def decode_plate_transfer(body: dict[str, Any]) -> DecodedResource:
    """A transfer is described by the resulting plate, decoded like a plate creation."""

    payload = _validate(PlateTransferPayload, body.get("plate_transfer"), "plate_transfer")
    decoded = decode_plate(payload.result)
    decoded.model = "plate_transfer"
    return decoded


DECODERS: dict[str, Decoder] = {
    "plate": decode_plate,
    "tube_rack": decode_tube_rack,
    "order": decode_order,
    "plate_transfer": decode_plate_transfer,
}


def decoder_for(model: str) -> Decoder:
    try:
        return DECODERS[model]
    except KeyError:
        raise UnsupportedModel(model) from None


def decode_resource(raw: bytes | str | dict[str, Any]) -> DecodedResource:
    """Parse a message body and decode it with the decoder registered for its model."""

    body = parse_body(raw)
    return decoder_for(model_name(body))(body)
