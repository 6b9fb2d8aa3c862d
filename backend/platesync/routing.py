"""Routing key matching for topic-exchange deliveries."""

# purpose: select the handler for a delivery from an ordered (pattern, handler) table
# inputs: dot-delimited routing key
# outputs: HandlerKind or None when the key is not one we consume
# status: active

from __future__ import annotations

import enum
from typing import Sequence


class Outcome(str, enum.Enum):
    """Settlement of a delivery: ACK and DROP acknowledge, REQUEUE rejects with requeue."""

    ACK = "ack"
    DROP = "drop"
    REQUEUE = "requeue"


class HandlerKind(str, enum.Enum):
    PLATE_CREATE = "plate-create"
    ORDER_UPDATE = "order-update"
    PLATE_TRANSFER = "plate-transfer"


# first match wins
ROUTES: tuple[tuple[str, HandlerKind], ...] = (
    ("*.*.plate.create", HandlerKind.PLATE_CREATE),
    ("*.*.tuberack.create", HandlerKind.PLATE_CREATE),
    ("*.*.order.create", HandlerKind.ORDER_UPDATE),
    ("*.*.order.updateorder", HandlerKind.ORDER_UPDATE),
    ("*.*.platetransfer.platetransfer", HandlerKind.PLATE_TRANSFER),
)

# models each handler accepts once the body is decoded
ACCEPTED_MODELS: dict[HandlerKind, frozenset[str]] = {
    HandlerKind.PLATE_CREATE: frozenset({"plate", "tube_rack"}),
    HandlerKind.ORDER_UPDATE: frozenset({"order"}),
    HandlerKind.PLATE_TRANSFER: frozenset({"plate_transfer"}),
}


def topic_matches(pattern: str, routing_key: str) -> bool:
    """Match a routing key against a topic pattern (`*` one segment, `#` zero or more)."""

    return _match(pattern.split("."), routing_key.split("."))


def _match(pattern: Sequence[str], words: Sequence[str]) -> bool:
    if not pattern:
        return not words
    head, rest = pattern[0], pattern[1:]
    if head == "#":
        return any(_match(rest, words[skip:]) for skip in range(len(words) + 1))
    if not words:
        return False
    if head == "*" or head == words[0]:
        return _match(rest, words[1:])
    return False


def resolve_handler(
    routing_key: str,
    routes: Sequence[tuple[str, HandlerKind]] = ROUTES,
) -> HandlerKind | None:
    for pattern, kind in routes:
        if topic_matches(pattern, routing_key):
            return kind
    return None


def binding_keys(routes: Sequence[tuple[str, HandlerKind]] = ROUTES) -> list[str]:
    return [pattern for pattern, _ in routes]
