"""Dispatch routed deliveries to the reconciler and record their outcome."""

# purpose: glue routing, decoding and reconciliation into one (routing_key, body) -> Outcome call
# inputs: routing key and raw body of a delivery
# outputs: Outcome for the consumer shell, prometheus counters and latency
# status: active

from __future__ import annotations

import logging
from typing import Any, Callable, Sequence

import sentry_sdk
from prometheus_client import Counter, Histogram

from .consumer import Delivery
from .decoders import decode_resource
from .errors import MalformedEvent, UnsupportedModel
from .reconciler import Reconciler
from .resources import DecodedResource
from .routing import ACCEPTED_MODELS, ROUTES, HandlerKind, Outcome, resolve_handler

_logger = logging.getLogger(__name__)

MESSAGE_COUNT = Counter(
    "platesync_messages_total", "Deliveries handled", ["handler", "outcome"]
)
MESSAGE_LATENCY = Histogram(
    "platesync_message_latency_seconds", "Delivery handling latency", ["handler"]
)

UNROUTED = "unrouted"


class Dispatcher:
    def __init__(
        self,
        reconciler: Reconciler,
        routes: Sequence[tuple[str, HandlerKind]] = ROUTES,
    ) -> None:
        self.reconciler = reconciler
        self.routes = routes
        self._handlers: dict[HandlerKind, Callable[[DecodedResource], Outcome]] = {
            HandlerKind.PLATE_CREATE: reconciler.handle_plate_create,
            HandlerKind.ORDER_UPDATE: reconciler.handle_order,
            HandlerKind.PLATE_TRANSFER: reconciler.handle_plate_transfer,
        }

    def __call__(self, delivery: Delivery) -> Outcome:
        return self.dispatch(delivery.routing_key, delivery.body)

    def dispatch(self, routing_key: str, body: bytes | str | dict[str, Any]) -> Outcome:
        kind = resolve_handler(routing_key, self.routes)
        if kind is None:
            _logger.debug("No handler for routing key %s, dropping", routing_key)
            MESSAGE_COUNT.labels(UNROUTED, Outcome.DROP.value).inc()
            return Outcome.DROP

        with MESSAGE_LATENCY.labels(kind.value).time():
            outcome = self._handle(kind, routing_key, body)
        MESSAGE_COUNT.labels(kind.value, outcome.value).inc()
        _logger.info("%s message %s: %s", kind.value, routing_key, outcome.value)
        return outcome

    def _handle(self, kind: HandlerKind, routing_key: str, body: Any) -> Outcome:
        try:
            decoded = decode_resource(body)
            if decoded.model not in ACCEPTED_MODELS[kind]:
                raise MalformedEvent(
                    f"'{decoded.model}' body cannot be handled as {kind.value}"
                )
        except (MalformedEvent, UnsupportedModel) as exc:
            _logger.warning("Dropping %s message: %s", routing_key, exc)
            return Outcome.DROP

        try:
            return self._handlers[kind](decoded)
        except Exception as exc:
            _logger.exception("Unexpected error handling %s message, requeueing", routing_key)
            sentry_sdk.capture_exception(exc)
            return Outcome.REQUEUE
