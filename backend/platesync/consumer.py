"""Topic-exchange consumer shell built on kombu."""

# purpose: bind named queues to routing keys and settle each delivery from its handler's Outcome
# inputs: BrokerSettings, (queue name, routing keys, handler) registrations
# outputs: ack / reject(requeue=True) sent back to the broker
# status: active

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

from kombu import Connection, Exchange, Queue, binding
from kombu.mixins import ConsumerMixin

from .config import BrokerSettings
from .routing import Outcome

_logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Delivery:
    routing_key: str
    body: bytes | str
    content_type: str | None = None


Handler = Callable[[Delivery], Outcome]


@dataclass(slots=True)
class QueueRegistration:
    name: str
    routing_keys: list[str]
    handler: Handler
    queue: Queue | None = field(default=None)


def settle(message, outcome: Outcome) -> None:
    if outcome is Outcome.REQUEUE:
        message.reject(requeue=True)
    else:
        message.ack()


class TopicConsumer(ConsumerMixin):
    """Consume one or more queues bound to a topic exchange.

    Deliveries are processed one at a time per queue (prefetch of one); the
    handler runs to completion before its message is settled.
    """

    def __init__(self, settings: BrokerSettings) -> None:
        self.settings = settings
        self.connection: Connection | None = None
        self.exchange = Exchange(
            settings.exchange_name, type="topic", durable=settings.durable
        )
        self.registrations: dict[str, QueueRegistration] = {}

    def add_queue(self, queue_name: str, routing_keys: list[str], handler: Handler) -> Queue:
        queue = Queue(
            queue_name,
            bindings=[binding(self.exchange, routing_key=key) for key in routing_keys],
            durable=self.settings.durable,
        )
        self.registrations[queue_name] = QueueRegistration(
            name=queue_name,
            routing_keys=list(routing_keys),
            handler=handler,
            queue=queue,
        )
        return queue

    def get_consumers(self, Consumer, channel):
        return [
            Consumer(
                queues=[registration.queue],
                on_message=self.on_message_for(registration),
                prefetch_count=1,
            )
            for registration in self.registrations.values()
        ]

    def on_message_for(self, registration: QueueRegistration) -> Callable:
        def on_message(message) -> None:
            delivery = Delivery(
                routing_key=message.delivery_info.get("routing_key", ""),
                body=message.body,
                content_type=message.content_type,
            )
            outcome = registration.handler(delivery)
            settle(message, outcome)

        return on_message

    def on_connection_error(self, exc, interval):
        _logger.warning("Broker connection error: %s, retrying in %ss", exc, interval)

    def start(self) -> None:
        _logger.info(
            "Consuming %s from exchange %s",
            ", ".join(self.registrations),
            self.settings.exchange_name,
        )
        with Connection(self.settings.url) as connection:
            self.connection = connection
            self.run()
