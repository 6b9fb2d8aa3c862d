import json

import pytest

from platesync.auditor import AUDIT_ROUTING_KEYS, Auditor
from platesync.config import BrokerSettings
from platesync.consumer import Delivery, TopicConsumer, settle
from platesync.dispatch import Dispatcher
from platesync.errors import InvalidSettingsError
from platesync.routing import Outcome, binding_keys
from platesync.tests.conftest import FakeMessage, lookup_plate, order_body, plate_body

SETTINGS = {"url": "memory://", "exchange_name": "psd", "durable": False}


@pytest.fixture
def consumer():
    return TopicConsumer(BrokerSettings.parse(SETTINGS))


@pytest.mark.parametrize(
    "values",
    [
        {"url": "", "exchange_name": "psd"},
        {"url": "amqp://localhost//", "exchange_name": "  "},
        {"exchange_name": "psd"},
    ],
)
def test_invalid_broker_settings(values):
    with pytest.raises(InvalidSettingsError):
        BrokerSettings.parse(values)


@pytest.mark.parametrize(
    "outcome,acked,requeue",
    [(Outcome.ACK, True, None), (Outcome.DROP, True, None), (Outcome.REQUEUE, False, True)],
)
def test_settle_translates_outcome(outcome, acked, requeue):
    message = FakeMessage("a.b.c.d", b"{}")

    settle(message, outcome)

    assert message.settled.acked is acked
    assert message.settled.requeue is requeue


def test_queue_is_bound_to_topic_exchange(consumer):
    queue = consumer.add_queue("plates", binding_keys(), lambda delivery: Outcome.ACK)

    assert consumer.exchange.type == "topic"
    assert consumer.exchange.name == "psd"
    assert {b.routing_key for b in queue.bindings} == set(binding_keys())
    assert all(b.exchange.name == "psd" for b in queue.bindings)


def test_consumers_use_prefetch_of_one(consumer):
    consumer.add_queue("plates", binding_keys(), lambda delivery: Outcome.ACK)
    consumer.add_queue("audit", AUDIT_ROUTING_KEYS, lambda delivery: Outcome.ACK)
    created = []

    def fake_consumer(**kwargs):
        created.append(kwargs)
        return kwargs

    consumers = consumer.get_consumers(fake_consumer, channel=None)

    assert len(consumers) == 2
    assert all(kwargs["prefetch_count"] == 1 for kwargs in created)
    assert [kwargs["queues"][0].name for kwargs in created] == ["plates", "audit"]


def test_deliveries_flow_from_message_to_store(consumer, reconciler, db):
    consumer.add_queue("plates", binding_keys(), Dispatcher(reconciler))
    on_message = consumer.on_message_for(consumer.registrations["plates"])

    early_order = FakeMessage(
        "s2.1.order.updateorder",
        json.dumps(order_body({"WGS Stock Plate": [{"uuid": "P1", "status": "done"}]})).encode(),
    )
    on_message(early_order)
    assert early_order.settled.rejected and early_order.settled.requeue is True

    plate = FakeMessage("s2.1.plate.create", json.dumps(plate_body("P1")).encode())
    on_message(plate)
    assert plate.settled.acked

    redelivered = FakeMessage(early_order.delivery_info["routing_key"], early_order.body)
    on_message(redelivered)
    assert redelivered.settled.acked
    assert lookup_plate(db, "P1").plate_purpose == "Stock Plate"


def test_unrouted_delivery_is_acknowledged(consumer, reconciler):
    consumer.add_queue("plates", binding_keys(), Dispatcher(reconciler))
    message = FakeMessage("s2.1.gel.create", b"{}")

    consumer.on_message_for(consumer.registrations["plates"])(message)

    assert message.settled.acked and not message.settled.rejected


def test_auditor_appends_every_message(tmp_path, consumer):
    audit_file = tmp_path / "logs" / "audit.log"
    consumer.add_queue("audit", AUDIT_ROUTING_KEYS, Auditor(audit_file))
    on_message = consumer.on_message_for(consumer.registrations["audit"])

    first = FakeMessage("s2.1.plate.create", b'{"plate": {}}')
    second = FakeMessage("anything.else", "plain text", content_type="text/plain")
    on_message(first)
    on_message(second)

    assert first.settled.acked and second.settled.acked
    assert audit_file.read_text().splitlines() == [
        "routing key = s2.1.plate.create",
        "content-type = application/json",
        '{"plate": {}}',
        "routing key = anything.else",
        "content-type = text/plain",
        "plain text",
    ]


def test_auditor_returns_ack(tmp_path):
    auditor = Auditor(tmp_path / "audit.log")

    assert auditor(Delivery(routing_key="x", body=b"payload")) is Outcome.ACK
    assert (tmp_path / "audit.log").read_text().endswith("payload\n")


def test_auditor_write_failure_still_acknowledges(tmp_path, consumer):
    unwritable = tmp_path / "audit.log"
    unwritable.mkdir()
    consumer.add_queue("audit", AUDIT_ROUTING_KEYS, Auditor(unwritable))
    on_message = consumer.on_message_for(consumer.registrations["audit"])

    message = FakeMessage("s2.1.plate.create", b'{"plate": {}}')
    on_message(message)

    assert message.settled.acked
    assert not message.settled.rejected
