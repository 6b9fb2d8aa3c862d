"""Append every message seen on the bus to an audit file."""

# purpose: keep a raw trail of bus traffic, bound with '#' so it sees every routing key
# status: active

from __future__ import annotations

import logging
from pathlib import Path

from .consumer import Delivery
from .routing import Outcome

AUDIT_ROUTING_KEYS = ["#"]

_logger = logging.getLogger(__name__)


class Auditor:
    def __init__(self, audit_file: str | Path) -> None:
        self.audit_file = Path(audit_file)

    def __call__(self, delivery: Delivery) -> Outcome:
        # audit messages are acknowledged even when the write fails
        try:
            self.write_message(delivery)
        except OSError:
            _logger.exception(
                "Could not write %s message to %s", delivery.routing_key, self.audit_file
            )
        return Outcome.ACK

    def write_message(self, delivery: Delivery) -> None:
        body = delivery.body
        if isinstance(body, bytes):
            body = body.decode("utf-8", errors="replace")
        self.audit_file.parent.mkdir(parents=True, exist_ok=True)
        with self.audit_file.open("a", encoding="utf-8") as handle:
            handle.write(f"routing key = {delivery.routing_key}\n")
            handle.write(f"content-type = {delivery.content_type}\n")
            handle.write(f"{body}\n")
