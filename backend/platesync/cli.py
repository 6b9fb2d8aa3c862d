"""Command line entry points for the plate sync consumers."""

# purpose: start the reconciliation and audit consumers and prepare the store
# status: active
# depends_on: platesync.consumer, platesync.reconciler, platesync.database

from __future__ import annotations

import json
import logging

import sentry_sdk
import typer
from prometheus_client import start_http_server

from . import config
from .auditor import AUDIT_ROUTING_KEYS, Auditor
from .consumer import TopicConsumer
from .database import Base, create_db_engine, create_session_factory
from .dispatch import Dispatcher
from .errors import InvalidSettingsError
from .maps import seed_maps
from .reconciler import Reconciler
from .routing import binding_keys

app = typer.Typer(help="Project message bus plate events into the store")


def _broker_settings() -> config.BrokerSettings:
    try:
        return config.BrokerSettings.from_env()
    except InvalidSettingsError as exc:
        raise typer.BadParameter(str(exc))


@app.callback()
def main(
    log_level: str = typer.Option("INFO", help="Logging level for consumer output"),
) -> None:
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if config.SENTRY_DSN:
        sentry_sdk.init(dsn=config.SENTRY_DSN)


@app.command("consume")
def consume_command(
    queue_name: str = typer.Option(config.QUEUE_NAME, help="Queue bound to plate and order events"),
    database_url: str = typer.Option(config.DATABASE_URL, help="Store connection URL"),
) -> None:
    """Consume plate, tube rack, order and transfer events until interrupted."""

    settings = _broker_settings()
    if config.METRICS_PORT:
        start_http_server(int(config.METRICS_PORT))

    reconciler = Reconciler(create_session_factory(database_url))
    consumer = TopicConsumer(settings)
    consumer.add_queue(queue_name, binding_keys(), Dispatcher(reconciler))
    consumer.start()


@app.command("audit")
def audit_command(
    queue_name: str = typer.Option(config.AUDIT_QUEUE_NAME, help="Queue receiving every message"),
    audit_file: str = typer.Option(config.AUDIT_FILE, help="File the messages are appended to"),
) -> None:
    """Append every message on the exchange to the audit file."""

    consumer = TopicConsumer(_broker_settings())
    consumer.add_queue(queue_name, AUDIT_ROUTING_KEYS, Auditor(audit_file))
    typer.echo(f"Incoming messages are stored in {audit_file}")
    consumer.start()


@app.command("init-db")
def init_db_command(
    database_url: str = typer.Option(config.DATABASE_URL, help="Store connection URL"),
) -> None:
    """Create the store tables when they do not exist."""

    Base.metadata.create_all(bind=create_db_engine(database_url))
    typer.echo(json.dumps({"tables": sorted(Base.metadata.tables)}))


@app.command("seed-maps")
def seed_maps_command(
    rows: int = typer.Option(8, min=1, help="Number of rows on the plate"),
    columns: int = typer.Option(12, min=1, help="Number of columns on the plate"),
    database_url: str = typer.Option(config.DATABASE_URL, help="Store connection URL"),
) -> None:
    """Insert the location maps needed to store plates of the given size."""

    session_factory = create_session_factory(database_url)
    with session_factory.begin() as db:
        added = seed_maps(db, rows, columns)
    typer.echo(json.dumps({"asset_size": rows * columns, "added": added}))


if __name__ == "__main__":
    app()
