import json

from typer.testing import CliRunner

from platesync import models
from platesync.cli import app
from platesync.database import create_session_factory

runner = CliRunner()


def test_init_db_and_seed_maps(tmp_path):
    url = f"sqlite:///{tmp_path / 'cli.db'}"

    created = runner.invoke(app, ["init-db", "--database-url", url])
    assert created.exit_code == 0, created.output
    assert "container_associations" in json.loads(created.output)["tables"]

    seeded = runner.invoke(
        app, ["seed-maps", "--rows", "2", "--columns", "3", "--database-url", url]
    )
    assert seeded.exit_code == 0, seeded.output
    assert json.loads(seeded.output) == {"asset_size": 6, "added": 6}

    again = runner.invoke(
        app, ["seed-maps", "--rows", "2", "--columns", "3", "--database-url", url]
    )
    assert json.loads(again.output)["added"] == 0

    session = create_session_factory(url)()
    try:
        descriptions = {
            m.description for m in session.query(models.Map).filter_by(asset_size=6)
        }
    finally:
        session.close()
    assert descriptions == {"A1", "A2", "A3", "B1", "B2", "B3"}
