"""Create plate, well, map, uuid and aliquot tables."""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261018_01"
down_revision: str | Sequence[str] | None = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create the store tables the plate consumer writes to."""

    op.create_table(
        "maps",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("description", sa.String(), nullable=False),
        sa.Column("asset_size", sa.Integer(), nullable=False),
        sa.UniqueConstraint("description", "asset_size"),
    )
    op.create_table(
        "assets",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("sti_type", sa.String(), nullable=False),
        sa.Column("plate_purpose", sa.String(), nullable=True),
        sa.Column("map_id", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["map_id"], ["maps.id"]),
    )
    op.create_table(
        "container_associations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("container_id", sa.Integer(), nullable=False),
        sa.Column("content_id", sa.Integer(), nullable=False, unique=True),
        sa.ForeignKeyConstraint(["container_id"], ["assets.id"]),
        sa.ForeignKeyConstraint(["content_id"], ["assets.id"]),
    )
    op.create_table(
        "uuids",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("resource_type", sa.String(), nullable=False),
        sa.Column("resource_id", sa.Integer(), nullable=False),
        sa.Column("external_id", sa.String(), nullable=False),
        sa.UniqueConstraint("resource_type", "external_id"),
    )
    op.create_index("ix_uuids_external_id", "uuids", ["external_id"])
    op.create_table(
        "samples",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(), nullable=True),
    )
    op.create_table(
        "aliquots",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("receptacle_id", sa.Integer(), nullable=False),
        sa.Column("sample_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["receptacle_id"], ["assets.id"]),
        sa.ForeignKeyConstraint(["sample_id"], ["samples.id"]),
    )
    op.create_index("ix_aliquots_receptacle_id", "aliquots", ["receptacle_id"])


def downgrade() -> None:
    op.drop_index("ix_aliquots_receptacle_id", table_name="aliquots")
    op.drop_table("aliquots")
    op.drop_table("samples")
    op.drop_index("ix_uuids_external_id", table_name="uuids")
    op.drop_table("uuids")
    op.drop_table("container_associations")
    op.drop_table("assets")
    op.drop_table("maps")
