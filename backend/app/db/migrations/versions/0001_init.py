"""init

Revision ID: 0001_init
Revises: 
Create Date: 2026-10-18

"""
from alembic import op
import sqlalchemy as sa

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()")),
    ]


def upgrade():
    op.create_table(
        "import_template",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=256), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_import_template_name", "import_template", ["name"], unique=True)

    op.create_table(
        "template_column",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("template_id", sa.Integer(), sa.ForeignKey("import_template.id", ondelete="CASCADE"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=256), nullable=False),
        sa.Column("data_type", sa.String(length=16), nullable=False, server_default="string"),
        sa.Column("required", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        *_timestamps(),
        sa.UniqueConstraint("template_id", "position", name="uq_template_column_position"),
        sa.CheckConstraint("position > 0", name="ck_template_column_position_positive"),
    )
    op.create_index("ix_template_column_template_id", "template_column", ["template_id"])

    op.create_table(
        "data_record",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("template_id", sa.Integer(), sa.ForeignKey("import_template.id", ondelete="CASCADE"), nullable=False),
        sa.Column("import_batch_id", sa.String(length=32), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_data_record_template_id", "data_record", ["template_id"])
    op.create_index("ix_data_record_import_batch_id", "data_record", ["import_batch_id"])

    op.create_table(
        "data_record_value",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("record_id", sa.Integer(), sa.ForeignKey("data_record.id", ondelete="CASCADE"), nullable=False),
        sa.Column("column_id", sa.Integer(), sa.ForeignKey("template_column.id", ondelete="CASCADE"), nullable=False),
        sa.Column("value", sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("record_id", "column_id", name="uq_record_value_column"),
    )
    op.create_index("ix_data_record_value_record_id", "data_record_value", ["record_id"])
    op.create_index("ix_data_record_value_column_id", "data_record_value", ["column_id"])


def downgrade():
    op.drop_table("data_record_value")
    op.drop_table("data_record")
    op.drop_table("template_column")
    op.drop_table("import_template")
