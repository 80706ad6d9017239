"""create work items

Revision ID: 202610180001
Revises:
Create Date: 2026-10-18 00:01:00
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa


revision: str = "202610180001"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "organizations",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("slug", sa.String(length=100), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("slug"),
    )

    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("first_name", sa.String(length=100), nullable=True),
        sa.Column("last_name", sa.String(length=100), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )

    op.create_table(
        "work_item_types",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("organization_id", sa.Uuid(), nullable=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["organization_id"], ["organizations.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_work_item_types_org", "work_item_types", ["organization_id"], unique=False)

    op.create_table(
        "work_item_statuses",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("work_item_type_id", sa.Uuid(), nullable=False),
        sa.Column("status_name", sa.String(length=100), nullable=False),
        sa.Column("status_category", sa.String(length=32), nullable=False),
        sa.Column("is_initial", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_final", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("color", sa.String(length=50), nullable=True),
        sa.Column("display_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["work_item_type_id"], ["work_item_types.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_work_item_statuses_type", "work_item_statuses", ["work_item_type_id"], unique=False)

    op.create_table(
        "work_item_status_transitions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("work_item_type_id", sa.Uuid(), nullable=False),
        sa.Column("from_status_id", sa.Uuid(), nullable=False),
        sa.Column("to_status_id", sa.Uuid(), nullable=False),
        sa.Column("is_allowed", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["work_item_type_id"], ["work_item_types.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["from_status_id"], ["work_item_statuses.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["to_status_id"], ["work_item_statuses.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "work_item_type_id",
            "from_status_id",
            "to_status_id",
            name="uq_work_item_status_transition",
        ),
    )

    op.create_table(
        "work_item_fields",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("work_item_type_id", sa.Uuid(), nullable=False),
        sa.Column("field_name", sa.String(length=100), nullable=False),
        sa.Column("field_label", sa.String(length=255), nullable=False),
        sa.Column("field_type", sa.String(length=50), nullable=False),
        sa.Column("field_description", sa.Text(), nullable=True),
        sa.Column("field_options", sa.JSON(), nullable=True),
        sa.Column("is_required_on_creation", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_required_to_complete", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_visible", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("display_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["work_item_type_id"], ["work_item_types.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_work_item_fields_type", "work_item_fields", ["work_item_type_id"], unique=False)

    op.create_table(
        "work_items",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("work_item_type_id", sa.Uuid(), nullable=False),
        sa.Column("organization_id", sa.Uuid(), nullable=False),
        sa.Column("subject", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status_id", sa.Uuid(), nullable=False),
        sa.Column("priority", sa.String(length=20), nullable=False, server_default="medium"),
        sa.Column("assigned_to", sa.Uuid(), nullable=True),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("parent_work_item_id", sa.Uuid(), nullable=True),
        sa.Column("root_work_item_id", sa.Uuid(), nullable=True),
        sa.Column("depth", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("path", sa.Text(), nullable=True),
        sa.Column("created_by", sa.Uuid(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["work_item_type_id"], ["work_item_types.id"]),
        sa.ForeignKeyConstraint(["organization_id"], ["organizations.id"]),
        sa.ForeignKeyConstraint(["status_id"], ["work_item_statuses.id"]),
        sa.ForeignKeyConstraint(["assigned_to"], ["users.id"]),
        sa.ForeignKeyConstraint(["created_by"], ["users.id"]),
        sa.ForeignKeyConstraint(["parent_work_item_id"], ["work_items.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_work_items_org", "work_items", ["organization_id"], unique=False)
    op.create_index("ix_work_items_type", "work_items", ["work_item_type_id"], unique=False)
    op.create_index("ix_work_items_status", "work_items", ["status_id"], unique=False)
    op.create_index("ix_work_items_parent", "work_items", ["parent_work_item_id"], unique=False)
    op.create_index("ix_work_items_root", "work_items", ["root_work_item_id"], unique=False)
    op.create_index("ix_work_items_created_by", "work_items", ["created_by"], unique=False)
    op.create_index("ix_work_items_path", "work_items", ["path"], unique=False)
    op.create_index("ix_work_items_deleted_at", "work_items", ["deleted_at"], unique=False)

    op.create_table(
        "work_item_field_values",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("work_item_id", sa.Uuid(), nullable=False),
        sa.Column("work_item_field_id", sa.Uuid(), nullable=False),
        sa.Column("field_value", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["work_item_id"], ["work_items.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["work_item_field_id"], ["work_item_fields.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("work_item_id", "work_item_field_id", name="uq_work_item_field_value"),
    )
    op.create_index(
        "ix_work_item_field_values_work_item",
        "work_item_field_values",
        ["work_item_id"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_work_item_field_values_work_item", table_name="work_item_field_values")
    op.drop_table("work_item_field_values")
    for index_name in (
        "ix_work_items_deleted_at",
        "ix_work_items_path",
        "ix_work_items_created_by",
        "ix_work_items_root",
        "ix_work_items_parent",
        "ix_work_items_status",
        "ix_work_items_type",
        "ix_work_items_org",
    ):
        op.drop_index(index_name, table_name="work_items")
    op.drop_table("work_items")
    op.drop_index("ix_work_item_fields_type", table_name="work_item_fields")
    op.drop_table("work_item_fields")
    op.drop_table("work_item_status_transitions")
    op.drop_index("ix_work_item_statuses_type", table_name="work_item_statuses")
    op.drop_table("work_item_statuses")
    op.drop_index("ix_work_item_types_org", table_name="work_item_types")
    op.drop_table("work_item_types")
    op.drop_table("users")
    op.drop_table("organizations")
