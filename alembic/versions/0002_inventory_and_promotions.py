from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


revision = "0002_inventory_and_promotions"
down_revision = "0001_initial_schema"
branch_labels = None
depends_on = None


def _has_index(inspector, table_name: str, index_name: str) -> bool:
    return any(idx["name"] == index_name for idx in inspector.get_indexes(table_name))


def _create_indexes(bind, table_name: str, indexes: list[tuple[str, list[str], bool]]) -> None:
    inspector = inspect(bind)
    for name, columns, unique in indexes:
        if not _has_index(inspector, table_name, name):
            op.create_index(name, table_name, columns, unique=unique)


def upgrade() -> None:
    bind = op.get_bind()
    tables = set(inspect(bind).get_table_names())

    if "inventory_items" not in tables:
        op.create_table(
            "inventory_items",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("name", sa.String(length=100), nullable=False),
            sa.Column("stock", sa.Numeric(12, 3), nullable=False, server_default="0"),
            sa.Column("unit", sa.String(length=20), nullable=False),
            sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
            sa.CheckConstraint("stock >= 0", name="ck_inventory_items_stock_non_negative"),
        )
    _create_indexes(
        bind,
        "inventory_items",
        [
            ("ix_inventory_items_name", ["name"], True),
            ("ix_inventory_items_active", ["active"], False),
        ],
    )

    if "promotions" not in tables:
        op.create_table(
            "promotions",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("restaurant_id", sa.Integer(), sa.ForeignKey("restaurants.id"), nullable=False),
            sa.Column("name", sa.String(length=100), nullable=False),
            sa.Column("description", sa.Text(), nullable=False),
            sa.Column("kind", sa.String(length=20), nullable=False),
            sa.Column("discount_kind", sa.String(length=20), nullable=False, server_default="PERCENTAGE"),
            sa.Column("discount_value", sa.Numeric(10, 2), nullable=False),
            sa.Column("starts_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("ends_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("menu_item_ids", sa.JSON(), nullable=False),
            sa.Column("conditions", sa.String(length=500), nullable=False),
            sa.Column("image_url", sa.String(length=500), nullable=True),
            sa.Column("minimum_purchase", sa.Numeric(10, 2), nullable=False, server_default="0"),
            sa.Column("max_uses", sa.Integer(), nullable=True),
            sa.Column("current_uses", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="ACTIVE"),
            sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_by", sa.String(length=64), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
            sa.CheckConstraint(
                "max_uses IS NULL OR current_uses <= max_uses",
                name="ck_promotions_uses_within_limit",
            ),
        )
    _create_indexes(
        bind,
        "promotions",
        [
            ("ix_promotions_restaurant_id", ["restaurant_id"], False),
            ("ix_promotions_status", ["status"], False),
            ("ix_promotions_restaurant_window", ["restaurant_id", "starts_at", "ends_at"], False),
        ],
    )


def downgrade() -> None:
    op.drop_table("promotions")
    op.drop_table("inventory_items")
