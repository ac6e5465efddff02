from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


revision = "0001_initial_schema"
down_revision = None
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
    inspector = inspect(bind)
    tables = set(inspector.get_table_names())

    if "restaurants" not in tables:
        op.create_table(
            "restaurants",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("name", sa.String(length=100), nullable=False),
            sa.Column("address", sa.String(length=200), nullable=False),
            sa.Column("category", sa.String(length=20), nullable=False),
            sa.Column("schedule", sa.Text(), nullable=False, server_default=""),
            sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        )
    _create_indexes(
        bind,
        "restaurants",
        [
            ("ix_restaurants_category", ["category"], False),
            ("ix_restaurants_active", ["active"], False),
        ],
    )

    if "menu_items" not in tables:
        op.create_table(
            "menu_items",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("restaurant_id", sa.Integer(), sa.ForeignKey("restaurants.id"), nullable=False),
            sa.Column("name", sa.String(length=100), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("price", sa.Numeric(10, 2), nullable=False),
            sa.Column("category", sa.String(length=20), nullable=False),
            sa.Column("ingredients", sa.JSON(), nullable=False),
            sa.Column("photo_url", sa.String(length=500), nullable=True),
            sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("available", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        )
    _create_indexes(
        bind,
        "menu_items",
        [
            ("ix_menu_items_restaurant_id", ["restaurant_id"], False),
            ("ix_menu_items_restaurant_category", ["restaurant_id", "category"], False),
        ],
    )

    if "dining_tables" not in tables:
        op.create_table(
            "dining_tables",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("restaurant_id", sa.Integer(), sa.ForeignKey("restaurants.id"), nullable=False),
            sa.Column("number", sa.Integer(), nullable=False),
            sa.Column("capacity", sa.Integer(), nullable=False),
            sa.Column("location", sa.String(length=100), nullable=False, server_default=""),
            sa.Column("joinable", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
            sa.UniqueConstraint("restaurant_id", "number", name="uq_dining_tables_restaurant_number"),
        )
    _create_indexes(
        bind,
        "dining_tables",
        [
            ("ix_dining_tables_restaurant_id", ["restaurant_id"], False),
            ("ix_dining_tables_active", ["active"], False),
        ],
    )

    if "coupons" not in tables:
        op.create_table(
            "coupons",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("code", sa.String(length=20), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("kind", sa.String(length=20), nullable=False),
            sa.Column("percentage", sa.Numeric(5, 2), nullable=True),
            sa.Column("fixed_amount", sa.Numeric(10, 2), nullable=True),
            sa.Column("starts_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
            sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("max_redemptions", sa.Integer(), nullable=True),
            sa.Column("current_redemptions", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("minimum_subtotal", sa.Numeric(10, 2), nullable=False, server_default="0"),
            sa.Column("discount_cap", sa.Numeric(10, 2), nullable=True),
            sa.Column("restaurant_id", sa.Integer(), sa.ForeignKey("restaurants.id"), nullable=True),
            sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
            sa.CheckConstraint(
                "max_redemptions IS NULL OR current_redemptions <= max_redemptions",
                name="ck_coupons_redemptions_within_limit",
            ),
        )
    _create_indexes(
        bind,
        "coupons",
        [
            ("ix_coupons_code", ["code"], True),
            ("ix_coupons_expires_at", ["expires_at"], False),
            ("ix_coupons_restaurant_id", ["restaurant_id"], False),
            ("ix_coupons_active", ["active"], False),
        ],
    )

    if "orders" not in tables:
        op.create_table(
            "orders",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("order_number", sa.String(length=20), nullable=False),
            sa.Column("restaurant_id", sa.Integer(), sa.ForeignKey("restaurants.id"), nullable=False),
            sa.Column("table_id", sa.Integer(), sa.ForeignKey("dining_tables.id"), nullable=False),
            sa.Column("customer_name", sa.String(length=100), nullable=False),
            sa.Column("customer_phone", sa.String(length=20), nullable=True),
            sa.Column("subtotal", sa.Numeric(10, 2), nullable=False, server_default="0"),
            sa.Column("tax", sa.Numeric(10, 2), nullable=False, server_default="0"),
            sa.Column("manual_discount", sa.Numeric(10, 2), nullable=False, server_default="0"),
            sa.Column("coupon_discount", sa.Numeric(10, 2), nullable=False, server_default="0"),
            sa.Column("total", sa.Numeric(10, 2), nullable=False, server_default="0"),
            sa.Column("coupon_id", sa.Integer(), sa.ForeignKey("coupons.id", ondelete="SET NULL"), nullable=True),
            sa.Column("coupon_code", sa.String(length=20), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="PENDING"),
            sa.Column("payment_method", sa.String(length=20), nullable=False, server_default="PENDING"),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("delivered_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("version_id", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        )
    _create_indexes(
        bind,
        "orders",
        [
            ("ix_orders_order_number", ["order_number"], True),
            ("ix_orders_restaurant_id", ["restaurant_id"], False),
            ("ix_orders_table_id", ["table_id"], False),
            ("ix_orders_status", ["status"], False),
            ("ix_orders_is_active", ["is_active"], False),
            ("ix_orders_restaurant_status", ["restaurant_id", "status"], False),
            ("ix_orders_table_status", ["table_id", "status"], False),
        ],
    )

    if "order_items" not in tables:
        op.create_table(
            "order_items",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("order_id", sa.Integer(), sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
            sa.Column("menu_item_id", sa.Integer(), sa.ForeignKey("menu_items.id"), nullable=False),
            sa.Column("name", sa.String(length=100), nullable=False),
            sa.Column("unit_price", sa.Numeric(10, 2), nullable=False),
            sa.Column("quantity", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("subtotal", sa.Numeric(10, 2), nullable=False),
            sa.Column("note", sa.String(length=200), nullable=True),
        )
    _create_indexes(bind, "order_items", [("ix_order_items_order_id", ["order_id"], False)])

    if "coupon_redemptions" not in tables:
        op.create_table(
            "coupon_redemptions",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("coupon_id", sa.Integer(), sa.ForeignKey("coupons.id"), nullable=False),
            sa.Column("redeemer_id", sa.String(length=64), nullable=False),
            sa.Column("order_id", sa.Integer(), sa.ForeignKey("orders.id", ondelete="SET NULL"), nullable=True),
            sa.Column("redeemed_at", sa.DateTime(timezone=True), nullable=False),
        )
    _create_indexes(
        bind,
        "coupon_redemptions",
        [
            ("ix_coupon_redemptions_coupon_id", ["coupon_id"], False),
            ("ix_coupon_redemptions_order_id", ["order_id"], False),
        ],
    )


def downgrade() -> None:
    op.drop_table("coupon_redemptions")
    op.drop_table("order_items")
    op.drop_table("orders")
    op.drop_table("coupons")
    op.drop_table("dining_tables")
    op.drop_table("menu_items")
    op.drop_table("restaurants")
