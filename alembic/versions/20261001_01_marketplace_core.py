"""marketplace core schema

Revision ID: 20261001_01
Revises:
Create Date: 2026-10-01
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "20261001_01"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _table_exists(inspector: sa.Inspector, table_name: str) -> bool:
    return table_name in inspector.get_table_names()


def _timestamps(with_updated: bool = True) -> list[sa.Column]:
    columns = [sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now())]
    if with_updated:
        columns.append(sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()))
    return columns


def _create_users(inspector: sa.Inspector) -> None:
    if _table_exists(inspector, "users"):
        return
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("display_name", sa.String(length=255), nullable=True),
        sa.Column("role", sa.String(length=32), nullable=False, server_default="buyer"),
        sa.Column("rating", sa.Numeric(3, 1), nullable=False, server_default="0"),
        sa.Column("review_count", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(with_updated=False),
    )
    op.create_index("ix_users_id", "users", ["id"], unique=False)
    op.create_index("ix_users_email", "users", ["email"], unique=True)


def _create_projects_and_offers(inspector: sa.Inspector) -> None:
    if not _table_exists(inspector, "projects"):
        op.create_table(
            "projects",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("owner_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("title", sa.String(length=255), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("status", sa.String(length=32), nullable=False, server_default="open"),
            *_timestamps(with_updated=False),
        )
        op.create_index("ix_projects_id", "projects", ["id"], unique=False)
        op.create_index("ix_projects_owner_id", "projects", ["owner_id"], unique=False)

    if not _table_exists(inspector, "offers"):
        op.create_table(
            "offers",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("seller_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("buyer_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("project_id", sa.Integer(), sa.ForeignKey("projects.id"), nullable=True),
            sa.Column("title", sa.String(length=255), nullable=False),
            sa.Column("description", sa.Text(), nullable=False),
            sa.Column("amount", sa.Numeric(12, 2), nullable=False),
            sa.Column("currency", sa.String(length=3), nullable=False, server_default="GBP"),
            sa.Column("payment_method", sa.String(length=32), nullable=False),
            sa.Column("payment_link", sa.String(length=1024), nullable=True),
            sa.Column("status", sa.String(length=32), nullable=False, server_default="pending"),
            sa.Column("order_id", sa.Integer(), nullable=True),
            *_timestamps(),
            sa.CheckConstraint("amount > 0", name="ck_offers_positive_amount"),
        )
        op.create_index("ix_offers_id", "offers", ["id"], unique=False)
        op.create_index("ix_offers_seller_id", "offers", ["seller_id"], unique=False)
        op.create_index("ix_offers_buyer_id", "offers", ["buyer_id"], unique=False)


def _create_orders_and_reviews(inspector: sa.Inspector) -> None:
    if not _table_exists(inspector, "orders"):
        op.create_table(
            "orders",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("title", sa.String(length=255), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("price", sa.Numeric(12, 2), nullable=False),
            sa.Column("status", sa.String(length=32), nullable=False, server_default="pending"),
            sa.Column("buyer_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("provider_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("offer_id", sa.Integer(), sa.ForeignKey("offers.id"), nullable=True),
            sa.Column("delivery_date", sa.DateTime(timezone=True), nullable=True),
            sa.Column("delivered_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("delivery_note", sa.Text(), nullable=True),
            sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("buyer_accepted", sa.Boolean(), nullable=False, server_default=sa.false()),
            *_timestamps(),
            sa.CheckConstraint("price > 0", name="ck_orders_positive_price"),
            sa.CheckConstraint(
                "(status = 'completed' AND completed_at IS NOT NULL) "
                "OR (status <> 'completed' AND completed_at IS NULL)",
                name="ck_orders_completed_at_matches_status",
            ),
        )
        op.create_index("ix_orders_id", "orders", ["id"], unique=False)
        op.create_index("ix_orders_status", "orders", ["status"], unique=False)
        op.create_index("ix_orders_buyer_id", "orders", ["buyer_id"], unique=False)
        op.create_index("ix_orders_provider_id", "orders", ["provider_id"], unique=False)

    if not _table_exists(inspector, "reviews"):
        op.create_table(
            "reviews",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("order_id", sa.Integer(), sa.ForeignKey("orders.id"), nullable=False),
            sa.Column("reviewer_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("reviewee_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("rating", sa.Integer(), nullable=True),
            sa.Column("comment", sa.Text(), nullable=True),
            sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("buyer_rating", sa.Integer(), nullable=True),
            sa.Column("buyer_comment", sa.Text(), nullable=True),
            sa.Column("buyer_rated_at", sa.DateTime(timezone=True), nullable=True),
            *_timestamps(with_updated=False),
            sa.UniqueConstraint("order_id", name="uq_reviews_order_id"),
            sa.CheckConstraint("rating IS NULL OR (rating BETWEEN 1 AND 5)", name="ck_reviews_rating_range"),
            sa.CheckConstraint(
                "buyer_rating IS NULL OR (buyer_rating BETWEEN 1 AND 5)",
                name="ck_reviews_buyer_rating_range",
            ),
        )
        op.create_index("ix_reviews_id", "reviews", ["id"], unique=False)
        op.create_index("ix_reviews_reviewee_id", "reviews", ["reviewee_id"], unique=False)


def _create_milestones(inspector: sa.Inspector) -> None:
    if _table_exists(inspector, "milestones"):
        return
    op.create_table(
        "milestones",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("offer_id", sa.Integer(), sa.ForeignKey("offers.id"), nullable=False),
        sa.Column("seller_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("buyer_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="GBP"),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="pending"),
        sa.Column("payment_status", sa.String(length=32), nullable=False, server_default="unpaid"),
        sa.Column("batch_key", sa.String(length=128), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("amount > 0", name="ck_milestones_positive_amount"),
    )
    op.create_index("ix_milestones_id", "milestones", ["id"], unique=False)
    op.create_index("ix_milestones_offer_id", "milestones", ["offer_id"], unique=False)
    op.create_index("ix_milestones_seller_id", "milestones", ["seller_id"], unique=False)
    op.create_index("ix_milestones_buyer_id", "milestones", ["buyer_id"], unique=False)
    op.create_index("ix_milestones_batch_key", "milestones", ["batch_key"], unique=False)


def _create_token_tables(inspector: sa.Inspector) -> None:
    if not _table_exists(inspector, "token_plans"):
        op.create_table(
            "token_plans",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("slug", sa.String(length=64), nullable=False),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("tokens", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("price", sa.Numeric(10, 2), nullable=False),
            sa.Column("currency", sa.String(length=3), nullable=False, server_default="GBP"),
            sa.Column("is_popular", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            *_timestamps(with_updated=False),
        )
        op.create_index("ix_token_plans_id", "token_plans", ["id"], unique=False)
        op.create_index("ix_token_plans_slug", "token_plans", ["slug"], unique=True)

    if not _table_exists(inspector, "token_balances"):
        op.create_table(
            "token_balances",
            sa.Column("seller_id", sa.Integer(), sa.ForeignKey("users.id"), primary_key=True, nullable=False),
            sa.Column("balance", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.CheckConstraint("balance >= 0", name="ck_token_balances_non_negative"),
        )

    if not _table_exists(inspector, "token_purchases"):
        op.create_table(
            "token_purchases",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("seller_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("plan_id", sa.Integer(), sa.ForeignKey("token_plans.id"), nullable=False),
            sa.Column("tokens", sa.Integer(), nullable=False),
            sa.Column("amount", sa.Numeric(10, 2), nullable=False),
            sa.Column("currency", sa.String(length=3), nullable=False, server_default="GBP"),
            sa.Column("status", sa.String(length=32), nullable=False, server_default="completed"),
            sa.Column("purchase_key", sa.String(length=128), nullable=True),
            *_timestamps(with_updated=False),
            sa.CheckConstraint("tokens > 0", name="ck_token_purchases_positive_tokens"),
            sa.UniqueConstraint("seller_id", "purchase_key", name="uq_token_purchases_seller_key"),
        )
        op.create_index("ix_token_purchases_id", "token_purchases", ["id"], unique=False)
        op.create_index("ix_token_purchases_seller_id", "token_purchases", ["seller_id"], unique=False)


def _create_bids_services_notifications(inspector: sa.Inspector) -> None:
    if not _table_exists(inspector, "bids"):
        op.create_table(
            "bids",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("project_id", sa.Integer(), sa.ForeignKey("projects.id"), nullable=False),
            sa.Column("seller_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("bid_amount", sa.Numeric(12, 2), nullable=False),
            sa.Column("message", sa.Text(), nullable=True),
            sa.Column("status", sa.String(length=32), nullable=False, server_default="pending"),
            sa.Column("idempotency_key", sa.String(length=128), nullable=True),
            *_timestamps(with_updated=False),
            sa.CheckConstraint("bid_amount > 0", name="ck_bids_positive_amount"),
            sa.UniqueConstraint("seller_id", "idempotency_key", name="uq_bids_seller_idempotency_key"),
        )
        op.create_index("ix_bids_id", "bids", ["id"], unique=False)
        op.create_index("ix_bids_project_id", "bids", ["project_id"], unique=False)
        op.create_index("ix_bids_seller_id", "bids", ["seller_id"], unique=False)

    if not _table_exists(inspector, "services"):
        op.create_table(
            "services",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("provider_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("title", sa.String(length=255), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("is_featured", sa.Boolean(), nullable=False, server_default=sa.false()),
            *_timestamps(with_updated=False),
        )
        op.create_index("ix_services_id", "services", ["id"], unique=False)
        op.create_index("ix_services_provider_id", "services", ["provider_id"], unique=False)

    if not _table_exists(inspector, "seller_subscriptions"):
        op.create_table(
            "seller_subscriptions",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("seller_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("plan_slug", sa.String(length=64), nullable=False, server_default="seller-plus"),
            sa.Column("status", sa.String(length=32), nullable=False, server_default="active"),
            sa.Column("starts_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("ends_at", sa.DateTime(timezone=True), nullable=False),
            *_timestamps(with_updated=False),
        )
        op.create_index("ix_seller_subscriptions_id", "seller_subscriptions", ["id"], unique=False)
        op.create_index("ix_seller_subscriptions_seller_id", "seller_subscriptions", ["seller_id"], unique=False)

    if not _table_exists(inspector, "notifications"):
        op.create_table(
            "notifications",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("title", sa.String(length=255), nullable=False),
            sa.Column("description", sa.Text(), nullable=False),
            sa.Column("type", sa.String(length=32), nullable=False),
            sa.Column("related_id", sa.Integer(), nullable=True),
            sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("dispatched_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("dispatch_attempts", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("last_error", sa.Text(), nullable=True),
            *_timestamps(with_updated=False),
        )
        op.create_index("ix_notifications_id", "notifications", ["id"], unique=False)
        op.create_index("ix_notifications_user_id", "notifications", ["user_id"], unique=False)
        op.create_index("ix_notifications_dispatched_at", "notifications", ["dispatched_at"], unique=False)


def upgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    _create_users(inspector)
    _create_projects_and_offers(inspector)
    _create_orders_and_reviews(inspector)
    _create_milestones(inspector)
    _create_token_tables(inspector)
    _create_bids_services_notifications(inspector)


def downgrade() -> None:
    for table_name in (
        "notifications",
        "seller_subscriptions",
        "services",
        "bids",
        "token_purchases",
        "token_balances",
        "token_plans",
        "milestones",
        "reviews",
        "orders",
        "offers",
        "projects",
        "users",
    ):
        op.drop_table(table_name)
