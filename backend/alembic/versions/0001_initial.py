"""initial

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 00:00:00
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None

MEMBER_STATUS = sa.Enum("NONE", "TRIAL", "FULL", "SPONSOR", "ALUMNI", name="member_status")
USER_ROLE = sa.Enum("USER", "ADMIN", name="user_role")
REGISTRATION_TYPE = sa.Enum("ORGANIZER", "PARTICIPANT", "CALENDAR", name="registration_type")
REGISTRATION_STATUS = sa.Enum("PENDING", "SUCCESSFUL", "CANCELLED", name="registration_status")
# Second reference to a type created with event_registrations.
REGISTRATION_STATUS_EXISTING = postgresql.ENUM(
    "PENDING", "SUCCESSFUL", "CANCELLED", name="registration_status", create_type=False
)
PURCHASE_STATUS = sa.Enum("PENDING", "PAID", "SENT", "CANCELLED", name="purchase_status")
LOG_SEVERITY = sa.Enum("DEBUG", "INFO", "WARNING", "ERROR", name="log_severity")
REGISTRATION_FORM_STATUS = sa.Enum("PENDING", "ACCEPTED", "REJECTED", name="registration_form_status")


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        server_default=sa.func.now(),
        nullable=False,
    )


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("auth_id", sa.String(length=255), nullable=False, unique=True),
        sa.Column("first_name", sa.String(length=255), nullable=False),
        sa.Column("last_name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False, unique=True),
        sa.Column("status", MEMBER_STATUS, nullable=False),
        sa.Column("role", USER_ROLE, nullable=False),
        _created_at(),
    )
    op.create_index("ix_users_status", "users", ["status"])
    op.create_index("ix_users_last_first", "users", ["last_name", "first_name"])

    op.create_table(
        "stripe_user_data",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "user_id",
            sa.String(length=36),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("customer_id", sa.String(length=255), nullable=False, unique=True),
        sa.Column("payment_method_id", sa.String(length=255), nullable=True),
    )

    op.create_table(
        "stripe_payments",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("payment_intent", sa.String(length=255), nullable=False, unique=True),
        sa.Column("checkout_session", sa.String(length=255), nullable=True),
        sa.Column("status", sa.String(length=64), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(length=8), nullable=False),
        sa.Column("fee_amount", sa.Integer(), nullable=True),
        sa.Column("net_amount", sa.Integer(), nullable=True),
        sa.Column("refunded_amount", sa.Integer(), nullable=True),
        sa.Column("payment_method", sa.String(length=255), nullable=True),
        sa.Column("payment_method_type", sa.String(length=64), nullable=True),
        sa.Column("shipping", sa.JSON(), nullable=True),
        sa.Column("events", sa.JSON(), nullable=True),
        sa.Column(
            "user_id",
            sa.String(length=36),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        _created_at(),
    )
    op.create_index("ix_stripe_payments_user_id", "stripe_payments", ["user_id"])
    op.create_index("ix_stripe_payments_status", "stripe_payments", ["status"])
    op.create_index("ix_stripe_payments_checkout_session", "stripe_payments", ["checkout_session"])

    op.create_table(
        "stripe_events",
        sa.Column("event_id", sa.String(length=255), primary_key=True),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("payload_hash", sa.String(length=128), nullable=False),
        sa.Column("event_type", sa.String(length=128), nullable=True),
        sa.Column("event_created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("payment_intent", sa.String(length=255), nullable=True),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column(
            "processed_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("ix_stripe_events_payload_hash", "stripe_events", ["payload_hash"])
    op.create_index("ix_stripe_events_payment_intent", "stripe_events", ["payment_intent"])

    op.create_table(
        "tumi_events",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("start", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end", sa.DateTime(timezone=True), nullable=True),
        sa.Column("participant_limit", sa.Integer(), nullable=False),
        sa.Column("participant_registration_count", sa.Integer(), nullable=False, server_default="0"),
        _created_at(),
    )

    op.create_table(
        "event_registrations",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "event_id",
            sa.String(length=36),
            sa.ForeignKey("tumi_events.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "user_id",
            sa.String(length=36),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("type", REGISTRATION_TYPE, nullable=False),
        sa.Column("status", REGISTRATION_STATUS, nullable=False),
        sa.Column("cancellation_reason", sa.String(length=255), nullable=True),
        sa.Column(
            "payment_id",
            sa.String(length=36),
            sa.ForeignKey("stripe_payments.id", ondelete="SET NULL"),
            nullable=True,
            unique=True,
        ),
        _created_at(),
    )
    op.create_index("ix_event_registrations_event_id", "event_registrations", ["event_id"])
    op.create_index("ix_event_registrations_user_id", "event_registrations", ["user_id"])
    op.create_index(
        "ix_event_registrations_event_status", "event_registrations", ["event_id", "status"]
    )

    op.create_table(
        "event_registration_codes",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "event_id",
            sa.String(length=36),
            sa.ForeignKey("tumi_events.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("created_by_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column(
            "registration_to_remove_id",
            sa.String(length=36),
            sa.ForeignKey("event_registrations.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "registration_created_id",
            sa.String(length=36),
            sa.ForeignKey("event_registrations.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("status", REGISTRATION_STATUS_EXISTING, nullable=False),
        sa.Column("is_public", sa.Boolean(), nullable=False),
        sa.Column(
            "payment_id",
            sa.String(length=36),
            sa.ForeignKey("stripe_payments.id", ondelete="SET NULL"),
            nullable=True,
            unique=True,
        ),
        _created_at(),
        sa.CheckConstraint(
            "registration_to_remove_id IS NULL OR registration_created_id IS NULL "
            "OR registration_to_remove_id <> registration_created_id",
            name="ck_event_registration_codes_distinct_registrations",
        ),
    )
    op.create_index("ix_event_registration_codes_event_id", "event_registration_codes", ["event_id"])

    op.create_table(
        "products",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("prices", sa.JSON(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        _created_at(),
    )

    op.create_table(
        "submission_items",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "product_id",
            sa.String(length=36),
            sa.ForeignKey("products.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("type", sa.String(length=32), nullable=False),
    )
    op.create_index("ix_submission_items_product_id", "submission_items", ["product_id"])

    op.create_table(
        "shopping_carts",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "user_id",
            sa.String(length=36),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        _created_at(),
    )

    op.create_table(
        "purchases",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "user_id",
            sa.String(length=36),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("status", PURCHASE_STATUS, nullable=False),
        sa.Column("cancellation_reason", sa.String(length=255), nullable=True),
        sa.Column(
            "payment_id",
            sa.String(length=36),
            sa.ForeignKey("stripe_payments.id", ondelete="SET NULL"),
            nullable=True,
            unique=True,
        ),
        _created_at(),
    )
    op.create_index("ix_purchases_user_id", "purchases", ["user_id"])

    op.create_table(
        "line_items",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "cart_id",
            sa.String(length=36),
            sa.ForeignKey("shopping_carts.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("product_id", sa.String(length=36), sa.ForeignKey("products.id"), nullable=False),
        sa.Column(
            "purchase_id",
            sa.String(length=36),
            sa.ForeignKey("purchases.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("cost", sa.Integer(), nullable=False),
        sa.Column("pickup_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancellation_reason", sa.String(length=255), nullable=True),
        _created_at(),
        sa.CheckConstraint("quantity >= 1", name="ck_line_items_quantity_positive"),
    )
    op.create_index("ix_line_items_cart_id", "line_items", ["cart_id"])
    op.create_index("ix_line_items_product_id", "line_items", ["product_id"])
    op.create_index("ix_line_items_purchase_id", "line_items", ["purchase_id"])

    op.create_table(
        "line_item_submissions",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "line_item_id",
            sa.String(length=36),
            sa.ForeignKey("line_items.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "submission_item_id",
            sa.String(length=36),
            sa.ForeignKey("submission_items.id"),
            nullable=False,
        ),
        sa.Column("data", sa.JSON(), nullable=True),
    )
    op.create_index("ix_line_item_submissions_line_item_id", "line_item_submissions", ["line_item_id"])

    op.create_table(
        "activity_logs",
        sa.Column("id", sa.String(length=36), primary_key=True),
        _created_at(),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("severity", LOG_SEVERITY, nullable=False),
        sa.Column("category", sa.String(length=64), nullable=False),
        sa.Column("data", sa.JSON(), nullable=True),
        sa.Column("old_data", sa.JSON(), nullable=True),
        sa.Column(
            "involved_user_id",
            sa.String(length=36),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
    )
    op.create_index("ix_activity_logs_category_created", "activity_logs", ["category", "created_at"])
    op.create_index("ix_activity_logs_severity", "activity_logs", ["severity"])

    op.create_table(
        "registrations",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "user_id",
            sa.String(length=36),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("status", REGISTRATION_FORM_STATUS, nullable=False),
        sa.Column("data", sa.JSON(), nullable=False),
        _created_at(),
    )


def downgrade() -> None:
    op.drop_table("registrations")
    op.drop_index("ix_activity_logs_severity", table_name="activity_logs")
    op.drop_index("ix_activity_logs_category_created", table_name="activity_logs")
    op.drop_table("activity_logs")
    op.drop_table("line_item_submissions")
    op.drop_table("line_items")
    op.drop_table("purchases")
    op.drop_table("shopping_carts")
    op.drop_table("submission_items")
    op.drop_table("products")
    op.drop_table("event_registration_codes")
    op.drop_table("event_registrations")
    op.drop_table("tumi_events")
    op.drop_table("stripe_events")
    op.drop_table("stripe_payments")
    op.drop_table("stripe_user_data")
    op.drop_table("users")
    bind = op.get_bind()
    for enum in (
        REGISTRATION_FORM_STATUS,
        LOG_SEVERITY,
        PURCHASE_STATUS,
        REGISTRATION_STATUS,
        REGISTRATION_TYPE,
        USER_ROLE,
        MEMBER_STATUS,
    ):
        enum.drop(bind, checkfirst=True)
