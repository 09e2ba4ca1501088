"""initial tourism schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-18

"""

from alembic import op
import sqlalchemy as sa

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def _ts(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def _money(name: str, default: bool = True) -> sa.Column:
    if default:
        return sa.Column(name, sa.Numeric(12, 2), nullable=False, server_default="0")
    return sa.Column(name, sa.Numeric(12, 2), nullable=False)


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("name", sa.String(length=50), nullable=False, server_default=""),
        sa.Column("phone", sa.String(length=20), nullable=False, server_default=""),
        sa.Column("role", sa.String(length=12), nullable=False, server_default="tourist"),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("business_name", sa.String(length=120), nullable=True),
        sa.Column("seller_approved", sa.Boolean(), nullable=False, server_default=sa.false()),
        _ts("created_at"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_role", "users", ["role"])

    op.create_table(
        "destinations",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("short_description", sa.String(length=300), nullable=False, server_default=""),
        sa.Column("category", sa.String(length=30), nullable=False),
        sa.Column("address", sa.String(length=200), nullable=False, server_default=""),
        sa.Column("city", sa.String(length=80), nullable=False),
        sa.Column("state", sa.String(length=80), nullable=False, server_default="Jharkhand"),
        sa.Column("lat", sa.Float(), nullable=False),
        sa.Column("lng", sa.Float(), nullable=False),
        sa.Column("rating_average", sa.Float(), nullable=False, server_default="0"),
        sa.Column("rating_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_featured", sa.Boolean(), nullable=False, server_default=sa.false()),
        _ts("created_at"),
    )
    op.create_index("ix_destinations_name", "destinations", ["name"])
    op.create_index("ix_destinations_category", "destinations", ["category"])

    op.create_table(
        "products",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("seller_id", sa.String(length=36), nullable=True),
        sa.Column("seller_guest_id", sa.String(length=64), nullable=True),
        sa.Column("destination_id", sa.String(length=36), nullable=True),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("short_description", sa.String(length=300), nullable=False, server_default=""),
        sa.Column("category", sa.String(length=30), nullable=False),
        sa.Column("subcategory", sa.String(length=60), nullable=True),
        _money("price_amount", default=False),
        sa.Column("price_currency", sa.String(length=3), nullable=False, server_default="INR"),
        sa.Column("price_unit", sa.String(length=20), nullable=False, server_default="per_item"),
        sa.Column("in_stock", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("stock_quantity", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("max_quantity", sa.Integer(), nullable=True),
        sa.Column("available_dates", sa.JSON(), nullable=False),
        sa.Column("blackout_dates", sa.JSON(), nullable=False),
        sa.Column("city", sa.String(length=80), nullable=False, server_default=""),
        sa.Column("state", sa.String(length=80), nullable=False, server_default="Jharkhand"),
        sa.Column("cancellation_allowed", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("cancellation_deadline_hours", sa.Integer(), nullable=True),
        sa.Column("refund_percentage", sa.Integer(), nullable=True),
        sa.Column("rating_average", sa.Float(), nullable=False, server_default="0"),
        sa.Column("rating_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_approved", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_featured", sa.Boolean(), nullable=False, server_default=sa.false()),
        _ts("created_at"),
        _ts("updated_at"),
    )
    op.create_index("ix_products_seller_id", "products", ["seller_id"])
    op.create_index("ix_products_destination_id", "products", ["destination_id"])
    op.create_index("ix_products_category", "products", ["category"])
    op.create_index("ix_products_is_active", "products", ["is_active"])
    op.create_index("ix_products_is_approved", "products", ["is_approved"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("booking_code", sa.String(length=20), nullable=False),
        sa.Column("tourist_id", sa.String(length=36), nullable=True),
        sa.Column("tourist_guest_id", sa.String(length=64), nullable=True),
        sa.Column("seller_id", sa.String(length=36), nullable=True),
        sa.Column("seller_guest_id", sa.String(length=64), nullable=True),
        sa.Column("product_id", sa.String(length=36), nullable=False),
        sa.Column("destination_id", sa.String(length=36), nullable=True),
        sa.Column("booking_type", sa.String(length=20), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        _ts("start_date"),
        _ts("end_date", nullable=True),
        sa.Column("duration", sa.Integer(), nullable=True),
        sa.Column("adults", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("children", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("special_requests", sa.Text(), nullable=False, server_default=""),
        sa.Column("pickup_address", sa.String(length=300), nullable=True),
        sa.Column("pickup_lat", sa.Float(), nullable=True),
        sa.Column("pickup_lng", sa.Float(), nullable=True),
        sa.Column("dropoff_address", sa.String(length=300), nullable=True),
        sa.Column("dropoff_lat", sa.Float(), nullable=True),
        sa.Column("dropoff_lng", sa.Float(), nullable=True),
        _money("base_price", default=False),
        _money("taxes"),
        _money("fees"),
        _money("discounts"),
        _money("total_amount", default=False),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="INR"),
        sa.Column("payment_status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("payment_method", sa.String(length=20), nullable=False),
        sa.Column("transaction_id", sa.String(length=120), nullable=True),
        _ts("payment_date", nullable=True),
        _money("refund_amount"),
        _ts("refund_date", nullable=True),
        sa.Column("refund_reason", sa.String(length=500), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("review_rating", sa.Float(), nullable=True),
        sa.Column("review_comment", sa.String(length=500), nullable=True),
        _ts("review_submitted_at", nullable=True),
        sa.Column("review_is_public", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("source", sa.String(length=20), nullable=False, server_default="web"),
        sa.Column("user_agent", sa.String(length=300), nullable=True),
        sa.Column("ip_address", sa.String(length=64), nullable=True),
        sa.Column("referrer", sa.String(length=300), nullable=True),
        _ts("created_at"),
        _ts("updated_at"),
        sa.CheckConstraint(
            "(tourist_id IS NOT NULL AND tourist_guest_id IS NULL) OR (tourist_id IS NULL AND tourist_guest_id IS NOT NULL)",
            name="ck_bookings_one_tourist",
        ),
        sa.CheckConstraint(
            "(seller_id IS NOT NULL AND seller_guest_id IS NULL) OR (seller_id IS NULL AND seller_guest_id IS NOT NULL)",
            name="ck_bookings_one_seller",
        ),
        sa.CheckConstraint("quantity >= 1", name="ck_bookings_quantity"),
    )
    op.create_index("ix_bookings_booking_code", "bookings", ["booking_code"], unique=True)
    op.create_index("ix_bookings_tourist_id", "bookings", ["tourist_id"])
    op.create_index("ix_bookings_tourist_guest_id", "bookings", ["tourist_guest_id"])
    op.create_index("ix_bookings_seller_id", "bookings", ["seller_id"])
    op.create_index("ix_bookings_seller_guest_id", "bookings", ["seller_guest_id"])
    op.create_index("ix_bookings_product_id", "bookings", ["product_id"])
    op.create_index("ix_bookings_transaction_id", "bookings", ["transaction_id"])
    op.create_index("ix_bookings_payment_status", "bookings", ["payment_status"])
    op.create_index("ix_bookings_status", "bookings", ["status"])
    op.create_index("ix_bookings_created_at", "bookings", ["created_at"])

    op.create_table(
        "booking_timeline",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("booking_id", sa.String(length=36), nullable=False),
        sa.Column("seq", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("note", sa.String(length=500), nullable=False, server_default=""),
        sa.Column("updated_by", sa.String(length=64), nullable=True),
        sa.Column("updated_by_kind", sa.String(length=12), nullable=True),
        _ts("timestamp"),
        sa.UniqueConstraint("booking_id", "seq", name="uq_booking_timeline_seq"),
    )
    op.create_index("ix_booking_timeline_booking_id", "booking_timeline", ["booking_id"])

    op.create_table(
        "booking_messages",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("booking_id", sa.String(length=36), nullable=False),
        sa.Column("seq", sa.Integer(), nullable=False),
        sa.Column("sender_user_id", sa.String(length=36), nullable=True),
        sa.Column("sender_guest_id", sa.String(length=64), nullable=True),
        sa.Column("message", sa.String(length=500), nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        _ts("timestamp"),
        sa.UniqueConstraint("booking_id", "seq", name="uq_booking_messages_seq"),
        sa.CheckConstraint(
            "(sender_user_id IS NOT NULL AND sender_guest_id IS NULL) OR (sender_user_id IS NULL AND sender_guest_id IS NOT NULL)",
            name="ck_booking_messages_one_sender",
        ),
    )
    op.create_index("ix_booking_messages_booking_id", "booking_messages", ["booking_id"])

    op.create_table(
        "cancellations",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("booking_id", sa.String(length=36), nullable=False),
        sa.Column("booking_code", sa.String(length=20), nullable=False),
        sa.Column("requested_by_user_id", sa.String(length=36), nullable=True),
        sa.Column("requested_by_guest_id", sa.String(length=64), nullable=True),
        sa.Column("reason", sa.String(length=500), nullable=False, server_default=""),
        _ts("requested_at"),
        _ts("approved_at", nullable=True),
        _money("refund_amount"),
        sa.Column("refund_status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("provider_refund_ref", sa.String(length=120), nullable=False, server_default=""),
        sa.Column("processed_by_user_id", sa.String(length=36), nullable=False, server_default=""),
        _ts("processed_at", nullable=True),
    )
    op.create_index("ix_cancellations_booking_id", "cancellations", ["booking_id"], unique=True)
    op.create_index("ix_cancellations_booking_code", "cancellations", ["booking_code"])
    op.create_index("ix_cancellations_requested_by_user_id", "cancellations", ["requested_by_user_id"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("actor_id", sa.String(length=64), nullable=False),
        sa.Column("actor_role", sa.String(length=12), nullable=False, server_default=""),
        sa.Column("action", sa.String(length=80), nullable=False),
        sa.Column("entity_type", sa.String(length=40), nullable=False),
        sa.Column("entity_id", sa.String(length=64), nullable=False),
        sa.Column("details_json", sa.Text(), nullable=False, server_default="{}"),
        _ts("created_at"),
    )
    op.create_index("ix_audit_logs_actor_id", "audit_logs", ["actor_id"])
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
    op.create_index("ix_audit_logs_entity_type", "audit_logs", ["entity_type"])
    op.create_index("ix_audit_logs_entity_id", "audit_logs", ["entity_id"])

    op.create_table(
        "email_logs",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("to_email", sa.String(length=320), nullable=False),
        sa.Column("subject", sa.String(length=200), nullable=False),
        sa.Column("body", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="queued"),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_error", sa.String(length=500), nullable=True),
        sa.Column("related_booking_code", sa.String(length=20), nullable=False, server_default=""),
        _ts("created_at"),
        _ts("sent_at", nullable=True),
    )
    op.create_index("ix_email_logs_to_email", "email_logs", ["to_email"])
    op.create_index("ix_email_logs_status", "email_logs", ["status"])


def downgrade() -> None:
    for table in (
        "email_logs", "audit_logs", "cancellations", "booking_messages",
        "booking_timeline", "bookings", "products", "destinations", "users",
    ):
        op.drop_table(table)
