"""Initial marketplace schema."""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

# Enum columns store member names.
user_role = sa.Enum("ADMIN", "BUYER", "SELLER", name="userrole")
vehicle_status = sa.Enum("PENDING", "APPROVED", "REJECTED", "SOLD", name="vehiclestatus")
fuel_type = sa.Enum("PETROL", "DIESEL", "ELECTRIC", "HYBRID", "CNG", name="fueltype")
transmission = sa.Enum("MANUAL", "AUTOMATIC", name="transmission")
transaction_status = sa.Enum(
    "PENDING",
    "PAYMENT_COMPLETED",
    "COMPLETED",
    "FAILED",
    "CANCELLED",
    name="transactionstatus",
)
payment_type = sa.Enum("FULL", "BOOKING", "MANUAL", name="paymenttype")
payment_provider = sa.Enum("STRIPE", "DODO", "MANUAL", name="paymentprovider")
delivery_status = sa.Enum(
    "PROCESSING",
    "INSPECTION",
    "DOCUMENTATION",
    "READY_FOR_COLLECTION",
    "COLLECTED",
    name="deliverystatus",
)
complaint_status = sa.Enum(
    "PENDING", "REVIEWED", "RESOLVED", "DISMISSED", name="complaintstatus"
)
inquiry_status = sa.Enum("PENDING", "RESPONDED", "CLOSED", name="inquirystatus")

ACTIVE_STATUS_PREDICATE = "status IN ('PENDING', 'PAYMENT_COMPLETED', 'COMPLETED')"

json_type = postgresql.JSONB(astext_type=sa.Text()).with_variant(sa.JSON(), "sqlite")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False, unique=True),
        sa.Column("hashed_password", sa.String(length=255), nullable=False),
        sa.Column("role", user_role, nullable=False),
        sa.Column("email_verified", sa.Boolean(), nullable=False),
        sa.Column("suspended", sa.Boolean(), nullable=False),
        sa.Column("image", sa.String(length=1024)),
        sa.Column("phone", sa.String(length=32)),
        sa.Column("city", sa.String(length=120)),
        sa.Column("state", sa.String(length=120)),
        sa.Column("pincode", sa.String(length=16)),
        *_timestamps(),
    )

    op.create_table(
        "vehicles",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column(
            "seller_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("make", sa.String(length=120), nullable=False),
        sa.Column("model", sa.String(length=120), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.Column("mileage", sa.Integer()),
        sa.Column("fuel_type", fuel_type, nullable=False),
        sa.Column("transmission", transmission, nullable=False),
        sa.Column("color", sa.String(length=60)),
        sa.Column("description", sa.Text()),
        sa.Column("images", sa.JSON(), nullable=False),
        sa.Column("registration_number", sa.String(length=32)),
        sa.Column("owner_count", sa.Integer()),
        sa.Column("location", sa.String(length=200)),
        sa.Column("views", sa.Integer(), nullable=False),
        sa.Column("status", vehicle_status, nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_vehicles_seller_id", "vehicles", ["seller_id"])
    op.create_index("ix_vehicles_status_created", "vehicles", ["status", "created_at"])

    op.create_table(
        "transactions",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column(
            "vehicle_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("vehicles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "buyer_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "seller_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("booking_amount", sa.Numeric(12, 2)),
        sa.Column("remaining_amount", sa.Numeric(12, 2)),
        sa.Column("currency", sa.String(length=12), nullable=False),
        sa.Column("status", transaction_status, nullable=False),
        sa.Column("payment_type", payment_type, nullable=False),
        sa.Column("provider", payment_provider, nullable=False),
        sa.Column("checkout_reference", sa.String(length=255)),
        sa.Column("provider_payment_id", sa.String(length=255)),
        sa.Column("failure_reason", sa.Text()),
        sa.Column("delivery_status", delivery_status),
        sa.Column("estimated_ready_at", sa.DateTime(timezone=True)),
        sa.Column("delivery_notes", sa.Text()),
        sa.Column("collected_at", sa.DateTime(timezone=True)),
        *_timestamps(),
    )
    op.create_index("ix_transactions_buyer_id", "transactions", ["buyer_id"])
    op.create_index("ix_transactions_seller_id", "transactions", ["seller_id"])
    op.create_index(
        "ix_transactions_checkout_reference", "transactions", ["checkout_reference"]
    )
    op.create_index(
        "ix_transactions_vehicle_status", "transactions", ["vehicle_id", "status"]
    )
    op.create_index(
        "ux_transactions_active_vehicle",
        "transactions",
        ["vehicle_id"],
        unique=True,
        sqlite_where=sa.text(ACTIVE_STATUS_PREDICATE),
        postgresql_where=sa.text(ACTIVE_STATUS_PREDICATE),
    )

    op.create_table(
        "payment_events",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("provider", sa.String(length=32), nullable=False),
        sa.Column("provider_event_id", sa.String(length=255), nullable=False),
        sa.Column("event_type", sa.String(length=120), nullable=False),
        sa.Column(
            "transaction_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("transactions.id", ondelete="SET NULL"),
        ),
        sa.Column("outcome", sa.String(length=32), nullable=False),
        sa.Column(
            "received_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("raw", json_type, nullable=False),
        sa.UniqueConstraint(
            "provider", "provider_event_id", name="uq_payment_events_provider_event"
        ),
    )

    op.create_table(
        "complaints",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column(
            "reporter_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "reported_user_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
        ),
        sa.Column("subject", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("status", complaint_status, nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_complaints_reporter_id", "complaints", ["reporter_id"])

    op.create_table(
        "inquiries",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column(
            "vehicle_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("vehicles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "buyer_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "seller_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("status", inquiry_status, nullable=False),
        sa.Column("seller_response", sa.Text()),
        *_timestamps(),
    )
    op.create_index("ix_inquiries_vehicle_id", "inquiries", ["vehicle_id"])
    op.create_index("ix_inquiries_buyer_id", "inquiries", ["buyer_id"])
    op.create_index("ix_inquiries_seller_id", "inquiries", ["seller_id"])

    op.create_table(
        "inquiry_messages",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column(
            "inquiry_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("inquiries.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "sender_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("message", sa.Text(), nullable=False),
        *_timestamps(),
    )
    op.create_index(
        "ix_inquiry_messages_inquiry_id", "inquiry_messages", ["inquiry_id"]
    )

    op.create_table(
        "favorites",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column(
            "user_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "vehicle_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("vehicles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "vehicle_id", name="uq_favorites_user_vehicle"),
    )
    op.create_index("ix_favorites_user_id", "favorites", ["user_id"])

    op.create_table(
        "password_reset_tokens",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column(
            "user_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("token_hash", sa.String(length=128), nullable=False, unique=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("consumed_at", sa.DateTime(timezone=True)),
        *_timestamps(),
    )
    op.create_index(
        "ix_password_reset_tokens_user_id", "password_reset_tokens", ["user_id"]
    )


def downgrade() -> None:
    op.drop_table("password_reset_tokens")
    op.drop_table("favorites")
    op.drop_table("inquiry_messages")
    op.drop_table("inquiries")
    op.drop_table("complaints")
    op.drop_table("payment_events")
    op.drop_index("ux_transactions_active_vehicle", table_name="transactions")
    op.drop_table("transactions")
    op.drop_table("vehicles")
    op.drop_table("users")

    bind = op.get_bind()
    for enum_type in (
        inquiry_status,
        complaint_status,
        delivery_status,
        payment_provider,
        payment_type,
        transaction_status,
        transmission,
        fuel_type,
        vehicle_status,
        user_role,
    ):
        enum_type.drop(bind, checkfirst=True)
