"""init

Revision ID: 0001_init
Revises:
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def _inspector():
    from sqlalchemy import inspect as sa_inspect
    return sa_inspect(op.get_bind())


def upgrade() -> None:
    inspector = _inspector()
    existing_tables = set(inspector.get_table_names())
    now = sa.text("(CURRENT_TIMESTAMP)")

    def existing_indexes(table: str) -> set[str]:
        if table not in existing_tables:
            return set()
        return {idx["name"] for idx in inspector.get_indexes(table)}

    def ensure_indexes(table: str, columns: list[str]) -> None:
        idxs = existing_indexes(table)
        for col in columns:
            name = f"ix_{table}_{col}"
            if name not in idxs:
                op.create_index(name, table, [col])

    if "profiles" not in existing_tables:
        op.create_table(
            "profiles",
            sa.Column("id", sa.String(), primary_key=True),
            sa.Column("email", sa.String(), nullable=True),
            sa.Column("full_name", sa.String(), nullable=True),
            sa.Column("last_seen_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=now),
        )
    ensure_indexes("profiles", ["id", "email"])

    if "categories" not in existing_tables:
        op.create_table(
            "categories",
            sa.Column("id", sa.String(), primary_key=True),
            sa.Column("user_id", sa.String(), nullable=False),
            sa.Column("name", sa.String(), nullable=False),
            sa.Column("color", sa.String(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=now),
        )
    ensure_indexes("categories", ["id", "user_id"])

    if "subscriptions" not in existing_tables:
        op.create_table(
            "subscriptions",
            sa.Column("id", sa.String(), primary_key=True),
            sa.Column("user_id", sa.String(), nullable=False),
            sa.Column("service_name", sa.String(), nullable=False),
            sa.Column("domain_name", sa.String(), nullable=True),
            sa.Column("vendor", sa.String(), nullable=True),
            sa.Column("vendor_link", sa.String(), nullable=True),
            sa.Column("email", sa.String(), nullable=True),
            sa.Column("username", sa.String(), nullable=True),
            sa.Column("password", sa.String(), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("purchase_date", sa.Date(), nullable=False),
            sa.Column("expiry_date", sa.Date(), nullable=False),
            sa.Column("purchase_amount_pkr", sa.Numeric(12, 2), nullable=False, server_default="0"),
            sa.Column("purchase_amount_usd", sa.Numeric(12, 2), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("category_id", sa.String(), sa.ForeignKey("categories.id", ondelete="SET NULL"), nullable=True),
            sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=now),
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=now),
            sa.CheckConstraint("expiry_date > purchase_date", name="ck_subscriptions_period"),
            sa.CheckConstraint("purchase_amount_pkr >= 0", name="ck_subscriptions_amount_pkr"),
        )
    ensure_indexes("subscriptions", ["id", "user_id", "expiry_date", "is_active", "category_id"])

    if "reminders" not in existing_tables:
        op.create_table(
            "reminders",
            sa.Column("id", sa.String(), primary_key=True),
            sa.Column(
                "subscription_id",
                sa.String(),
                sa.ForeignKey("subscriptions.id", ondelete="CASCADE"),
                nullable=False,
            ),
            sa.Column("days_before", sa.Integer(), nullable=False),
            sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=now),
            sa.CheckConstraint("days_before >= 0", name="ck_reminders_days_before"),
        )
    ensure_indexes("reminders", ["id", "subscription_id"])

    if "subscription_history" not in existing_tables:
        op.create_table(
            "subscription_history",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("subscription_id", sa.String(), nullable=False),
            sa.Column("user_id", sa.String(), nullable=False),
            sa.Column("service_name", sa.String(), nullable=True),
            sa.Column("purchase_date", sa.Date(), nullable=False),
            sa.Column("expiry_date", sa.Date(), nullable=False),
            sa.Column("purchase_amount_pkr", sa.Numeric(12, 2), nullable=False, server_default="0"),
            sa.Column("purchase_amount_usd", sa.Numeric(12, 2), nullable=True),
            sa.Column("vendor", sa.String(), nullable=True),
            sa.Column("vendor_link", sa.String(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=now),
        )
    ensure_indexes("subscription_history", ["id", "subscription_id", "user_id", "purchase_date"])

    if "email_logs" not in existing_tables:
        op.create_table(
            "email_logs",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_id", sa.String(), nullable=True),
            sa.Column("subscription_id", sa.String(), nullable=False),
            sa.Column("reminder_id", sa.String(), nullable=False),
            sa.Column("days_before", sa.Integer(), nullable=False),
            sa.Column("dispatch_date", sa.Date(), nullable=False),
            sa.Column("days_until_expiry", sa.Integer(), nullable=False),
            sa.Column("to_email", sa.String(), nullable=True),
            sa.Column("subject", sa.String(), nullable=True),
            sa.Column("html_content", sa.Text(), nullable=True),
            sa.Column(
                "status",
                sa.Enum("queued", "sending", "sent", "failed", name="emaillogstatus"),
                nullable=False,
                server_default="queued",
            ),
            sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("provider_message_id", sa.String(), nullable=True),
            sa.Column("error", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=now),
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=now),
            sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
            sa.UniqueConstraint("subscription_id", "reminder_id", "dispatch_date", name="uq_email_logs_dispatch_key"),
        )
    ensure_indexes("email_logs", ["id", "user_id", "subscription_id", "reminder_id", "dispatch_date", "status"])

    if "notifications" not in existing_tables:
        op.create_table(
            "notifications",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_id", sa.String(), nullable=False),
            sa.Column("subscription_id", sa.String(), nullable=False),
            sa.Column("reminder_id", sa.String(), nullable=False),
            sa.Column("title", sa.String(), nullable=False),
            sa.Column("message", sa.Text(), nullable=False),
            sa.Column("days_until_expiry", sa.Integer(), nullable=False),
            sa.Column("notify_date", sa.Date(), nullable=False),
            sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=now),
            sa.UniqueConstraint("subscription_id", "reminder_id", "notify_date", name="uq_notifications_reminder_day"),
        )
    ensure_indexes("notifications", ["id", "user_id", "subscription_id", "reminder_id", "notify_date", "read"])

    if "activity_logs" not in existing_tables:
        op.create_table(
            "activity_logs",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_id", sa.String(), nullable=False),
            sa.Column("action", sa.String(), nullable=False),
            sa.Column("entity_type", sa.String(), nullable=False),
            sa.Column("entity_id", sa.String(), nullable=True),
            sa.Column("details", sa.JSON(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=now),
        )
    ensure_indexes("activity_logs", ["id", "user_id", "action", "entity_type", "entity_id", "created_at"])


def downgrade() -> None:
    for table in (
        "activity_logs",
        "notifications",
        "email_logs",
        "subscription_history",
        "reminders",
        "subscriptions",
        "categories",
        "profiles",
    ):
        op.drop_table(table)
    if op.get_bind().dialect.name == "postgresql":
        op.execute(sa.text("DROP TYPE IF EXISTS emaillogstatus"))
