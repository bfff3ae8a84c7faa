"""payroll ledger tables

Revision ID: 20261001_0001
Revises:
Create Date: 2026-10-01 10:00:00.000000
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import ENUM
from payroll.enums import UserRole, InitiatorRole, CarryoverKind

# revision identifiers, used by Alembic.
revision = "20261001_0001"
down_revision = None
branch_labels = None
depends_on = None


def _enum(enum_cls, name: str) -> ENUM:
    # create_type=False: types are created idempotently below
    return ENUM(enum_cls, name=name, create_type=False, values_callable=lambda obj: [e.value for e in obj])


def _create_type(name: str, values) -> None:
    labels = ",".join(f"'{v}'" for v in values)
    op.execute(
        f"""
        DO $$ BEGIN
            CREATE TYPE {name} AS ENUM ({labels});
        EXCEPTION WHEN duplicate_object THEN NULL; END $$;
        """
    )


def upgrade() -> None:
    _create_type("user_role_enum", [e.value for e in UserRole])
    _create_type("payout_initiator_role_enum", [e.value for e in InitiatorRole])
    _create_type("carryover_kind_enum", [e.value for e in CarryoverKind])

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tg_id", sa.BigInteger(), nullable=False),
        sa.Column("first_name", sa.String(length=100), nullable=True),
        sa.Column("last_name", sa.String(length=100), nullable=True),
        sa.Column("display_name", sa.String(length=200), nullable=True),
        sa.Column("role", _enum(UserRole, "user_role_enum"), nullable=False, server_default=UserRole.MASTER.value),
        sa.Column("is_blocked", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_users")),
    )
    op.create_index(op.f("ix_users_tg_id"), "users", ["tg_id"], unique=True)

    op.create_table(
        "shifts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("hours", sa.Numeric(6, 2), nullable=True),
        sa.Column("total", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], name=op.f("fk_shifts_user_id_users"), ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_shifts")),
    )
    op.create_index("ix_shifts_user_id_date", "shifts", ["user_id", "date"])

    op.create_table(
        "payouts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("month", sa.String(length=7), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("comment", sa.Text(), nullable=True),
        sa.Column("is_advance", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("initiated_by", sa.Integer(), nullable=True),
        sa.Column("initiator_role", _enum(InitiatorRole, "payout_initiator_role_enum"), nullable=True),
        sa.Column("method", sa.String(length=50), nullable=True),
        sa.Column("source", sa.String(length=50), nullable=True),
        sa.Column("carryover_from", sa.String(length=7), nullable=True),
        sa.Column("reversed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reversed_by", sa.Integer(), nullable=True),
        sa.Column("reversal_reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], name=op.f("fk_payouts_user_id_users"), ondelete="CASCADE"),
        sa.ForeignKeyConstraint(
            ["initiated_by"], ["users.id"], name=op.f("fk_payouts_initiated_by_users"), ondelete="SET NULL"
        ),
        sa.ForeignKeyConstraint(
            ["reversed_by"], ["users.id"], name=op.f("fk_payouts_reversed_by_users"), ondelete="SET NULL"
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_payouts")),
    )
    op.create_index("ix_payouts_user_id_month", "payouts", ["user_id", "month"])
    op.create_index("ix_payouts_reversed_at", "payouts", ["reversed_at"])

    op.create_table(
        "month_status",
        sa.Column("month", sa.String(length=7), nullable=False),
        sa.Column("closed", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("month", name=op.f("pk_month_status")),
    )

    op.create_table(
        "carryovers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("from_month", sa.String(length=7), nullable=False),
        sa.Column("to_month", sa.String(length=7), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column(
            "kind",
            _enum(CarryoverKind, "carryover_kind_enum"),
            nullable=False,
            server_default=CarryoverKind.CASCADE.value,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], name=op.f("fk_carryovers_user_id_users"), ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_carryovers")),
        sa.UniqueConstraint("user_id", "from_month", "to_month", name="uq_carryovers_user_from_to"),
    )
    op.create_index("ix_carryovers_user_id_to_month", "carryovers", ["user_id", "to_month"])


def downgrade() -> None:
    op.drop_index("ix_carryovers_user_id_to_month", table_name="carryovers")
    op.drop_table("carryovers")
    op.drop_table("month_status")
    op.drop_index("ix_payouts_reversed_at", table_name="payouts")
    op.drop_index("ix_payouts_user_id_month", table_name="payouts")
    op.drop_table("payouts")
    op.drop_index("ix_shifts_user_id_date", table_name="shifts")
    op.drop_table("shifts")
    op.drop_index(op.f("ix_users_tg_id"), table_name="users")
    op.drop_table("users")

    op.execute("DROP TYPE IF EXISTS carryover_kind_enum")
    op.execute("DROP TYPE IF EXISTS payout_initiator_role_enum")
    op.execute("DROP TYPE IF EXISTS user_role_enum")
