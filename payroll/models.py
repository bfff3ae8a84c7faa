from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import String, BigInteger, Date, ForeignKey, DateTime, Boolean, Index, Text, UniqueConstraint
from sqlalchemy import Numeric
from sqlalchemy.dialects.postgresql import ENUM as PG_ENUM
from datetime import datetime, date
from decimal import Decimal
from .db import Base
from .enums import UserRole, InitiatorRole, CarryoverKind
from .utils import utc_now


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    # Telegram user ID stored as BIGINT for full range safety
    tg_id: Mapped[int] = mapped_column(BigInteger, unique=True, index=True)
    first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    display_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    # Postgres enum type names are explicitly set to avoid name conflicts with column names
    role: Mapped[UserRole] = mapped_column(
        PG_ENUM(
            UserRole,
            name="user_role_enum",
            values_callable=lambda obj: [e.value for e in obj],
            create_type=False,
        ),
        default=UserRole.MASTER,
    )
    is_blocked: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    shifts: Mapped[list["Shift"]] = relationship(back_populates="user", cascade="all, delete-orphan")


class Shift(Base):
    __tablename__ = "shifts"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))
    date: Mapped[date] = mapped_column(Date)
    hours: Mapped[Decimal | None] = mapped_column(Numeric(6, 2), nullable=True)
    # earnings of the shift (hours x rate + services), computed by the caller
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    user: Mapped[User] = relationship(back_populates="shifts")

    __table_args__ = (
        Index("ix_shifts_user_id_date", "user_id", "date"),
    )


class Payout(Base):
    __tablename__ = "payouts"

    # id is the settlement order of advances (FIFO), never created_at
    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))
    month: Mapped[str] = mapped_column(String(7))
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    date: Mapped[date] = mapped_column(Date)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_advance: Mapped[bool] = mapped_column(Boolean, default=False)
    initiated_by: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    initiator_role: Mapped[InitiatorRole | None] = mapped_column(
        PG_ENUM(
            InitiatorRole,
            name="payout_initiator_role_enum",
            values_callable=lambda obj: [e.value for e in obj],
            create_type=False,
        ),
        nullable=True,
    )
    method: Mapped[str | None] = mapped_column(String(50), nullable=True)
    source: Mapped[str | None] = mapped_column(String(50), nullable=True)
    # origin month of a source='carryover' payout
    carryover_from: Mapped[str | None] = mapped_column(String(7), nullable=True)
    reversed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    reversed_by: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    reversal_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    __table_args__ = (
        Index("ix_payouts_user_id_month", "user_id", "month"),
        Index("ix_payouts_reversed_at", "reversed_at"),
    )


class MonthStatus(Base):
    __tablename__ = "month_status"

    month: Mapped[str] = mapped_column(String(7), primary_key=True)
    closed: Mapped[bool] = mapped_column(Boolean, default=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)


class Carryover(Base):
    __tablename__ = "carryovers"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))
    from_month: Mapped[str] = mapped_column(String(7))
    to_month: Mapped[str] = mapped_column(String(7))
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    kind: Mapped[CarryoverKind] = mapped_column(
        PG_ENUM(
            CarryoverKind,
            name="carryover_kind_enum",
            values_callable=lambda obj: [e.value for e in obj],
            create_type=False,
        ),
        default=CarryoverKind.CASCADE,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    __table_args__ = (
        UniqueConstraint("user_id", "from_month", "to_month", name="uq_carryovers_user_from_to"),
        Index("ix_carryovers_user_id_to_month", "user_id", "to_month"),
    )
