"""Store contracts the reconciliation engine depends on.

The engine never touches an ``AsyncSession`` directly: it receives objects implementing
these protocols (SQLAlchemy repositories in production, in-memory fakes in tests) and works
with the frozen row dataclasses below instead of ORM entities.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Protocol

from .enums import CarryoverKind, InitiatorRole, PayoutMethod, PayoutSource


@dataclass(frozen=True)
class ShiftRow:
    id: int
    user_id: int
    date: date
    total: Decimal


@dataclass(frozen=True)
class PayoutRow:
    id: Optional[int]
    user_id: int
    month: str
    amount: Decimal
    date: date
    comment: Optional[str] = None
    is_advance: bool = False
    initiated_by: Optional[int] = None
    initiator_role: Optional[InitiatorRole] = None
    method: Optional[str] = None
    source: Optional[str] = None
    carryover_from: Optional[str] = None
    reversed_at: Optional[datetime] = None
    reversed_by: Optional[int] = None
    reversal_reason: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def is_reversed(self) -> bool:
        return self.reversed_at is not None

    @property
    def is_carryover(self) -> bool:
        return self.source == PayoutSource.CARRYOVER.value

    @property
    def is_split_carryover(self) -> bool:
        return self.is_carryover and self.method == PayoutMethod.CARRYOVER_SPLIT.value

    @property
    def is_system_managed(self) -> bool:
        return self.source in (PayoutSource.CARRYOVER.value, PayoutSource.CARRYOVER_RETURN.value)


@dataclass(frozen=True)
class NewPayout:
    user_id: int
    month: str
    amount: Decimal
    date: date
    comment: Optional[str] = None
    is_advance: bool = False
    initiated_by: Optional[int] = None
    initiator_role: Optional[InitiatorRole] = InitiatorRole.MASTER
    method: Optional[str] = None
    source: Optional[str] = None
    carryover_from: Optional[str] = None


@dataclass(frozen=True)
class CarryoverRow:
    user_id: int
    from_month: str
    to_month: str
    amount: Decimal
    kind: CarryoverKind = CarryoverKind.CASCADE
    id: Optional[int] = field(default=None, compare=False)


class ShiftStore(Protocol):
    async def sum_shift_totals(
        self,
        user_id: Optional[int],
        *,
        month: Optional[str] = None,
        date_to: Optional[date] = None,
    ) -> Decimal: ...

    async def add_shift(self, *, user_id: int, day: date, total: Decimal, hours: Optional[Decimal] = None) -> ShiftRow: ...

    async def get_shift(self, shift_id: int) -> Optional[ShiftRow]: ...

    async def delete_shift(self, shift_id: int) -> bool: ...

    async def month_earnings_by_month(self, user_id: int) -> list[tuple[str, Decimal]]: ...

    async def users_with_shifts(self, month: str) -> list[int]: ...

    async def user_months_with_shifts(self) -> list[tuple[int, str]]: ...


class PayoutStore(Protocol):
    async def lock_user(self, user_id: int) -> bool: ...

    async def create_payout(self, payout: NewPayout) -> PayoutRow: ...

    async def get_payout(self, payout_id: int) -> Optional[PayoutRow]: ...

    async def list_payouts(self, user_id: int, month: str, *, include_reversed: bool = False) -> list[PayoutRow]: ...

    async def sum_payout_amounts(
        self,
        user_id: Optional[int],
        month: Optional[str] = None,
        *,
        exclude_reversed: bool = True,
    ) -> Decimal: ...

    async def set_advance_flag(self, payout_id: int, is_advance: bool) -> bool: ...

    async def mark_reversed(self, payout_id: int, *, reversed_by: Optional[int], reason: Optional[str]) -> Optional[PayoutRow]: ...

    async def list_carryover_payouts(self, user_id: int, *, to_month: str, from_month: str) -> list[PayoutRow]: ...

    async def users_with_payouts(self, month: str) -> list[int]: ...


class MonthStatusStore(Protocol):
    async def get_closed(self, month: str) -> Optional[bool]: ...

    async def set_closed(self, month: str, closed: bool) -> None: ...

    async def list_statuses(self) -> list[tuple[str, bool]]: ...


class CarryoverStore(Protocol):
    async def upsert(self, row: CarryoverRow) -> CarryoverRow: ...

    async def delete(self, user_id: int, from_month: str, to_month: str) -> bool: ...

    async def list_by_to(self, user_id: int, month: str) -> list[CarryoverRow]: ...

    async def list_by_from(self, user_id: int, month: str) -> list[CarryoverRow]: ...
