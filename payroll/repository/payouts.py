from __future__ import annotations

from decimal import Decimal
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from payroll.enums import PayoutSource
from payroll.models import Payout, User
from payroll.stores import NewPayout, PayoutRow
from payroll.utils import to_money, utc_now


def _row(p: Payout) -> PayoutRow:
    return PayoutRow(
        id=int(p.id),
        user_id=int(p.user_id),
        month=p.month,
        amount=to_money(p.amount),
        date=p.date,
        comment=p.comment,
        is_advance=bool(p.is_advance),
        initiated_by=p.initiated_by,
        initiator_role=p.initiator_role,
        method=p.method,
        source=p.source,
        carryover_from=p.carryover_from,
        reversed_at=p.reversed_at,
        reversed_by=p.reversed_by,
        reversal_reason=p.reversal_reason,
        created_at=p.created_at,
    )


class PayoutRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def _lock_user_query(user_id: int):
        return select(User.id).where(User.id == int(user_id)).with_for_update()

    @staticmethod
    def _sum_query(user_id: Optional[int], month: Optional[str] = None, *, exclude_reversed: bool = True):
        q = select(func.coalesce(func.sum(Payout.amount), 0))
        if user_id is not None:
            q = q.where(Payout.user_id == int(user_id))
        if month is not None:
            q = q.where(Payout.month == month)
        if exclude_reversed:
            q = q.where(Payout.reversed_at.is_(None))
        return q

    async def lock_user(self, user_id: int) -> bool:
        """Row lock on the user: serializes ledger writes for one master until commit."""
        res = await self.session.execute(self._lock_user_query(user_id))
        return res.scalar_one_or_none() is not None

    async def create_payout(self, payout: NewPayout) -> PayoutRow:
        p = Payout(
            user_id=int(payout.user_id),
            month=payout.month,
            amount=payout.amount,
            date=payout.date,
            comment=payout.comment,
            is_advance=bool(payout.is_advance),
            initiated_by=payout.initiated_by,
            initiator_role=payout.initiator_role,
            method=payout.method,
            source=payout.source,
            carryover_from=payout.carryover_from,
        )
        self.session.add(p)
        await self.session.flush()
        await self.session.refresh(p)
        return _row(p)

    async def get_payout(self, payout_id: int) -> Optional[PayoutRow]:
        res = await self.session.execute(select(Payout).where(Payout.id == int(payout_id)))
        p = res.scalar_one_or_none()
        return _row(p) if p else None

    async def list_payouts(self, user_id: int, month: str, *, include_reversed: bool = False) -> list[PayoutRow]:
        q = select(Payout).where(Payout.user_id == int(user_id)).where(Payout.month == month)
        if not include_reversed:
            q = q.where(Payout.reversed_at.is_(None))
        res = await self.session.execute(q.order_by(Payout.id.asc()))
        return [_row(p) for p in res.scalars().all()]

    async def sum_payout_amounts(
        self,
        user_id: Optional[int],
        month: Optional[str] = None,
        *,
        exclude_reversed: bool = True,
    ) -> Decimal:
        res = await self.session.execute(self._sum_query(user_id, month, exclude_reversed=exclude_reversed))
        return to_money(res.scalar_one())

    async def set_advance_flag(self, payout_id: int, is_advance: bool) -> bool:
        res = await self.session.execute(
            update(Payout).where(Payout.id == int(payout_id)).values(is_advance=bool(is_advance)).returning(Payout.id)
        )
        return res.scalar_one_or_none() is not None

    async def mark_reversed(self, payout_id: int, *, reversed_by: Optional[int], reason: Optional[str]) -> Optional[PayoutRow]:
        res = await self.session.execute(select(Payout).where(Payout.id == int(payout_id)).with_for_update())
        p = res.scalar_one_or_none()
        if not p:
            return None
        # first reversal wins; repeated calls keep its audit fields
        if p.reversed_at is None:
            p.reversed_at = utc_now()
            p.reversed_by = reversed_by
            p.reversal_reason = reason
            await self.session.flush()
            await self.session.refresh(p)
        return _row(p)

    async def list_carryover_payouts(self, user_id: int, *, to_month: str, from_month: str) -> list[PayoutRow]:
        res = await self.session.execute(
            select(Payout)
            .where(Payout.user_id == int(user_id))
            .where(Payout.month == to_month)
            .where(Payout.source == PayoutSource.CARRYOVER.value)
            .where(Payout.carryover_from == from_month)
            .where(Payout.reversed_at.is_(None))
            .order_by(Payout.id.asc())
        )
        return [_row(p) for p in res.scalars().all()]

    async def users_with_payouts(self, month: str) -> list[int]:
        res = await self.session.execute(
            select(Payout.user_id)
            .where(Payout.month == month)
            .where(Payout.reversed_at.is_(None))
            .distinct()
            .order_by(Payout.user_id)
        )
        return [int(x) for x in res.scalars().all()]
