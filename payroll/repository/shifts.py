from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from payroll.models import Shift
from payroll.stores import ShiftRow
from payroll.utils import first_day_of_month, last_day_of_month, to_money


def _row(s: Shift) -> ShiftRow:
    return ShiftRow(id=int(s.id), user_id=int(s.user_id), date=s.date, total=to_money(s.total))


class ShiftRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def _sum_query(user_id: Optional[int], *, month: Optional[str] = None, date_to: Optional[date] = None):
        q = select(func.coalesce(func.sum(Shift.total), 0))
        if user_id is not None:
            q = q.where(Shift.user_id == int(user_id))
        if month is not None:
            # date range instead of to_char() so the (user_id, date) index is used
            q = q.where(Shift.date >= first_day_of_month(month)).where(Shift.date <= last_day_of_month(month))
        if date_to is not None:
            q = q.where(Shift.date <= date_to)
        return q

    @staticmethod
    def _month_label():
        return func.to_char(func.date_trunc("month", Shift.date), "YYYY-MM")

    async def sum_shift_totals(
        self,
        user_id: Optional[int],
        *,
        month: Optional[str] = None,
        date_to: Optional[date] = None,
    ) -> Decimal:
        res = await self.session.execute(self._sum_query(user_id, month=month, date_to=date_to))
        return to_money(res.scalar_one())

    async def add_shift(self, *, user_id: int, day: date, total: Decimal, hours: Optional[Decimal] = None) -> ShiftRow:
        s = Shift(user_id=int(user_id), date=day, total=total, hours=hours)
        self.session.add(s)
        await self.session.flush()
        await self.session.refresh(s)
        return _row(s)

    async def get_shift(self, shift_id: int) -> Optional[ShiftRow]:
        res = await self.session.execute(select(Shift).where(Shift.id == int(shift_id)))
        s = res.scalar_one_or_none()
        return _row(s) if s else None

    async def delete_shift(self, shift_id: int) -> bool:
        res = await self.session.execute(delete(Shift).where(Shift.id == int(shift_id)).returning(Shift.id))
        return res.scalar_one_or_none() is not None

    async def month_earnings_by_month(self, user_id: int) -> list[tuple[str, Decimal]]:
        label = self._month_label().label("month")
        res = await self.session.execute(
            select(label, func.sum(Shift.total))
            .where(Shift.user_id == int(user_id))
            .group_by(label)
            .order_by(label.asc())
        )
        return [(str(m), to_money(total)) for m, total in res.all()]

    async def users_with_shifts(self, month: str) -> list[int]:
        res = await self.session.execute(
            select(Shift.user_id)
            .where(Shift.date >= first_day_of_month(month))
            .where(Shift.date <= last_day_of_month(month))
            .distinct()
            .order_by(Shift.user_id)
        )
        return [int(x) for x in res.scalars().all()]

    async def user_months_with_shifts(self) -> list[tuple[int, str]]:
        label = self._month_label().label("month")
        res = await self.session.execute(
            select(Shift.user_id, label).group_by(Shift.user_id, label).order_by(label.asc(), Shift.user_id.asc())
        )
        return [(int(uid), str(m)) for uid, m in res.all()]
