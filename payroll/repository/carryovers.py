from __future__ import annotations

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from payroll.models import Carryover
from payroll.stores import CarryoverRow
from payroll.utils import to_money, utc_now


def _row(c: Carryover) -> CarryoverRow:
    return CarryoverRow(
        id=int(c.id),
        user_id=int(c.user_id),
        from_month=c.from_month,
        to_month=c.to_month,
        amount=to_money(c.amount),
        kind=c.kind,
    )


class CarryoverRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def _upsert_stmt(row: CarryoverRow):
        stmt = pg_insert(Carryover).values(
            user_id=int(row.user_id),
            from_month=row.from_month,
            to_month=row.to_month,
            amount=row.amount,
            kind=row.kind,
            updated_at=utc_now(),
        )
        # replace, never accumulate: the edge amount is recomputed by the engine
        return stmt.on_conflict_do_update(
            constraint="uq_carryovers_user_from_to",
            set_={
                "amount": stmt.excluded.amount,
                "kind": stmt.excluded.kind,
                "updated_at": stmt.excluded.updated_at,
            },
        ).returning(Carryover)

    async def upsert(self, row: CarryoverRow) -> CarryoverRow:
        res = await self.session.execute(self._upsert_stmt(row))
        return _row(res.scalar_one())

    async def delete(self, user_id: int, from_month: str, to_month: str) -> bool:
        res = await self.session.execute(
            delete(Carryover)
            .where(Carryover.user_id == int(user_id))
            .where(Carryover.from_month == from_month)
            .where(Carryover.to_month == to_month)
            .returning(Carryover.id)
        )
        return res.scalar_one_or_none() is not None

    async def list_by_to(self, user_id: int, month: str) -> list[CarryoverRow]:
        res = await self.session.execute(
            select(Carryover)
            .where(Carryover.user_id == int(user_id))
            .where(Carryover.to_month == month)
            .order_by(Carryover.from_month)
        )
        return [_row(c) for c in res.scalars().all()]

    async def list_by_from(self, user_id: int, month: str) -> list[CarryoverRow]:
        res = await self.session.execute(
            select(Carryover)
            .where(Carryover.user_id == int(user_id))
            .where(Carryover.from_month == month)
            .order_by(Carryover.to_month)
        )
        return [_row(c) for c in res.scalars().all()]
