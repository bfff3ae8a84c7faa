from __future__ import annotations

from typing import Optional

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from payroll.models import MonthStatus
from payroll.utils import utc_now


class MonthStatusRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def _set_closed_stmt(month: str, closed: bool):
        stmt = pg_insert(MonthStatus).values(month=month, closed=bool(closed), updated_at=utc_now())
        return stmt.on_conflict_do_update(
            index_elements=[MonthStatus.month],
            set_={"closed": stmt.excluded.closed, "updated_at": stmt.excluded.updated_at},
        )

    async def get_closed(self, month: str) -> Optional[bool]:
        res = await self.session.execute(select(MonthStatus.closed).where(MonthStatus.month == month))
        v = res.scalar_one_or_none()
        return None if v is None else bool(v)

    async def set_closed(self, month: str, closed: bool) -> None:
        await self.session.execute(self._set_closed_stmt(month, closed))

    async def list_statuses(self) -> list[tuple[str, bool]]:
        res = await self.session.execute(select(MonthStatus.month, MonthStatus.closed).order_by(MonthStatus.month.desc()))
        return [(str(m), bool(c)) for m, c in res.all()]
