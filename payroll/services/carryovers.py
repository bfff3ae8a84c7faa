from __future__ import annotations

import logging
from decimal import Decimal

from payroll.enums import CarryoverKind
from payroll.stores import CarryoverRow, CarryoverStore


logger = logging.getLogger(__name__)


class CarryoverLedger:
    """Directional month-to-month transfers, one edge per (user, from_month, to_month)."""

    def __init__(self, store: CarryoverStore):
        self.store = store

    async def record(
        self,
        *,
        user_id: int,
        from_month: str,
        to_month: str,
        amount: Decimal,
        kind: CarryoverKind,
    ) -> CarryoverRow:
        row = await self.store.upsert(
            CarryoverRow(user_id=int(user_id), from_month=from_month, to_month=to_month, amount=amount, kind=kind)
        )
        logger.info(
            "CARRYOVER_RECORDED user_id=%s from=%s to=%s amount=%s kind=%s",
            int(user_id),
            from_month,
            to_month,
            str(amount),
            kind.value,
        )
        return row

    async def remove(self, *, user_id: int, from_month: str, to_month: str) -> bool:
        deleted = await self.store.delete(int(user_id), from_month, to_month)
        if deleted:
            logger.info("CARRYOVER_REMOVED user_id=%s from=%s to=%s", int(user_id), from_month, to_month)
        return deleted

    async def incoming(self, user_id: int, month: str) -> list[CarryoverRow]:
        return await self.store.list_by_to(int(user_id), month)

    async def outgoing(self, user_id: int, month: str) -> list[CarryoverRow]:
        return await self.store.list_by_from(int(user_id), month)
