from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal, InvalidOperation

from payroll.enums import InitiatorRole
from payroll.errors import ClosedMonthError, PayrollForbiddenError, PayrollNotFoundError, PayrollValidationError
from payroll.permissions import can_act_for_user, can_write_closed_month
from payroll.services.month_closure import MonthClosurePolicy
from payroll.services.payouts import PayoutService
from payroll.stores import ShiftRow, ShiftStore
from payroll.utils import MONEY_ZERO, month_of, parse_date


logger = logging.getLogger(__name__)


def _ensure_non_negative(value, *, code: str) -> Decimal:
    try:
        d = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise PayrollValidationError(code) from e
    if not d.is_finite() or d < MONEY_ZERO:
        raise PayrollValidationError(code)
    return d


class ShiftService:
    """Shift writes under the closed-month policy; every change re-reconciles the month."""

    def __init__(self, *, shifts: ShiftStore, closure: MonthClosurePolicy, engine: PayoutService):
        self.shifts = shifts
        self.closure = closure
        self.engine = engine

    async def _check_write(self, *, user_id: int, month: str, actor_user_id: int | None, actor_role) -> None:
        if not can_act_for_user(role=actor_role, actor_user_id=actor_user_id, target_user_id=user_id):
            raise PayrollForbiddenError()
        if not can_write_closed_month(role=actor_role) and await self.closure.is_closed(month):
            raise ClosedMonthError(month)

    async def add_shift(
        self,
        *,
        user_id: int,
        day: date | str,
        total: Decimal | str | int,
        hours: Decimal | str | int | None = None,
        actor_user_id: int | None,
        actor_role: InitiatorRole | str,
    ) -> ShiftRow:
        d = parse_date(day)
        amount = _ensure_non_negative(total, code="invalid_shift_total")
        h = _ensure_non_negative(hours, code="invalid_shift_hours") if hours is not None else None
        month = month_of(d)

        await self.engine.lock_user(user_id)
        await self._check_write(user_id=int(user_id), month=month, actor_user_id=actor_user_id, actor_role=actor_role)

        row = await self.shifts.add_shift(user_id=int(user_id), day=d, total=amount, hours=h)
        logger.info("SHIFT_ADDED shift_id=%s user_id=%s day=%s total=%s", row.id, row.user_id, d.isoformat(), str(amount))
        await self.engine.reconcile_month(row.user_id, month)
        return row

    async def delete_shift(self, shift_id: int, *, actor_user_id: int | None, actor_role: InitiatorRole | str) -> ShiftRow:
        row = await self.shifts.get_shift(int(shift_id))
        if row is None:
            raise PayrollNotFoundError("shift_not_found", f"Смена {shift_id} не найдена")
        month = month_of(row.date)

        await self.engine.lock_user(row.user_id)
        await self._check_write(user_id=row.user_id, month=month, actor_user_id=actor_user_id, actor_role=actor_role)

        await self.shifts.delete_shift(row.id)
        logger.info("SHIFT_DELETED shift_id=%s user_id=%s day=%s", row.id, row.user_id, row.date.isoformat())
        await self.engine.reconcile_month(row.user_id, month)
        return row
