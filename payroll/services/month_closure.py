from __future__ import annotations

from datetime import date
from typing import Callable

from payroll.config import settings
from payroll.stores import MonthStatusStore
from payroll.utils import last_day_of_month, today_in


class MonthClosurePolicy:
    """A month is closed when an admin closed it or when its last calendar day has passed."""

    def __init__(self, months: MonthStatusStore, *, today: Callable[[], date] | None = None):
        self.months = months
        self._today = today or (lambda: today_in(settings.TIMEZONE))

    def today(self) -> date:
        return self._today()

    def is_calendar_closed(self, month: str) -> bool:
        return self.today() > last_day_of_month(month)

    async def is_manually_closed(self, month: str) -> bool:
        return bool(await self.months.get_closed(month))

    async def is_closed(self, month: str) -> bool:
        if await self.is_manually_closed(month):
            return True
        return self.is_calendar_closed(month)
