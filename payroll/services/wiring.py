from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Callable

from sqlalchemy.ext.asyncio import AsyncSession

from payroll.repository.carryovers import CarryoverRepository
from payroll.repository.months import MonthStatusRepository
from payroll.repository.payouts import PayoutRepository
from payroll.repository.shifts import ShiftRepository
from payroll.services.carryovers import CarryoverLedger
from payroll.services.ledger import LedgerQueries
from payroll.services.month_closure import MonthClosurePolicy
from payroll.services.months import MonthService
from payroll.services.payouts import PayoutService
from payroll.services.reports import ReportService
from payroll.services.shifts import ShiftService
from payroll.stores import CarryoverStore, MonthStatusStore, PayoutStore, ShiftStore


@dataclass(frozen=True)
class PayrollServices:
    ledger: LedgerQueries
    closure: MonthClosurePolicy
    carryovers: CarryoverLedger
    payouts: PayoutService
    months: MonthService
    shifts: ShiftService
    reports: ReportService


def build_services(
    *,
    shifts: ShiftStore,
    payouts: PayoutStore,
    months: MonthStatusStore,
    carryovers: CarryoverStore,
    today: Callable[[], date] | None = None,
    max_iterations: int | None = None,
    comment_locale: str | None = None,
) -> PayrollServices:
    ledger = LedgerQueries(shifts=shifts, payouts=payouts, carryovers=carryovers)
    closure = MonthClosurePolicy(months, today=today)
    carryover_ledger = CarryoverLedger(carryovers)
    engine = PayoutService(
        payouts=payouts,
        ledger=ledger,
        closure=closure,
        carryovers=carryover_ledger,
        max_iterations=max_iterations,
        comment_locale=comment_locale,
    )
    return PayrollServices(
        ledger=ledger,
        closure=closure,
        carryovers=carryover_ledger,
        payouts=engine,
        months=MonthService(months=months, shifts=shifts, payouts=payouts, closure=closure, engine=engine),
        shifts=ShiftService(shifts=shifts, closure=closure, engine=engine),
        reports=ReportService(ledger=ledger, shifts=shifts, payouts=payouts),
    )


def services_for_session(session: AsyncSession) -> PayrollServices:
    return build_services(
        shifts=ShiftRepository(session),
        payouts=PayoutRepository(session),
        months=MonthStatusRepository(session),
        carryovers=CarryoverRepository(session),
    )
