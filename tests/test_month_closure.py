import unittest
from datetime import date
from decimal import Decimal

from payroll.enums import CarryoverKind
from payroll.services.carryovers import CarryoverLedger
from payroll.services.month_closure import MonthClosurePolicy

from tests.fakes import Clock, FakeCarryoverStore, FakeMonthStatusStore


class TestMonthClosurePolicy(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.clock = Clock(date(2025, 3, 31))
        self.store = FakeMonthStatusStore()
        self.policy = MonthClosurePolicy(self.store, today=self.clock)

    async def test_month_closes_after_its_last_day(self):
        self.assertFalse(await self.policy.is_closed("2025-03"))
        self.assertTrue(await self.policy.is_closed("2025-02"))

        self.clock.today = date(2025, 4, 1)
        self.assertTrue(await self.policy.is_closed("2025-03"))

    async def test_manual_flag_closes_running_month(self):
        self.assertFalse(await self.policy.is_manually_closed("2025-03"))
        await self.store.set_closed("2025-03", True)
        self.assertTrue(await self.policy.is_closed("2025-03"))

    async def test_reopened_flag_does_not_reopen_past_month(self):
        await self.store.set_closed("2025-01", False)
        self.assertTrue(await self.policy.is_closed("2025-01"))
        self.assertFalse(await self.policy.is_closed("2025-04"))


class TestCarryoverLedger(unittest.IsolatedAsyncioTestCase):
    async def test_record_replaces_amount(self):
        ledger = CarryoverLedger(FakeCarryoverStore())
        await ledger.record(user_id=1, from_month="2025-01", to_month="2025-02", amount=Decimal("100"), kind=CarryoverKind.CASCADE)
        await ledger.record(user_id=1, from_month="2025-01", to_month="2025-02", amount=Decimal("40"), kind=CarryoverKind.CASCADE)

        rows = await ledger.outgoing(1, "2025-01")
        self.assertEqual([r.amount for r in rows], [Decimal("40")])
        self.assertEqual([r.amount for r in await ledger.incoming(1, "2025-02")], [Decimal("40")])

    async def test_remove_edge(self):
        ledger = CarryoverLedger(FakeCarryoverStore())
        await ledger.record(user_id=1, from_month="2025-01", to_month="2025-02", amount=Decimal("1"), kind=CarryoverKind.SPLIT)
        self.assertEqual([r.kind for r in await ledger.outgoing(1, "2025-01")], [CarryoverKind.SPLIT])

        self.assertTrue(await ledger.remove(user_id=1, from_month="2025-01", to_month="2025-02"))
        self.assertFalse(await ledger.remove(user_id=1, from_month="2025-01", to_month="2025-02"))


if __name__ == "__main__":
    unittest.main()
