import unittest
from datetime import date
from decimal import Decimal

from tests.fakes import Ledger


D = Decimal


class TestAdvanceRecalculation(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.l = Ledger(today=date(2025, 3, 15))

    async def _advance(self, amount, day="2025-03-10"):
        res = await self.l.engine.create_payout_with_correction(user_id=1, amount=amount, date=day)
        self.assertTrue(res.payout.is_advance)
        return res.payout

    def _flag(self, payout_id):
        return self.l.payouts.rows[payout_id].is_advance

    async def test_fifo_settlement_as_earnings_arrive(self):
        first = await self._advance(4000)
        second = await self._advance(3000)

        await self.l.shift(1, "2025-03-03", 4000)
        res = await self.l.engine.recalculate_advances_for_month(1, "2025-03")
        self.assertEqual(res.settled_ids, (first.id,))
        self.assertFalse(self._flag(first.id))
        self.assertTrue(self._flag(second.id))

        third = await self._advance(500)

        await self.l.shift(1, "2025-03-04", 3000)
        res = await self.l.engine.recalculate_advances_for_month(1, "2025-03")
        self.assertEqual(res.settled_ids, (second.id,))
        self.assertEqual(res.remaining_ids, (third.id,))
        self.assertFalse(self._flag(second.id))
        self.assertTrue(self._flag(third.id))

    async def test_later_smaller_advance_waits_for_earlier_one(self):
        big = await self._advance(4000)
        small = await self._advance(1000)
        await self.l.shift(1, "2025-03-03", 1500)

        res = await self.l.engine.recalculate_advances_for_month(1, "2025-03")

        self.assertEqual(res.settled_ids, ())
        self.assertEqual(res.remaining_ids, (big.id, small.id))
        self.assertTrue(self._flag(small.id))

    async def test_normal_payouts_consume_capacity_and_stay_untouched(self):
        await self.l.shift(1, "2025-03-03", 1000)
        normal = await self.l.engine.create_payout_with_correction(user_id=1, amount=800, date="2025-03-10")
        adv = await self._advance(500)
        await self.l.shift(1, "2025-03-05", 200)

        res = await self.l.engine.recalculate_advances_for_month(1, "2025-03")
        self.assertEqual(res.settled_ids, ())

        await self.l.shift(1, "2025-03-06", 100)
        res = await self.l.engine.recalculate_advances_for_month(1, "2025-03")
        self.assertEqual(res.settled_ids, (adv.id,))
        self.assertNotIn(normal.payout.id, [pid for pid, _ in self.l.payouts.flag_writes])

    async def test_second_run_changes_nothing(self):
        await self._advance(4000)
        await self.l.shift(1, "2025-03-03", 5000)

        await self.l.engine.recalculate_advances_for_month(1, "2025-03")
        writes = list(self.l.payouts.flag_writes)
        edges = dict(self.l.carryovers.edges)

        res = await self.l.engine.recalculate_advances_for_month(1, "2025-03")

        self.assertEqual(res.settled_ids, ())
        self.assertEqual(self.l.payouts.flag_writes, writes)
        self.assertEqual(self.l.carryovers.edges, edges)

    async def test_reversed_advance_is_ignored(self):
        adv = await self._advance(4000)
        await self.l.payouts.mark_reversed(adv.id, reversed_by=None, reason="ошибка")
        await self.l.shift(1, "2025-03-03", 5000)

        res = await self.l.engine.recalculate_advances_for_month(1, "2025-03")

        self.assertEqual(res.settled_ids, ())
        self.assertEqual(res.remaining_ids, ())

    async def test_split_carryover_brings_its_own_capacity(self):
        await self.l.shift(1, "2025-02-10", 100)
        await self.l.engine.create_payout_with_correction(
            user_id=1, amount=600, date="2025-03-01", month="2025-02", initiator_role="admin"
        )
        self.assertEqual(self.l.payouts.total(1, "2025-03"), D("500"))
        adv = await self._advance(600)

        res = await self.l.engine.recalculate_advances_for_month(1, "2025-03")

        # the carried 500 fills the 500 it brought in; nothing left for the advance
        self.assertEqual(res.settled_ids, ())
        await self.l.shift(1, "2025-03-03", 600)
        res = await self.l.engine.recalculate_advances_for_month(1, "2025-03")
        self.assertEqual(res.settled_ids, (adv.id,))

    async def test_sweep_carryover_uses_up_earnings(self):
        adv = await self._advance(600)
        await self.l.engine.create_carryover_payout(1, "2025-02", "2025-03", 1000, "2025-03-01")
        await self.l.shift(1, "2025-03-03", 1000)

        res = await self.l.engine.recalculate_advances_for_month(1, "2025-03")
        self.assertEqual(res.settled_ids, ())

        await self.l.shift(1, "2025-03-04", 600)
        res = await self.l.engine.recalculate_advances_for_month(1, "2025-03")
        self.assertEqual(res.settled_ids, (adv.id,))


class TestShiftTriggersSettlement(unittest.IsolatedAsyncioTestCase):
    async def test_master_shift_settles_own_advance(self):
        l = Ledger(today=date(2025, 3, 15))
        res = await l.engine.create_payout_with_correction(user_id=1, amount=2000, date="2025-03-10")
        self.assertTrue(res.payout.is_advance)

        await l.services.shifts.add_shift(
            user_id=1, day="2025-03-12", total="2500", actor_user_id=1, actor_role="master"
        )

        self.assertFalse(l.payouts.rows[res.payout.id].is_advance)


if __name__ == "__main__":
    unittest.main()
