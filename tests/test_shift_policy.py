import unittest
from datetime import date
from decimal import Decimal

from payroll.errors import ClosedMonthError, PayrollForbiddenError, PayrollNotFoundError, PayrollValidationError
from payroll.permissions import can_act_for_user, can_write_closed_month

from tests.fakes import Ledger


class TestPermissions(unittest.TestCase):
    def test_closed_month_writers(self):
        self.assertTrue(can_write_closed_month(role="admin"))
        self.assertTrue(can_write_closed_month(role="system"))
        self.assertFalse(can_write_closed_month(role="master"))
        self.assertFalse(can_write_closed_month(role=None))

    def test_master_acts_only_for_self(self):
        self.assertTrue(can_act_for_user(role="master", actor_user_id=3, target_user_id=3))
        self.assertFalse(can_act_for_user(role="master", actor_user_id=3, target_user_id=4))
        self.assertFalse(can_act_for_user(role="master", actor_user_id=None, target_user_id=4))
        self.assertTrue(can_act_for_user(role="admin", actor_user_id=1, target_user_id=4))


class TestShiftService(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.l = Ledger(today=date(2025, 3, 15), user_ids=(1, 2))
        self.svc = self.l.services.shifts

    async def test_master_adds_and_deletes_own_shift(self):
        row = await self.svc.add_shift(user_id=1, day="2025-03-14", total="1200.50", actor_user_id=1, actor_role="master")
        self.assertEqual(row.total, Decimal("1200.50"))

        await self.svc.delete_shift(row.id, actor_user_id=1, actor_role="master")
        self.assertIsNone(await self.l.shifts.get_shift(row.id))

    async def test_master_cannot_touch_closed_month(self):
        with self.assertRaises(ClosedMonthError):
            await self.svc.add_shift(user_id=1, day="2025-02-14", total=100, actor_user_id=1, actor_role="master")

        old = await self.l.shift(1, "2025-02-10", 100)
        with self.assertRaises(ClosedMonthError):
            await self.svc.delete_shift(old.id, actor_user_id=1, actor_role="master")
        self.assertIsNotNone(await self.l.shifts.get_shift(old.id))

    async def test_admin_may_correct_closed_month(self):
        row = await self.svc.add_shift(user_id=1, day="2025-02-14", total=100, actor_user_id=9, actor_role="admin")
        self.assertEqual(row.date, date(2025, 2, 14))

    async def test_master_cannot_write_for_someone_else(self):
        with self.assertRaises(PayrollForbiddenError):
            await self.svc.add_shift(user_id=2, day="2025-03-14", total=100, actor_user_id=1, actor_role="master")

    async def test_invalid_input(self):
        with self.assertRaises(PayrollValidationError):
            await self.svc.add_shift(user_id=1, day="2025-03-14", total="-1", actor_user_id=1, actor_role="master")
        with self.assertRaises(PayrollNotFoundError):
            await self.svc.delete_shift(404, actor_user_id=1, actor_role="admin")

    async def test_deleting_earnings_in_closed_month_moves_overpayment_forward(self):
        jan = await self.l.shift(1, "2025-01-10", 1000)
        await self.l.shift(1, "2025-02-10", 5000)
        await self.l.engine.create_payout_with_correction(
            user_id=1, amount=1000, date="2025-01-31", month="2025-01", initiator_role="admin"
        )

        await self.svc.delete_shift(jan.id, actor_user_id=9, actor_role="admin")

        edge = self.l.carryovers.edge(1, "2025-01", "2025-02")
        self.assertEqual(edge.amount, Decimal("1000"))
        self.assertEqual(self.l.payouts.total(1, "2025-02"), Decimal("1000"))


class TestPayoutReversal(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.l = Ledger(today=date(2025, 3, 15), user_ids=(1, 2))
        await self.l.shift(1, "2025-03-02", 1000)

    async def test_master_reverses_own_payout_and_advances_resettle(self):
        first = await self.l.engine.create_payout_with_correction(user_id=1, amount=800, date="2025-03-10")
        adv = await self.l.engine.create_payout_with_correction(user_id=1, amount=500, date="2025-03-11")
        self.assertTrue(adv.payout.is_advance)

        row = await self.l.engine.reverse_payout(first.payout.id, actor_user_id=1, actor_role="master", reason="ошибка")

        self.assertTrue(row.is_reversed)
        self.assertEqual(row.reversal_reason, "ошибка")
        self.assertFalse(self.l.payouts.rows[adv.payout.id].is_advance)

    async def test_second_reversal_is_a_no_op(self):
        p = await self.l.engine.create_payout_with_correction(user_id=1, amount=100, date="2025-03-10")
        first = await self.l.engine.reverse_payout(p.payout.id, actor_user_id=5, actor_role="admin", reason="a")
        second = await self.l.engine.reverse_payout(p.payout.id, actor_user_id=5, actor_role="admin", reason="b")
        self.assertEqual(second.reversal_reason, "a")
        self.assertEqual(first.reversed_at, second.reversed_at)

    async def test_reversal_guards(self):
        p = await self.l.engine.create_payout_with_correction(user_id=1, amount=100, date="2025-03-10")
        with self.assertRaises(PayrollForbiddenError):
            await self.l.engine.reverse_payout(p.payout.id, actor_user_id=2, actor_role="master")
        with self.assertRaises(PayrollNotFoundError):
            await self.l.engine.reverse_payout(999, actor_user_id=1, actor_role="admin")

        carried = await self.l.engine.create_carryover_payout(1, "2025-02", "2025-03", 50, "2025-03-01")
        with self.assertRaises(PayrollValidationError):
            await self.l.engine.reverse_payout(carried.id, actor_user_id=1, actor_role="admin")

    async def test_master_cannot_reverse_in_closed_month(self):
        await self.l.shift(1, "2025-02-02", 1000)
        self.l.clock.today = date(2025, 2, 20)
        p = await self.l.engine.create_payout_with_correction(user_id=1, amount=100, date="2025-02-10")
        self.l.clock.today = date(2025, 3, 15)

        with self.assertRaises(ClosedMonthError):
            await self.l.engine.reverse_payout(p.payout.id, actor_user_id=1, actor_role="master")


if __name__ == "__main__":
    unittest.main()
