import unittest
from datetime import date, datetime
from decimal import Decimal

from payroll.errors import PayrollValidationError
from payroll.utils import (
    carryover_comment,
    ensure_amount,
    ensure_month,
    last_day_of_month,
    month_of,
    next_month,
    parse_date,
    to_money,
)


class TestMonthUtils(unittest.TestCase):
    def test_next_month_rolls_over_year(self):
        self.assertEqual(next_month("2024-12"), "2025-01")
        self.assertEqual(next_month("2025-01"), "2025-02")

    def test_last_day_of_month_handles_leap_years(self):
        self.assertEqual(last_day_of_month("2024-02"), date(2024, 2, 29))
        self.assertEqual(last_day_of_month("2025-02"), date(2025, 2, 28))
        self.assertEqual(last_day_of_month("2025-12"), date(2025, 12, 31))

    def test_month_format_is_strict(self):
        self.assertEqual(ensure_month(" 2025-03 "), "2025-03")
        for bad in ("2025-3", "2025-13", "25-03", "", None, "2025/03"):
            with self.assertRaises(PayrollValidationError) as ctx:
                ensure_month(bad)
            self.assertEqual(ctx.exception.code, "invalid_month")

    def test_month_of_uses_calendar_month(self):
        self.assertEqual(month_of(date(2025, 1, 31)), "2025-01")

    def test_parse_date(self):
        self.assertEqual(parse_date("2025-02-28"), date(2025, 2, 28))
        self.assertEqual(parse_date(datetime(2025, 2, 28, 23, 0)), date(2025, 2, 28))
        with self.assertRaises(PayrollValidationError):
            parse_date("28.02.2025")

    def test_amount_must_be_positive(self):
        self.assertEqual(ensure_amount("10.50"), Decimal("10.50"))
        self.assertEqual(ensure_amount(3), Decimal("3"))
        for bad in (0, "-1", "NaN", "x", True):
            with self.assertRaises(PayrollValidationError):
                ensure_amount(bad)

    def test_carryover_comment(self):
        self.assertEqual(carryover_comment("2025-01"), "Перенос с января 2025")
        self.assertEqual(carryover_comment("2024-05", "ru"), "Перенос с мая 2024")
        self.assertEqual(carryover_comment("2025-01", "en"), "Carried over from January 2025")

    def test_to_money(self):
        self.assertEqual(to_money(None), Decimal("0"))
        self.assertEqual(to_money(12.5), Decimal("12.5"))


if __name__ == "__main__":
    unittest.main()
