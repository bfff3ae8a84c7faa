from __future__ import annotations


class PayrollError(Exception):
    """Base error of the payroll ledger.

    ``code`` is a short machine-readable string (``"invalid_month"``, ``"payout_not_found"``)
    the HTTP layer maps to a response; ``args[0]`` carries the same code.
    """

    code: str = "payroll_error"

    def __init__(self, code: str | None = None, detail: str | None = None):
        self.code = code or self.code
        self.detail = detail
        super().__init__(self.code)


class PayrollValidationError(PayrollError, ValueError):
    code = "validation_error"


class PayrollNotFoundError(PayrollError, LookupError):
    code = "not_found"


class PayrollForbiddenError(PayrollError, PermissionError):
    code = "forbidden"


class ClosedMonthError(PayrollError):
    code = "month_closed"

    def __init__(self, month: str, detail: str | None = None):
        self.month = month
        super().__init__("month_closed", detail or f"Месяц {month} закрыт")
