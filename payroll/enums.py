from enum import StrEnum


class UserRole(StrEnum):
    ADMIN = "admin"
    MASTER = "master"


class InitiatorRole(StrEnum):
    ADMIN = "admin"
    MASTER = "master"
    SYSTEM = "system"


class PayoutSource(StrEnum):
    MANUAL = "manual"
    CARRYOVER = "carryover"
    # split money handed back to the month it was trimmed from
    CARRYOVER_RETURN = "carryover_return"


class PayoutMethod(StrEnum):
    CARRYOVER = "carryover"
    CARRYOVER_SPLIT = "carryover_split"
    CARRYOVER_RETURN = "carryover_return"


class CarryoverKind(StrEnum):
    # excess cut off a payout into a closed month; the source payout was trimmed
    SPLIT = "split"
    # produced by the overpayment sweep; the source month keeps its payouts
    CASCADE = "cascade"


class MonthPaymentStatus(StrEnum):
    CLOSED = "closed"
    PARTIAL = "partial"
    UNPAID = "unpaid"
