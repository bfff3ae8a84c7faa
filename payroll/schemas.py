from pydantic import BaseModel, Field
from typing import Optional
from datetime import date, datetime
from decimal import Decimal

from .enums import CarryoverKind, InitiatorRole, MonthPaymentStatus


MONTH_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"


class PayoutCreate(BaseModel):
    user_id: int
    amount: Decimal = Field(gt=0)
    date: date
    # derived from the payout date when omitted
    month: Optional[str] = Field(default=None, pattern=MONTH_PATTERN)
    comment: Optional[str] = Field(default=None, max_length=1000)
    method: Optional[str] = Field(default=None, max_length=32)


class PayoutOut(BaseModel):
    id: Optional[int]
    user_id: int
    month: str
    amount: Decimal
    date: date
    comment: Optional[str]
    is_advance: bool
    initiated_by: Optional[int]
    initiator_role: Optional[InitiatorRole]
    method: Optional[str]
    source: Optional[str]
    carryover_from: Optional[str]
    reversed_at: Optional[datetime]
    reversal_reason: Optional[str]

    class Config:
        from_attributes = True


class PayoutResultOut(BaseModel):
    payout: PayoutOut
    overpayment: Optional[Decimal]
    capped: bool = False


class PayoutReverse(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=500)


class AdvanceRecalculationOut(BaseModel):
    month: str
    settled_ids: list[int]
    remaining_ids: list[int]

    class Config:
        from_attributes = True


class SweepRequest(BaseModel):
    user_id: int
    start_month: str = Field(pattern=MONTH_PATTERN)
    payout_date: date


class CarryoverHopOut(BaseModel):
    from_month: str
    to_month: str
    amount: Decimal

    class Config:
        from_attributes = True


class CarryoverOut(BaseModel):
    from_month: str
    to_month: str
    amount: Decimal
    kind: CarryoverKind

    class Config:
        from_attributes = True


class SweepOut(BaseModel):
    start_month: str
    hops: list[CarryoverHopOut]
    residual: Decimal
    undone: list[CarryoverOut]

    class Config:
        from_attributes = True


class ShiftCreate(BaseModel):
    user_id: int
    date: date
    total: Decimal = Field(ge=0)
    hours: Optional[Decimal] = Field(default=None, ge=0)


class ShiftOut(BaseModel):
    id: int
    user_id: int
    date: date
    total: Decimal

    class Config:
        from_attributes = True


class MonthStatusUpdate(BaseModel):
    closed: bool


class MonthStatusOut(BaseModel):
    month: str
    manually_closed: bool
    calendar_closed: bool
    closed: bool

    class Config:
        from_attributes = True


class ClosureRunOut(BaseModel):
    user_id: int
    month: str
    sweep: SweepOut

    class Config:
        from_attributes = True


class MonthSummaryOut(BaseModel):
    month: str
    earned: Decimal
    paid: Decimal
    remaining: Decimal
    progress: int
    status: MonthPaymentStatus

    class Config:
        from_attributes = True


class PayoutsOverviewOut(BaseModel):
    user_id: int
    global_balance: Decimal
    total_earnings: Decimal
    total_payouts: Decimal
    months: list[MonthSummaryOut]

    class Config:
        from_attributes = True


class MonthTotalsOut(BaseModel):
    month: str
    earned: Decimal
    paid: Decimal
    remaining: Decimal

    class Config:
        from_attributes = True
