from fastapi import FastAPI, Depends, Request, HTTPException, status
from fastapi.responses import JSONResponse
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware
from jose import jwt, JWTError
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from payroll.db import get_async_session
from payroll.errors import (
    ClosedMonthError,
    PayrollError,
    PayrollForbiddenError,
    PayrollNotFoundError,
    PayrollValidationError,
)
from payroll.schemas import (
    AdvanceRecalculationOut,
    ClosureRunOut,
    MonthStatusOut,
    MonthStatusUpdate,
    MonthSummaryOut,
    MonthTotalsOut,
    PayoutCreate,
    PayoutOut,
    PayoutResultOut,
    PayoutReverse,
    PayoutsOverviewOut,
    ShiftCreate,
    ShiftOut,
    SweepOut,
    SweepRequest,
)
from payroll.services.wiring import PayrollServices, services_for_session

from .config import get_config
from .dependencies import TOKEN_COOKIE, Actor, actor_from_claims, ensure_same_user, require_actor, require_admin


logger = logging.getLogger(__name__)

app = FastAPI(title="Payroll", root_path="/payroll")

# Make app aware of reverse proxy (X-Forwarded-Proto/Host)
app.add_middleware(ProxyHeadersMiddleware, trusted_hosts="*")


_ERROR_STATUS = (
    (PayrollValidationError, status.HTTP_400_BAD_REQUEST, "Некорректные данные"),
    (PayrollNotFoundError, status.HTTP_404_NOT_FOUND, "Не найдено"),
    (PayrollForbiddenError, status.HTTP_403_FORBIDDEN, "Недостаточно прав"),
    (ClosedMonthError, status.HTTP_409_CONFLICT, "Месяц закрыт"),
)


@app.exception_handler(PayrollError)
async def payroll_error_handler(request: Request, exc: PayrollError):
    for cls, code, fallback in _ERROR_STATUS:
        if isinstance(exc, cls):
            return JSONResponse(status_code=code, content={"detail": exc.detail or fallback, "code": exc.code})
    logger.error("PAYROLL_ERROR_UNMAPPED code=%s path=%s", exc.code, request.url.path)
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": exc.detail or "Ошибка", "code": exc.code})


async def get_db() -> AsyncSession:
    async with get_async_session() as session:
        yield session


def get_services(session: AsyncSession = Depends(get_db)) -> PayrollServices:
    return services_for_session(session)


@app.get("/auth")
async def auth(token: str):
    # Validate token and keep it in an httponly cookie
    try:
        data = jwt.decode(token, get_config().jwt_secret, algorithms=["HS256"])
    except JWTError:
        raise HTTPException(status_code=401)
    actor = actor_from_claims(data)
    resp = JSONResponse({"ok": True, "user_id": actor.user_id, "role": actor.role.value})
    resp.set_cookie(TOKEN_COOKIE, token, httponly=True, secure=False, samesite="lax")
    return resp


# ---- payouts ----


@app.post("/api/payouts", response_model=PayoutResultOut)
async def create_payout(
    body: PayoutCreate,
    actor: Actor = Depends(require_actor),
    svc: PayrollServices = Depends(get_services),
):
    ensure_same_user(actor, body.user_id)
    res = await svc.payouts.create_payout_with_correction(
        user_id=body.user_id,
        amount=body.amount,
        date=body.date,
        month=body.month,
        comment=body.comment,
        initiated_by=actor.user_id,
        initiator_role=actor.role,
        method=body.method,
    )
    return PayoutResultOut(payout=PayoutOut.model_validate(res.payout), overpayment=res.overpayment, capped=res.capped)


@app.post("/api/payouts/{payout_id}/reverse", response_model=PayoutOut)
async def reverse_payout(
    payout_id: int,
    body: PayoutReverse,
    actor: Actor = Depends(require_actor),
    svc: PayrollServices = Depends(get_services),
):
    row = await svc.payouts.reverse_payout(
        payout_id, actor_user_id=actor.user_id, actor_role=actor.role, reason=body.reason
    )
    return PayoutOut.model_validate(row)


@app.post("/api/users/{user_id}/months/{month}/recalculate-advances", response_model=AdvanceRecalculationOut)
async def recalculate_advances(
    user_id: int,
    month: str,
    actor: Actor = Depends(require_admin),
    svc: PayrollServices = Depends(get_services),
):
    res = await svc.payouts.recalculate_advances_for_month(user_id, month)
    return AdvanceRecalculationOut.model_validate(res)


@app.post("/api/carryovers/sweep", response_model=SweepOut)
async def run_sweep(
    body: SweepRequest,
    actor: Actor = Depends(require_admin),
    svc: PayrollServices = Depends(get_services),
):
    res = await svc.payouts.process_overpayment_carryover(body.user_id, body.start_month, body.payout_date)
    return SweepOut.model_validate(res)


# ---- shifts ----


@app.post("/api/shifts", response_model=ShiftOut)
async def add_shift(
    body: ShiftCreate,
    actor: Actor = Depends(require_actor),
    svc: PayrollServices = Depends(get_services),
):
    row = await svc.shifts.add_shift(
        user_id=body.user_id,
        day=body.date,
        total=body.total,
        hours=body.hours,
        actor_user_id=actor.user_id,
        actor_role=actor.role,
    )
    return ShiftOut.model_validate(row)


@app.delete("/api/shifts/{shift_id}", response_model=ShiftOut)
async def delete_shift(
    shift_id: int,
    actor: Actor = Depends(require_actor),
    svc: PayrollServices = Depends(get_services),
):
    row = await svc.shifts.delete_shift(shift_id, actor_user_id=actor.user_id, actor_role=actor.role)
    return ShiftOut.model_validate(row)


# ---- months ----


@app.get("/api/months", response_model=list[MonthStatusOut])
async def list_months(actor: Actor = Depends(require_actor), svc: PayrollServices = Depends(get_services)):
    return [MonthStatusOut.model_validate(v) for v in await svc.months.list_month_statuses()]


@app.get("/api/months/{month}", response_model=MonthStatusOut)
async def get_month(month: str, actor: Actor = Depends(require_actor), svc: PayrollServices = Depends(get_services)):
    return MonthStatusOut.model_validate(await svc.months.get_month_status(month))


@app.put("/api/months/{month}", response_model=list[ClosureRunOut])
async def set_month(
    month: str,
    body: MonthStatusUpdate,
    actor: Actor = Depends(require_admin),
    svc: PayrollServices = Depends(get_services),
):
    runs = await svc.months.set_month_closed(month, body.closed)
    logger.info("MONTH_STATUS_API month=%s closed=%s admin_id=%s runs=%s", month, body.closed, actor.user_id, len(runs))
    return [ClosureRunOut.model_validate(r) for r in runs]


@app.post("/api/months/auto-close", response_model=list[ClosureRunOut])
async def auto_close(actor: Actor = Depends(require_admin), svc: PayrollServices = Depends(get_services)):
    return [ClosureRunOut.model_validate(r) for r in await svc.months.auto_close_finished_months()]


@app.get("/api/months/{month}/totals", response_model=MonthTotalsOut)
async def month_totals(month: str, actor: Actor = Depends(require_admin), svc: PayrollServices = Depends(get_services)):
    return MonthTotalsOut.model_validate(await svc.reports.month_totals(month))


# ---- reports ----


@app.get("/api/users/{user_id}/overview", response_model=PayoutsOverviewOut)
async def payouts_overview(user_id: int, actor: Actor = Depends(require_actor), svc: PayrollServices = Depends(get_services)):
    ensure_same_user(actor, user_id)
    return PayoutsOverviewOut.model_validate(await svc.reports.payouts_overview(user_id))


@app.get("/api/users/{user_id}/months/{month}/status", response_model=MonthSummaryOut)
async def month_status(
    user_id: int,
    month: str,
    actor: Actor = Depends(require_actor),
    svc: PayrollServices = Depends(get_services),
):
    ensure_same_user(actor, user_id)
    return MonthSummaryOut.model_validate(await svc.reports.month_status_by_balance(user_id, month))
