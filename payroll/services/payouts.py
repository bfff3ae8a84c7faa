from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from typing import Optional

from payroll.config import settings
from payroll.enums import CarryoverKind, InitiatorRole, PayoutMethod, PayoutSource
from payroll.errors import ClosedMonthError, PayrollForbiddenError, PayrollNotFoundError, PayrollValidationError
from payroll.permissions import can_act_for_user, can_write_closed_month
from payroll.services.carryovers import CarryoverLedger
from payroll.services.ledger import LedgerQueries
from payroll.services.month_closure import MonthClosurePolicy
from payroll.stores import CarryoverRow, NewPayout, PayoutRow, PayoutStore
from payroll.utils import (
    MONEY_ZERO,
    carryover_comment,
    carryover_return_comment,
    ensure_amount,
    ensure_month,
    last_day_of_month,
    month_of,
    next_month,
    parse_date,
    utc_now,
)


logger = logging.getLogger(__name__)

REASON_CARRYOVER_RECALCULATED = "Перерасчёт переноса"
REASON_CARRYOVER_UNDONE = "Перенос больше не нужен"
REASON_CARRYOVER_RETURNED = "Возврат переноса"


@dataclass(frozen=True)
class PayoutResult:
    """Outcome of a payout request.

    ``overpayment`` is ``None`` when the payout fit the month, ``Decimal("0")`` when it was
    stored as an advance, and the carried amount when a closed month was split.
    When the split chain hit its depth limit, ``capped`` is set and ``overpayment`` is the
    excess left unresolved in the stored payout.
    """

    payout: PayoutRow
    overpayment: Optional[Decimal]
    capped: bool = False

    @property
    def is_split(self) -> bool:
        return not self.capped and self.overpayment is not None and self.overpayment > MONEY_ZERO


@dataclass(frozen=True)
class AdvanceRecalculation:
    month: str
    settled_ids: tuple[int, ...]
    remaining_ids: tuple[int, ...]


@dataclass(frozen=True)
class CarryoverHop:
    from_month: str
    to_month: str
    amount: Decimal


@dataclass(frozen=True)
class SweepResult:
    start_month: str
    hops: tuple[CarryoverHop, ...] = ()
    residual: Decimal = MONEY_ZERO
    undone: tuple[CarryoverRow, ...] = ()

    @property
    def capped(self) -> bool:
        return self.residual > MONEY_ZERO


@dataclass(frozen=True)
class MonthReconciliation:
    advances: AdvanceRecalculation
    sweep: SweepResult


def _coerce_role(value: InitiatorRole | str | None) -> InitiatorRole:
    if value is None:
        return InitiatorRole.MASTER
    try:
        return InitiatorRole(value)
    except ValueError as e:
        raise PayrollValidationError("invalid_initiator_role", f"Неизвестная роль: {value!r}") from e


class PayoutService:
    """Classifies payouts against month capacity and keeps carryover chains consistent.

    All writes go through the stores and are only flushed; the caller owns the transaction.
    Every public operation takes the per-user lock first, so two reconciliations of the same
    master never interleave.
    """

    def __init__(
        self,
        *,
        payouts: PayoutStore,
        ledger: LedgerQueries,
        closure: MonthClosurePolicy,
        carryovers: CarryoverLedger,
        max_iterations: int | None = None,
        comment_locale: str | None = None,
    ):
        self.payouts = payouts
        self.ledger = ledger
        self.closure = closure
        self.carryovers = carryovers
        self.max_iterations = int(max_iterations if max_iterations is not None else settings.CARRYOVER_MAX_ITERATIONS)
        self.comment_locale = comment_locale or settings.CARRYOVER_COMMENT_LOCALE

    async def lock_user(self, user_id: int) -> None:
        if not await self.payouts.lock_user(int(user_id)):
            raise PayrollNotFoundError("user_not_found", f"Мастер {user_id} не найден")

    async def _month_overpayment(self, user_id: int, month: str) -> Decimal:
        # negative value is the room left in the month
        paid = await self.ledger.month_payouts_amount(user_id, month)
        return paid - await self.ledger.month_capacity(user_id, month)

    # ---- payout creation ----

    async def create_payout_with_correction(
        self,
        *,
        user_id: int,
        amount: Decimal | str | int,
        date: date | str,
        month: str | None = None,
        comment: str | None = None,
        initiated_by: int | None = None,
        initiator_role: InitiatorRole | str | None = None,
        method: str | None = None,
    ) -> PayoutResult:
        day = parse_date(date)
        value = ensure_amount(amount)
        target_month = ensure_month(month) if month else month_of(day)
        role = _coerce_role(initiator_role)

        await self.lock_user(user_id)
        if not can_write_closed_month(role=role) and await self.closure.is_closed(target_month):
            raise ClosedMonthError(target_month)

        draft = NewPayout(
            user_id=int(user_id),
            month=target_month,
            amount=value,
            date=day,
            comment=(comment or "").strip() or None,
            initiated_by=initiated_by,
            initiator_role=role,
            method=method,
            source=PayoutSource.MANUAL.value,
        )
        return await self._create_with_correction(draft, depth=0)

    async def _create_with_correction(self, draft: NewPayout, *, depth: int) -> PayoutResult:
        user_id = draft.user_id
        remaining = -(await self._month_overpayment(user_id, draft.month))
        if draft.method == PayoutMethod.CARRYOVER_SPLIT.value:
            # split money brings its own capacity into the target month
            remaining += draft.amount

        if draft.amount <= remaining:
            payout = await self.payouts.create_payout(replace(draft, is_advance=False))
            logger.info(
                "PAYOUT_CREATED user_id=%s month=%s amount=%s payout_id=%s source=%s",
                user_id,
                draft.month,
                str(draft.amount),
                payout.id,
                draft.source,
            )
            return PayoutResult(payout=payout, overpayment=None)

        if not await self.closure.is_closed(draft.month):
            payout = await self.payouts.create_payout(replace(draft, is_advance=True))
            logger.info(
                "PAYOUT_ADVANCE user_id=%s month=%s amount=%s remaining=%s payout_id=%s",
                user_id,
                draft.month,
                str(draft.amount),
                str(remaining),
                payout.id,
            )
            return PayoutResult(payout=payout, overpayment=MONEY_ZERO)

        if depth >= self.max_iterations:
            unresolved = draft.amount - max(MONEY_ZERO, remaining)
            payout = await self.payouts.create_payout(replace(draft, is_advance=False))
            logger.warning(
                "PAYOUT_SPLIT_CAPPED user_id=%s month=%s amount=%s unresolved=%s depth=%s payout_id=%s",
                user_id,
                draft.month,
                str(draft.amount),
                str(unresolved),
                depth,
                payout.id,
            )
            return PayoutResult(payout=payout, overpayment=unresolved, capped=True)

        actual = max(MONEY_ZERO, remaining)
        overpayment = draft.amount - actual

        if actual > MONEY_ZERO:
            payout = await self.payouts.create_payout(replace(draft, amount=actual, is_advance=False))
        else:
            # nothing stored in the closed month itself
            payout = PayoutRow(
                id=None,
                user_id=user_id,
                month=draft.month,
                amount=MONEY_ZERO,
                date=draft.date,
                comment=draft.comment,
                initiated_by=draft.initiated_by,
                initiator_role=draft.initiator_role,
                method=draft.method,
                source=draft.source,
                carryover_from=draft.carryover_from,
                created_at=utc_now(),
            )

        logger.info(
            "PAYOUT_SPLIT user_id=%s month=%s requested=%s stored=%s overpayment=%s",
            user_id,
            draft.month,
            str(draft.amount),
            str(actual),
            str(overpayment),
        )
        await self._carry_forward(draft, overpayment, depth=depth)
        return PayoutResult(payout=payout, overpayment=overpayment)

    async def _carry_forward(self, origin: NewPayout, amount: Decimal, *, depth: int) -> None:
        user_id = origin.user_id
        from_month = origin.month
        to_month = next_month(from_month)

        draft = NewPayout(
            user_id=user_id,
            month=to_month,
            amount=amount,
            date=origin.date,
            comment=carryover_comment(from_month, self.comment_locale),
            is_advance=False,
            initiated_by=None,
            initiator_role=InitiatorRole.SYSTEM,
            method=PayoutMethod.CARRYOVER_SPLIT.value,
            source=PayoutSource.CARRYOVER.value,
            carryover_from=from_month,
        )
        # the carried payout may itself be split further down the chain
        await self._create_with_correction(draft, depth=depth + 1)
        await self._sync_edge(user_id, from_month, to_month)

    async def _sync_edge(self, user_id: int, from_month: str, to_month: str) -> Optional[CarryoverRow]:
        """Make the edge equal to the active carryover payouts along it.

        An edge holding any split money stays a split edge; a sweep hop over the same pair
        only adds its cascade payouts to the amount.
        """
        parts = await self.payouts.list_carryover_payouts(user_id, to_month=to_month, from_month=from_month)
        total = sum((p.amount for p in parts), MONEY_ZERO)
        if total <= MONEY_ZERO:
            await self.carryovers.remove(user_id=user_id, from_month=from_month, to_month=to_month)
            return None
        kind = CarryoverKind.SPLIT if any(p.is_split_carryover for p in parts) else CarryoverKind.CASCADE
        return await self.carryovers.record(
            user_id=user_id, from_month=from_month, to_month=to_month, amount=total, kind=kind
        )

    # ---- advances ----

    async def recalculate_advances_for_month(self, user_id: int, month: str) -> AdvanceRecalculation:
        month = ensure_month(month)
        await self.lock_user(user_id)
        return await self._recalculate_advances(int(user_id), month)

    async def _recalculate_advances(self, user_id: int, month: str) -> AdvanceRecalculation:
        rows = await self.payouts.list_payouts(user_id, month)
        capacity = await self.ledger.month_capacity(user_id, month)

        running = sum((p.amount for p in rows if not p.is_advance), MONEY_ZERO)
        advances = sorted((p for p in rows if p.is_advance), key=lambda p: p.id)

        settled: list[int] = []
        for adv in advances:
            if running + adv.amount > capacity:
                # strict FIFO: a later, smaller advance never jumps the queue
                break
            await self.payouts.set_advance_flag(adv.id, False)
            running += adv.amount
            settled.append(adv.id)

        remaining = tuple(p.id for p in advances if p.id not in settled)
        if settled:
            logger.info(
                "ADVANCES_SETTLED user_id=%s month=%s settled=%s remaining=%s",
                user_id,
                month,
                ",".join(str(i) for i in settled),
                ",".join(str(i) for i in remaining),
            )
        return AdvanceRecalculation(month=month, settled_ids=tuple(settled), remaining_ids=remaining)

    # ---- overpayment sweep ----

    async def process_overpayment_carryover(self, user_id: int, start_month: str, payout_date: date | str) -> SweepResult:
        start_month = ensure_month(start_month)
        day = parse_date(payout_date)
        await self.lock_user(user_id)
        return await self._sweep(int(user_id), start_month, day)

    async def _sweep(self, user_id: int, start_month: str, day: date) -> SweepResult:
        overpayment = await self._month_overpayment(user_id, start_month)
        if overpayment <= MONEY_ZERO:
            undone = await self._undo_stale_carryovers(user_id, start_month)
            return SweepResult(start_month=start_month, undone=undone)

        hops: list[CarryoverHop] = []
        current = start_month
        while overpayment > MONEY_ZERO and len(hops) < self.max_iterations:
            target = next_month(current)
            hops.append(CarryoverHop(from_month=current, to_month=target, amount=overpayment))
            absorbed = await self.ledger.month_earnings(user_id, target)
            if absorbed >= overpayment:
                overpayment = MONEY_ZERO
            else:
                overpayment -= absorbed
                current = target

        for hop in hops:
            await self._ensure_carryover_payout(user_id, hop.from_month, hop.to_month, hop.amount, day)

        undone: tuple[CarryoverRow, ...] = ()
        if overpayment > MONEY_ZERO:
            logger.warning(
                "CARRYOVER_SWEEP_CAPPED user_id=%s start=%s hops=%s residual=%s",
                user_id,
                start_month,
                len(hops),
                str(overpayment),
            )
        else:
            undone = await self._undo_stale_carryovers(user_id, hops[-1].to_month)

        logger.info(
            "CARRYOVER_SWEEP user_id=%s start=%s hops=%s residual=%s undone=%s",
            user_id,
            start_month,
            len(hops),
            str(overpayment),
            len(undone),
        )
        return SweepResult(start_month=start_month, hops=tuple(hops), residual=overpayment, undone=undone)

    async def create_carryover_payout(
        self,
        user_id: int,
        from_month: str,
        to_month: str,
        amount: Decimal | str | int,
        payout_date: date | str,
    ) -> PayoutRow:
        from_month = ensure_month(from_month)
        to_month = ensure_month(to_month)
        value = ensure_amount(amount)
        day = parse_date(payout_date)
        await self.lock_user(user_id)
        return await self._ensure_carryover_payout(int(user_id), from_month, to_month, value, day)

    async def _ensure_carryover_payout(
        self,
        user_id: int,
        from_month: str,
        to_month: str,
        amount: Decimal,
        day: date,
    ) -> PayoutRow:
        parts = await self.payouts.list_carryover_payouts(user_id, to_month=to_month, from_month=from_month)
        # split money along the same pair is left alone
        existing = [p for p in parts if not p.is_split_carryover]
        current = sum((p.amount for p in existing), MONEY_ZERO)

        if existing and current == amount:
            payout = existing[-1]
        else:
            for p in existing:
                await self.payouts.mark_reversed(p.id, reversed_by=None, reason=REASON_CARRYOVER_RECALCULATED)
            payout = await self.payouts.create_payout(
                NewPayout(
                    user_id=user_id,
                    month=to_month,
                    amount=amount,
                    date=day,
                    comment=carryover_comment(from_month, self.comment_locale),
                    is_advance=False,
                    initiated_by=None,
                    initiator_role=InitiatorRole.SYSTEM,
                    method=PayoutMethod.CARRYOVER.value,
                    source=PayoutSource.CARRYOVER.value,
                    carryover_from=from_month,
                )
            )
            logger.info(
                "CARRYOVER_PAYOUT user_id=%s from=%s to=%s amount=%s replaced=%s payout_id=%s",
                user_id,
                from_month,
                to_month,
                str(amount),
                len(existing),
                payout.id,
            )

        await self._sync_edge(user_id, from_month, to_month)
        return payout

    async def _undo_stale_carryovers(self, user_id: int, month: str) -> tuple[CarryoverRow, ...]:
        """Walk forward from ``month`` and unwind carryovers the months no longer need.

        A month that is still overpaid keeps its outgoing edges. Otherwise its sweep payouts
        are reversed, and split money is handed back to it as far as its room allows.
        """
        undone: list[CarryoverRow] = []
        current = month
        for _ in range(self.max_iterations):
            edges = await self.carryovers.outgoing(user_id, current)
            if not edges:
                break
            room = -(await self._month_overpayment(user_id, current))
            if room < MONEY_ZERO:
                break
            for edge in edges:
                returned, changed = await self._unwind_edge(edge, room)
                room -= returned
                if changed:
                    undone.append(edge)
            current = edges[-1].to_month
        return tuple(undone)

    async def _unwind_edge(self, edge: CarryoverRow, room: Decimal) -> tuple[Decimal, bool]:
        user_id = edge.user_id
        parts = await self.payouts.list_carryover_payouts(user_id, to_month=edge.to_month, from_month=edge.from_month)
        cascades = [p for p in parts if not p.is_split_carryover]
        splits = [p for p in parts if p.is_split_carryover]

        for p in cascades:
            await self.payouts.mark_reversed(p.id, reversed_by=None, reason=REASON_CARRYOVER_UNDONE)

        split_total = sum((p.amount for p in splits), MONEY_ZERO)
        returned = min(split_total, max(MONEY_ZERO, room))
        if returned > MONEY_ZERO:
            day = splits[0].date
            for p in splits:
                await self.payouts.mark_reversed(p.id, reversed_by=None, reason=REASON_CARRYOVER_RETURNED)
            left = split_total - returned
            if left > MONEY_ZERO:
                await self.payouts.create_payout(
                    NewPayout(
                        user_id=user_id,
                        month=edge.to_month,
                        amount=left,
                        date=day,
                        comment=carryover_comment(edge.from_month, self.comment_locale),
                        is_advance=False,
                        initiated_by=None,
                        initiator_role=InitiatorRole.SYSTEM,
                        method=PayoutMethod.CARRYOVER_SPLIT.value,
                        source=PayoutSource.CARRYOVER.value,
                        carryover_from=edge.from_month,
                    )
                )
            back = await self.payouts.create_payout(
                NewPayout(
                    user_id=user_id,
                    month=edge.from_month,
                    amount=returned,
                    date=day,
                    comment=carryover_return_comment(edge.to_month, self.comment_locale),
                    is_advance=False,
                    initiated_by=None,
                    initiator_role=InitiatorRole.SYSTEM,
                    method=PayoutMethod.CARRYOVER_RETURN.value,
                    source=PayoutSource.CARRYOVER_RETURN.value,
                )
            )
            logger.info(
                "CARRYOVER_RETURNED user_id=%s from=%s to=%s returned=%s left=%s payout_id=%s",
                user_id,
                edge.from_month,
                edge.to_month,
                str(returned),
                str(left),
                back.id,
            )

        changed = bool(cascades) or returned > MONEY_ZERO
        if changed:
            await self._sync_edge(user_id, edge.from_month, edge.to_month)
        return returned, changed

    # ---- reconciliation triggers ----

    async def reconcile_month(self, user_id: int, month: str) -> MonthReconciliation:
        month = ensure_month(month)
        await self.lock_user(user_id)
        return await self._reconcile(int(user_id), month)

    async def _reconcile(self, user_id: int, month: str) -> MonthReconciliation:
        advances = await self._recalculate_advances(user_id, month)
        if await self.closure.is_closed(month):
            sweep = await self._sweep(user_id, month, self.closure.today())
        else:
            sweep = SweepResult(start_month=month, undone=await self._undo_stale_carryovers(user_id, month))
        return MonthReconciliation(advances=advances, sweep=sweep)

    async def process_month_closure(self, user_id: int, month: str) -> SweepResult:
        """Settle a finished month: carry its overpayment forward, then clear its advance flags."""
        month = ensure_month(month)
        await self.lock_user(user_id)
        sweep = await self._sweep(int(user_id), month, last_day_of_month(month))
        for p in await self.payouts.list_payouts(int(user_id), month):
            if p.is_advance:
                await self.payouts.set_advance_flag(p.id, False)
        logger.info("MONTH_CLOSURE_PROCESSED user_id=%s month=%s hops=%s", user_id, month, len(sweep.hops))
        return sweep

    async def reverse_payout(
        self,
        payout_id: int,
        *,
        actor_user_id: int | None,
        actor_role: InitiatorRole | str | None,
        reason: str | None = None,
    ) -> PayoutRow:
        payout = await self.payouts.get_payout(int(payout_id))
        if payout is None:
            raise PayrollNotFoundError("payout_not_found", f"Выплата {payout_id} не найдена")
        role = _coerce_role(actor_role)
        if not can_act_for_user(role=role, actor_user_id=actor_user_id, target_user_id=payout.user_id):
            raise PayrollForbiddenError()
        if payout.is_system_managed:
            raise PayrollValidationError("carryover_payout_managed", "Переносы пересчитываются автоматически")

        await self.lock_user(payout.user_id)
        if payout.is_reversed:
            return payout
        if not can_write_closed_month(role=role) and await self.closure.is_closed(payout.month):
            raise ClosedMonthError(payout.month)

        reversed_row = await self.payouts.mark_reversed(
            payout.id, reversed_by=actor_user_id, reason=(reason or "").strip() or None
        )
        logger.info(
            "PAYOUT_REVERSED payout_id=%s user_id=%s month=%s amount=%s actor_user_id=%s",
            payout.id,
            payout.user_id,
            payout.month,
            str(payout.amount),
            actor_user_id,
        )
        await self._reconcile(payout.user_id, payout.month)
        return reversed_row or payout
