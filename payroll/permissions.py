from __future__ import annotations

from dataclasses import dataclass

from payroll.enums import InitiatorRole


@dataclass(frozen=True)
class ActorFlags:
    is_admin: bool
    is_master: bool
    is_system: bool


def actor_flags(*, role: InitiatorRole | str | None) -> ActorFlags:
    r = str(role or "")
    return ActorFlags(
        is_admin=r == InitiatorRole.ADMIN.value,
        is_master=r == InitiatorRole.MASTER.value,
        is_system=r == InitiatorRole.SYSTEM.value,
    )


def can_write_closed_month(*, role: InitiatorRole | str | None) -> bool:
    # Masters may not touch a closed month; admin corrections and the engine's
    # own carryover payouts (role=system) may write anywhere.
    f = actor_flags(role=role)
    return f.is_admin or f.is_system


def can_act_for_user(*, role: InitiatorRole | str | None, actor_user_id: int | None, target_user_id: int) -> bool:
    f = actor_flags(role=role)
    if f.is_admin or f.is_system:
        return True
    return f.is_master and actor_user_id is not None and int(actor_user_id) == int(target_user_id)
