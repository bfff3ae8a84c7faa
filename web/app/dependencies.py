from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from fastapi import HTTPException, Request, status
from jose import JWTError, jwt

from payroll.enums import InitiatorRole

from .config import get_config


TOKEN_COOKIE = "payroll_token"


@dataclass(frozen=True)
class Actor:
    user_id: int
    role: InitiatorRole

    @property
    def is_admin(self) -> bool:
        return self.role == InitiatorRole.ADMIN


def issue_token(*, user_id: int, role: str) -> str:
    cfg = get_config()
    exp = datetime.now(timezone.utc) + timedelta(minutes=int(cfg.jwt_ttl_minutes))
    return jwt.encode({"sub": str(int(user_id)), "role": role, "exp": exp}, cfg.jwt_secret, algorithm="HS256")


def _decode_token(request: Request) -> dict:
    token = request.cookies.get(TOKEN_COOKIE)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)

    try:
        data = jwt.decode(token, get_config().jwt_secret, algorithms=["HS256"])
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)

    exp = data.get("exp")
    if exp and datetime.fromtimestamp(exp, tz=timezone.utc) < datetime.now(timezone.utc):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)

    return data


def actor_from_claims(data: dict) -> Actor:
    role = data.get("role")
    try:
        sub = int(data.get("sub"))
    except (TypeError, ValueError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)

    if role == InitiatorRole.ADMIN.value:
        if sub not in get_config().admin_ids:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN)
        return Actor(user_id=sub, role=InitiatorRole.ADMIN)

    if role == InitiatorRole.MASTER.value:
        return Actor(user_id=sub, role=InitiatorRole.MASTER)

    # system identity is never issued to clients
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN)


def require_actor(request: Request) -> Actor:
    """Any authenticated master or admin."""

    return actor_from_claims(_decode_token(request))


def require_admin(request: Request) -> Actor:
    actor = require_actor(request)
    if not actor.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN)
    return actor


def ensure_same_user(actor: Actor, user_id: int) -> None:
    """Masters only see and touch their own ledger."""
    if actor.is_admin:
        return
    if int(actor.user_id) != int(user_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN)
