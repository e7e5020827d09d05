# protocol_app/routers/deps.py
from dataclasses import dataclass
from typing import Optional
from fastapi import Depends, Header, HTTPException
from ..database.models.user import UserRole

STAFF_ROLES = (UserRole.PROTOCOL_INCHARGE, UserRole.ADMIN)


@dataclass(frozen=True)
class Caller:
    """Identity of the user behind one API call, resolved per request"""
    id: int
    role: UserRole


def get_caller(
    x_user_id: Optional[int] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
) -> Caller:
    # The auth gateway in front of this service sets these headers
    if x_user_id is None or not x_user_role:
        raise HTTPException(status_code=401, detail="Missing caller identity")
    try:
        role = UserRole(x_user_role.strip().lower())
    except ValueError:
        raise HTTPException(status_code=401, detail=f"Unknown role: {x_user_role}")
    return Caller(id=x_user_id, role=role)


def require_roles(*roles: UserRole):
    def dependency(caller: Caller = Depends(get_caller)) -> Caller:
        if caller.role not in roles:
            raise HTTPException(status_code=403, detail="Not allowed for your role")
        return caller
    return dependency
