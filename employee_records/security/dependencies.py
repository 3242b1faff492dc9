from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from employee_records.db.session import get_db
from employee_records.models.security import User
from employee_records.security.auth import extract_user_id, load_user
from employee_records.security.config import SecurityConfig


def get_security_config(request: Request) -> SecurityConfig:
    config = getattr(request.app.state, "security_config", None)
    if config is None:
        raise RuntimeError("Security config not loaded. Did app startup run?")
    return config


def get_current_user(request: Request) -> User:
    user = getattr(request.state, "user", None)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    return user


def enforce_security(
    request: Request,
    config: SecurityConfig = Depends(get_security_config),
    db: Session = Depends(get_db, use_cache=False),
) -> None:
    """
    Global security dependency, driven by the route rules in the YAML config.

    Route handlers stay unaware of auth; they can read `request.state.user`
    through `get_current_user` when they need the caller.
    """

    rule = config.match(request.url.path, request.method)
    if not rule.auth_required:
        return

    user_id = extract_user_id(request, config)
    if user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing user id")

    user = load_user(db, user_id)
    request.state.user = user

    user_roles = {r.name for r in user.roles}
    if rule.required_roles and not (user_roles & rule.required_roles):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Insufficient role. Required one of: {sorted(rule.required_roles)}",
        )
