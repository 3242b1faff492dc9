"""
Tests for user loading behind the bearer-token gate (ORM).
"""
from __future__ import annotations

import pytest
from fastapi import HTTPException

from employee_records.models.security import Role, User
from employee_records.security.auth import load_user


def test_load_user_returns_user_with_roles(db_session):
    role = Role(name="hr_viewer", description="Read-only")
    db_session.add(role)
    db_session.flush()

    user = User(username="viewer", email="viewer@example.com", is_active=True)
    user.roles.append(role)
    db_session.add(user)
    db_session.commit()

    loaded = load_user(db_session, user.id)

    assert loaded.id == user.id
    assert loaded.username == "viewer"
    assert [r.name for r in loaded.roles] == ["hr_viewer"]


def test_load_user_raises_when_not_found(db_session):
    with pytest.raises(HTTPException) as exc_info:
        load_user(db_session, 99999)
    assert exc_info.value.status_code == 401


def test_load_user_raises_when_inactive(db_session):
    user = User(username="gone", email="gone@example.com", is_active=False)
    db_session.add(user)
    db_session.commit()

    with pytest.raises(HTTPException) as exc_info:
        load_user(db_session, user.id)
    assert exc_info.value.status_code == 401
