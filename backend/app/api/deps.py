from __future__ import annotations

from typing import Generator

from fastapi import Header, HTTPException

from backend.app.db.models.core_types import Role
from backend.app.db.session import SessionLocal
from backend.services.actor import Actor

def get_db() -> Generator:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_actor(
    role: str | None = Header(default=None, alias="X-Actor-Role"),
    branch: str | None = Header(default=None, alias="X-Actor-Branch"),
    name: str | None = Header(default=None, alias="X-Actor-Name"),
) -> Actor:
    """
    Acteur authentifié. L'authentification elle-même est faite en amont
    (gateway) ; on ne reçoit ici que le descripteur {role, branch}.
    """
    if not role or not role.strip():
        raise HTTPException(status_code=401, detail="Missing X-Actor-Role header")
    try:
        parsed = Role(role.strip())
    except ValueError:
        raise HTTPException(status_code=401, detail=f"Unknown role {role!r}")
    return Actor(role=parsed, branch=(branch or "").strip() or None, name=name)
