from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from backend.app.api.deps import get_actor, get_db
from backend.app.db.models.core_types import Role
from backend.app.schemas.user import UserCreate, UserRead, UserUpdate
from backend.services.actor import Actor
from backend.services.staffing import Roster

router = APIRouter(prefix="/users")


@router.get("", response_model=list[UserRead])
def list_users(role: Role | None = None, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    return Roster(db).list(actor, role=role)


@router.get("/{user_id}", response_model=UserRead)
def get_user(user_id: int, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    return Roster(db).get(actor, user_id)


@router.post("", response_model=UserRead, status_code=201)
def create_user(payload: UserCreate, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    return Roster(db).create(actor, payload)


@router.patch("/{user_id}", response_model=UserRead)
def update_user(user_id: int, payload: UserUpdate, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    return Roster(db).update(actor, user_id, payload)


@router.delete("/{user_id}")
def delete_user(user_id: int, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    Roster(db).delete(actor, user_id)
    return {"message": "User deleted"}
