from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from backend.app.db.models.core_types import Role


class UserCreate(BaseModel):
    username: str = Field(min_length=2, max_length=200)
    email: str = Field(min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    role: Role
    branch: str | None = None
    staff_slot: Literal[1, 2] | None = None


class UserUpdate(BaseModel):
    username: str | None = Field(default=None, min_length=2, max_length=200)
    email: str | None = Field(default=None, min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    role: Role | None = None
    branch: str | None = None
    staff_slot: Literal[1, 2] | None = None


class UserRead(BaseModel):
    id: int
    username: str
    email: str
    role: Role
    branch: str | None = None
    staff_slot: int | None = None
    created_at: datetime

    class Config:
        from_attributes = True
