from datetime import datetime

from pydantic import BaseModel, Field


class NotificationCreate(BaseModel):
    title: str = Field(min_length=2, max_length=200)
    message: str = Field(min_length=2)
    produce_name: str | None = Field(default=None, max_length=100)
    produce_type: str | None = Field(default=None, max_length=100)

    # accepté pour pouvoir le refuser explicitement : la branche vient du manager
    branch: str | None = None


class NotificationUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=2, max_length=200)
    message: str | None = Field(default=None, min_length=2)
    read: bool | None = None


class NotificationRead(BaseModel):
    id: int
    title: str
    message: str
    branch: str
    produce_name: str | None = None
    produce_type: str | None = None
    read: bool
    created_at: datetime

    class Config:
        from_attributes = True
