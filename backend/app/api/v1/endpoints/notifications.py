from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from backend.app.api.deps import get_actor, get_db
from backend.app.schemas.notification import NotificationCreate, NotificationRead, NotificationUpdate
from backend.services.actor import Actor
from backend.services.notifications import NotificationFeed

router = APIRouter(prefix="/notifications")


@router.get("", response_model=list[NotificationRead])
def list_notifications(
    unread_only: bool = False,
    limit: int | None = None,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    return NotificationFeed(db).list(actor, unread_only=unread_only, limit=limit)


@router.post("", response_model=NotificationRead, status_code=201)
def create_notification(payload: NotificationCreate, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    return NotificationFeed(db).create(actor, payload)


@router.get("/{notification_id}", response_model=NotificationRead)
def get_notification(notification_id: int, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    return NotificationFeed(db).get(actor, notification_id)


@router.patch("/{notification_id}/read", response_model=NotificationRead)
def mark_notification_read(notification_id: int, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    return NotificationFeed(db).mark_read(actor, notification_id)


@router.patch("/{notification_id}", response_model=NotificationRead)
def update_notification(
    notification_id: int,
    payload: NotificationUpdate,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    return NotificationFeed(db).update(actor, notification_id, payload)


@router.delete("/{notification_id}")
def delete_notification(notification_id: int, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    NotificationFeed(db).delete(actor, notification_id)
    return {"message": "Notification deleted"}
