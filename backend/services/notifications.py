from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.app.db.models.core_types import Role
from backend.app.db.models.models_v1 import Notification
from backend.app.schemas.notification import NotificationCreate, NotificationUpdate
from backend.services.actor import Actor
from backend.services.errors import InvalidRequest, RecordNotFound

logger = logging.getLogger(__name__)

STOCK_UNAVAILABLE = "Stock unavailable"
LOW_STOCK_BLOCK = "Low stock block"
OUT_OF_STOCK = "Out of stock"

DEFAULT_LIMIT = 50
MAX_LIMIT = 200


def notify(
    db: Session,
    *,
    title: str,
    message: str,
    branch: str,
    produce_name: str | None = None,
    produce_type: str | None = None,
) -> Notification | None:
    """
    Écrit une notification manager. Best-effort : un échec est loggé
    mais ne change jamais l'issue de l'opération appelante.
    """
    n = Notification(
        target_role=Role.manager,
        title=title,
        message=message,
        branch=branch,
        produce_name=produce_name,
        produce_type=produce_type,
        read=False,
    )
    try:
        db.add(n)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("notification write failed title=%r branch=%s", title, branch)
        return None
    logger.info("notification title=%r branch=%s produce=%s", title, branch, produce_name)
    return n


class NotificationFeed:
    """Fil de notifications d'un manager, limité à sa branche."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def _guard(self, actor: Actor, branch: str | None = None) -> None:
        actor.require_role(Role.manager, message="Manager role required")
        actor.require_branch(
            branch,
            missing_message="Manager branch assignment is required",
            mismatch_message="You can only access notifications for your assigned branch",
        )

    def list(self, actor: Actor, *, unread_only: bool = False, limit: int | None = None) -> list[Notification]:
        self._guard(actor)
        limit = max(1, min(limit or DEFAULT_LIMIT, MAX_LIMIT))

        stmt = (
            select(Notification)
            .where(Notification.target_role == Role.manager)
            .where(Notification.branch == actor.branch)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .limit(limit)
        )
        if unread_only:
            stmt = stmt.where(Notification.read.is_(False))
        return list(self.db.execute(stmt).scalars().all())

    def get(self, actor: Actor, notification_id: int) -> Notification:
        self._guard(actor)
        n = self.db.execute(
            select(Notification)
            .where(Notification.id == notification_id)
            .where(Notification.target_role == Role.manager)
            .where(Notification.branch == actor.branch)
        ).scalar_one_or_none()
        if not n:
            raise RecordNotFound("Notification not found", id=notification_id)
        return n

    def create(self, actor: Actor, payload: NotificationCreate) -> Notification:
        self._guard(actor)
        if "branch" in payload.model_fields_set:
            raise InvalidRequest("branch is derived from authenticated manager and must not be provided")

        n = Notification(
            target_role=Role.manager,
            title=payload.title,
            message=payload.message,
            branch=actor.branch,
            produce_name=payload.produce_name,
            produce_type=payload.produce_type,
            read=False,
        )
        self.db.add(n)
        self.db.commit()
        self.db.refresh(n)
        logger.info("notification created id=%s branch=%s by=%s", n.id, n.branch, actor.name)
        return n

    def update(self, actor: Actor, notification_id: int, payload: NotificationUpdate) -> Notification:
        n = self.get(actor, notification_id)
        for field_name in ("title", "message", "read"):
            value = getattr(payload, field_name)
            if value is not None:
                setattr(n, field_name, value)
        self.db.commit()
        self.db.refresh(n)
        return n

    def mark_read(self, actor: Actor, notification_id: int) -> Notification:
        n = self.get(actor, notification_id)
        n.read = True
        self.db.commit()
        self.db.refresh(n)
        return n

    def delete(self, actor: Actor, notification_id: int) -> None:
        n = self.get(actor, notification_id)
        self.db.delete(n)
        self.db.commit()
