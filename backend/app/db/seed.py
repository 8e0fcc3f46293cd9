from __future__ import annotations

import logging

from sqlalchemy import select

from backend.app.db.session import SessionLocal
from backend.app.db.models.models_v1 import User
from backend.app.db.models.core_types import Role
from backend.app.logging_config import configure_logging

logger = logging.getLogger(__name__)

DIRECTOR_EMAIL = "director@kgl.local"


def seed_director(db) -> User:
    """
    Compte Director (non créable via l'API).
    Le Director crée ensuite les managers manquants de chaque branche.
    """
    user = db.scalar(select(User).where(User.role == Role.director))
    if user:
        return user

    user = User(username="Director", email=DIRECTOR_EMAIL, role=Role.director)
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("seeded director id=%s email=%s", user.id, user.email)
    return user


def run_seed():
    configure_logging()
    db = SessionLocal()
    try:
        seed_director(db)
        logger.info("SEED OK")
    finally:
        db.close()


if __name__ == "__main__":
    run_seed()
