"""
Staffing floor guard + roster.

Plancher par branche : 1 manager, 2 sales agents. Le Director n'a pas
de plancher.

NOTE: le plancher est aussi le plafond (1 manager max, 2 slots agents),
donc `count <= floor` refuse TOUTE suppression / réaffectation d'une
branche complète. Comportement conservé tel quel ; à valider côté métier.

Le comptage et la mutation ne sont pas atomiques : deux suppressions
concurrentes peuvent passer le contrôle toutes les deux (risque résiduel).
"""

from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.app.db.models.core_types import Role
from backend.app.db.models.models_v1 import User
from backend.app.schemas.user import UserCreate, UserUpdate
from backend.services.actor import Actor, require_known_branch
from backend.services.errors import (
    BranchAccessDenied,
    DuplicateRosterSlot,
    RecordNotFound,
    RosterConflict,
    StaffingFloorViolation,
    StockError,
)

logger = logging.getLogger(__name__)

STAFFING_FLOOR = {
    Role.manager: 1,
    Role.sales_agent: 2,
}


class StaffingInvariantGuard:
    def __init__(self, db: Session) -> None:
        self.db = db

    def headcount(self, branch: str, role: Role) -> int:
        return int(
            self.db.execute(
                select(func.count(User.id)).where(User.branch == branch).where(User.role == role)
            ).scalar_one()
        )

    def check(self, branch: str | None, role: Role, *, action: str = "remove") -> None:
        floor = STAFFING_FLOOR.get(role)
        if floor is None or branch is None:
            return

        count = self.headcount(branch, role)
        if count <= floor:
            if role == Role.manager:
                message = f"Cannot {action} the only manager at {branch}"
            else:
                message = f"Cannot {action} sales agents below {floor} at {branch}"
            logger.warning("staffing floor refused action=%s branch=%s role=%s count=%s", action, branch, role.value, count)
            raise StaffingFloorViolation(message, branch=branch, role=role, count=count, floor=floor)


class Roster:
    def __init__(self, db: Session, guard: StaffingInvariantGuard | None = None) -> None:
        self.db = db
        self.guard = guard or StaffingInvariantGuard(db)

    def _manager_guard(self, actor: Actor, branch: str | None = None) -> None:
        actor.require_role(Role.manager, message="Manager role required")
        actor.require_branch(
            branch,
            missing_message="Manager branch assignment is required",
            mismatch_message="Manager can only manage users for assigned branch",
        )

    # ---------- READ ----------
    def list(self, actor: Actor, role: Role | None = None) -> list[User]:
        self._manager_guard(actor)
        stmt = select(User).where(User.branch == actor.branch).order_by(User.role, User.username, User.id)
        if role is not None:
            stmt = stmt.where(User.role == role)
        return list(self.db.execute(stmt).scalars().all())

    def get(self, actor: Actor, user_id: int) -> User:
        user = self.db.get(User, user_id)
        if not user:
            raise RecordNotFound("User not found", id=user_id)
        if user.role == Role.director:
            raise BranchAccessDenied("Director account is not manageable from this endpoint")
        self._manager_guard(actor, user.branch)
        return user

    # ---------- CREATE ----------
    def create(self, actor: Actor, payload: UserCreate) -> User:
        self._can_create(actor, payload)
        if payload.role in STAFFING_FLOOR and not payload.branch:
            raise RosterConflict("branch is required for Manager and SalesAgent", role=payload.role.value)
        if payload.role == Role.sales_agent and payload.staff_slot is None:
            raise RosterConflict("staff_slot is required for SalesAgent", role=payload.role.value)

        user = User(
            username=payload.username,
            email=payload.email,
            role=payload.role,
            branch=payload.branch,
            staff_slot=payload.staff_slot if payload.role == Role.sales_agent else None,
        )
        self._ensure_unique(user.email, user.role, user.branch, user.staff_slot)
        self._save(lambda: self.db.add(user), user)
        self.db.refresh(user)
        logger.info("user created id=%s role=%s branch=%s", user.id, user.role.value, user.branch)
        return user

    def _can_create(self, actor: Actor, payload: UserCreate) -> None:
        if payload.role == Role.director:
            raise BranchAccessDenied("Director accounts cannot be created here")

        if actor.role == Role.manager:
            self._manager_guard(actor, payload.branch)
            return

        if actor.role == Role.director:
            # le Director ne fait que créer un manager manquant
            if payload.role != Role.manager:
                raise BranchAccessDenied("Director can only bootstrap missing branch manager accounts")
            if payload.branch:
                require_known_branch(payload.branch)
            if payload.branch and self.guard.headcount(payload.branch, Role.manager) > 0:
                raise BranchAccessDenied(f"Manager for {payload.branch} already exists", branch=payload.branch)
            return

        raise BranchAccessDenied("Access denied", role=actor.role.value)

    # ---------- UPDATE ----------
    def update(self, actor: Actor, user_id: int, payload: UserUpdate) -> User:
        user = self.get(actor, user_id)
        if payload.branch is not None:
            self._manager_guard(actor, payload.branch)

        next_role = payload.role if payload.role is not None else user.role
        next_branch = payload.branch if payload.branch is not None else user.branch

        if next_role == Role.director:
            raise BranchAccessDenied("Director role cannot be assigned here")

        if next_role != user.role or next_branch != user.branch:
            self.guard.check(user.branch, user.role, action="move")

        if next_role == Role.sales_agent:
            next_slot = payload.staff_slot if payload.staff_slot is not None else user.staff_slot
            if next_slot is None:
                raise RosterConflict("staff_slot is required for SalesAgent")
        else:
            next_slot = None

        def write():
            if payload.username is not None:
                user.username = payload.username
            if payload.email is not None:
                user.email = payload.email
            user.role = next_role
            user.branch = next_branch
            user.staff_slot = next_slot

        self._ensure_unique(payload.email or user.email, next_role, next_branch, next_slot, exclude_id=user.id)
        self._save(write, user)
        self.db.refresh(user)
        logger.info("user updated id=%s role=%s branch=%s", user.id, next_role.value, next_branch)
        return user

    # ---------- DELETE ----------
    def delete(self, actor: Actor, user_id: int) -> None:
        user = self.get(actor, user_id)
        self.guard.check(user.branch, user.role, action="delete")
        self._save(lambda: self.db.delete(user), user)
        logger.info("user deleted id=%s", user_id)

    # ---------- Helpers ----------
    def _ensure_unique(
        self,
        email: str,
        role: Role,
        branch: str | None,
        staff_slot: int | None,
        exclude_id: int | None = None,
    ) -> None:
        """Message clair avant l'index unique (qui reste le garde-fou final)."""

        def taken(*conditions) -> bool:
            stmt = select(User.id).where(*conditions)
            if exclude_id is not None:
                stmt = stmt.where(User.id != exclude_id)
            return self.db.execute(stmt.limit(1)).first() is not None

        if taken(User.email == email):
            raise RosterConflict("email already exists", email=email)
        if role == Role.manager and taken(User.role == Role.manager, User.branch == branch):
            raise DuplicateRosterSlot(f"A manager already exists for {branch}", branch=branch)
        if role == Role.sales_agent and taken(
            User.role == Role.sales_agent, User.branch == branch, User.staff_slot == staff_slot
        ):
            raise DuplicateRosterSlot(
                f"Sales agent slot {staff_slot} is already taken at {branch}",
                branch=branch,
                staff_slot=staff_slot,
            )

    def _save(self, write, user: User) -> None:
        try:
            write()
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise self._map_integrity_error(exc, user) from exc

    @staticmethod
    def _map_integrity_error(exc: IntegrityError, user: User) -> StockError:
        text = str(exc.orig).lower()
        if "email" in text:
            return RosterConflict("email already exists")
        if "staff_slot" in text or "agent_slot" in text:
            return DuplicateRosterSlot("Sales agent slot is already taken", branch=user.branch)
        if "manager" in text or "branch" in text:
            return DuplicateRosterSlot("A manager already exists for this branch", branch=user.branch)
        return RosterConflict("Duplicate user constraint violation")
