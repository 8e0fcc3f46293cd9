from __future__ import annotations

from dataclasses import dataclass

from backend.app.config import settings
from backend.app.db.models.core_types import Role
from backend.services.errors import BranchAccessDenied, UnknownBranch


@dataclass(frozen=True)
class Actor:
    """Acteur authentifié (fourni par la couche requête) : rôle + branche."""

    role: Role
    branch: str | None = None
    name: str | None = None

    @property
    def is_director(self) -> bool:
        return self.role == Role.director

    def require_role(self, *roles: Role, message: str = "Access denied") -> None:
        if self.role not in roles:
            raise BranchAccessDenied(message, role=self.role.value)

    def require_branch(
        self,
        target_branch: str | None = None,
        *,
        missing_message: str = "User branch assignment is required",
        mismatch_message: str = "Access denied for this branch",
    ) -> None:
        if not self.branch:
            raise BranchAccessDenied(missing_message, role=self.role.value)
        require_known_branch(self.branch)
        if target_branch and target_branch != self.branch:
            raise BranchAccessDenied(mismatch_message, branch=target_branch, actor_branch=self.branch)


def require_known_branch(branch: str) -> None:
    if branch not in settings.branches:
        raise UnknownBranch(branch, settings.branches)
