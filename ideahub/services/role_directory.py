"""
Role Directory — read-only view over users, roles and permissions.

The review core never queries the role tables directly; it receives a
``RoleDirectory`` (default: the SQL-backed one below) so quorum and
authorisation rules can be exercised against a stub in unit tests.

Evaluation is deny-by-default.  The ``admin`` role satisfies every role and
permission check except where a caller asks for the strict role
(``include_admin=False``), e.g. the SME conflict-of-interest rule.

Usage:
    from ideahub.services.role_directory import RoleDirectory, Roles

    roles = RoleDirectory()
    if roles.has_role(user_id, Roles.DEPUTY_DIRECTOR):
        ...
"""

import logging

from sqlalchemy import func, select

from ideahub.models import db
from ideahub.models.auth import Permission, Role, RolePermission, UserRole

logger = logging.getLogger(__name__)


class Roles:
    SME = "subject-matter-expert"
    BOARD = "board"
    DEPUTY_DIRECTOR = "deputy-director"
    ADMIN = "admin"


class Permissions:
    REVIEW_DECISIONS = "manage.review-decisions"
    COLLABORATION_PROPOSALS = "manage.collaboration-proposals"


class RoleDirectory:
    """SQL-backed identity capability used by the service layer."""

    def role_names(self, user_id: int) -> set[str]:
        stmt = (
            select(Role.name)
            .join(UserRole, UserRole.role_id == Role.id)
            .where(UserRole.user_id == user_id)
        )
        return set(db.session.execute(stmt).scalars())

    def has_role(self, user_id: int, role: str, *, include_admin: bool = True) -> bool:
        names = self.role_names(user_id)
        if role in names:
            return True
        return include_admin and Roles.ADMIN in names

    def has_any_role(self, user_id: int, roles) -> bool:
        names = self.role_names(user_id)
        return Roles.ADMIN in names or bool(names & set(roles))

    def has_permission(self, user_id: int, codename: str) -> bool:
        if Roles.ADMIN in self.role_names(user_id):
            return True
        stmt = (
            select(func.count(Permission.id))
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .join(UserRole, UserRole.role_id == RolePermission.role_id)
            .where(UserRole.user_id == user_id, Permission.codename == codename)
        )
        return db.session.execute(stmt).scalar_one() > 0

    def count_users_with_role(self, role: str) -> int:
        """Number of distinct users holding *role* itself (admins not counted)."""
        stmt = (
            select(func.count(func.distinct(UserRole.user_id)))
            .join(Role, Role.id == UserRole.role_id)
            .where(Role.name == role)
        )
        return db.session.execute(stmt).scalar_one()
