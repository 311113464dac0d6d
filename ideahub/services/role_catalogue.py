"""
Role & permission catalogue — the four system roles and two permissions.

Used by ``scripts/seed_roles.py``, the ``flask seed-roles`` command and the
test fixtures.  Seeding is idempotent.
"""

import logging

from sqlalchemy import select

from ideahub.core.exceptions import NotFoundError
from ideahub.models import db
from ideahub.models.auth import Permission, Role, RolePermission, User, UserRole
from ideahub.services.role_directory import Permissions, Roles

logger = logging.getLogger(__name__)

# (codename, category, display_name)
PERMISSIONS = [
    (Permissions.REVIEW_DECISIONS, "manage", "Manage Review Decisions"),
    (Permissions.COLLABORATION_PROPOSALS, "manage", "Manage Collaboration Proposals"),
]

ROLES = {
    Roles.SME: {
        "display_name": "Subject-Matter Expert",
        "description": "Reviews ideas at stage 1",
        "permissions": [],
    },
    Roles.BOARD: {
        "display_name": "Board Member",
        "description": "Reviews ideas at stage 2",
        "permissions": [],
    },
    Roles.DEPUTY_DIRECTOR: {
        "display_name": "Deputy Director",
        "description": "Compiles stage reviews into binding decisions",
        "permissions": [Permissions.REVIEW_DECISIONS, Permissions.COLLABORATION_PROPOSALS],
    },
    Roles.ADMIN: {
        "display_name": "Administrator",
        "description": "Satisfies every role and permission check",
        "permissions": "*",
    },
}


def seed_roles() -> dict:
    """Create missing roles, permissions and role→permission links.

    Flushes only; the caller commits.  Returns counts of created rows.
    """
    created = {"permissions": 0, "roles": 0, "links": 0}

    perms = {p.codename: p for p in db.session.execute(select(Permission)).scalars()}
    for codename, category, display_name in PERMISSIONS:
        if codename not in perms:
            perms[codename] = Permission(codename=codename, category=category, display_name=display_name)
            db.session.add(perms[codename])
            created["permissions"] += 1
    db.session.flush()

    for name, definition in ROLES.items():
        role = db.session.execute(select(Role).where(Role.name == name)).scalar_one_or_none()
        if role is None:
            role = Role(name=name, display_name=definition["display_name"], description=definition["description"])
            db.session.add(role)
            db.session.flush()
            created["roles"] += 1

        wanted = list(perms) if definition["permissions"] == "*" else definition["permissions"]
        linked = {rp.permission.codename for rp in role.role_permissions}
        for codename in wanted:
            if codename not in linked:
                db.session.add(RolePermission(role_id=role.id, permission_id=perms[codename].id))
                created["links"] += 1
    db.session.flush()

    logger.info("Role catalogue seeded: %s", created)
    return created


def assign_role(user_id, role_name) -> UserRole:
    """Grant *role_name* to a user.  Flushes only; no-op if already held."""
    if db.session.get(User, user_id) is None:
        raise NotFoundError("User", user_id)
    role = db.session.execute(select(Role).where(Role.name == role_name)).scalar_one_or_none()
    if role is None:
        raise NotFoundError("Role", role_name)

    existing = db.session.execute(
        select(UserRole).where(UserRole.user_id == user_id, UserRole.role_id == role.id)
    ).scalar_one_or_none()
    if existing is not None:
        return existing
    link = UserRole(user_id=user_id, role_id=role.id)
    db.session.add(link)
    db.session.flush()
    return link
