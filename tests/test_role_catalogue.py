"""Tests for role seeding and the SQL-backed role directory."""

import pytest

from ideahub.core.exceptions import NotFoundError
from ideahub.models.audit import write_audit
from ideahub.services.role_catalogue import assign_role, seed_roles
from ideahub.services.role_directory import Permissions, RoleDirectory, Roles


def test_seed_is_idempotent():
    # conftest already seeded once
    assert seed_roles() == {"permissions": 0, "roles": 0, "links": 0}


def test_assign_role_unknown_user_or_role(author):
    with pytest.raises(NotFoundError):
        assign_role(9999, Roles.SME)
    with pytest.raises(NotFoundError):
        assign_role(author.id, "janitor")


def test_assign_role_twice_is_a_no_op(sme):
    first = assign_role(sme.id, Roles.SME)
    assert assign_role(sme.id, Roles.SME).id == first.id


def test_deputy_director_permissions(dd, board):
    roles = RoleDirectory()
    assert roles.has_permission(dd.id, Permissions.REVIEW_DECISIONS)
    assert roles.has_permission(dd.id, Permissions.COLLABORATION_PROPOSALS)
    assert not roles.has_permission(board.id, Permissions.REVIEW_DECISIONS)


def test_admin_satisfies_roles_but_is_not_counted(admin, sme):
    roles = RoleDirectory()
    assert roles.has_role(admin.id, Roles.BOARD)
    assert not roles.has_role(admin.id, Roles.SME, include_admin=False)
    assert roles.count_users_with_role(Roles.SME) == 1


def test_audit_rejects_unknown_entity_type():
    with pytest.raises(ValueError):
        write_audit(entity_type="spaceship", entity_id=1, action="launch")
