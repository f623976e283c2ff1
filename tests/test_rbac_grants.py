from datetime import datetime, timedelta

from app.core.errors import ErrorKind, Failure
from app.db import models
from app.rbac.catalog import ALL_PERMISSION_KEYS, ROLE_TEMPLATES
from app.rbac.service import (
    PermissionGrant,
    assign_role,
    create_role,
    ensure_tenant_rbac_bootstrap,
    has_permission,
    resolve_grants,
    set_role_permissions,
    update_assignment,
)


def _keys(grants):
    return {grant.key for grant in grants}


def test_bootstrap_is_idempotent(db_session, world):
    permissions = db_session.query(models.AccessPermission).filter_by(tenant_id=world.tenant.id).count()
    roles = db_session.query(models.AccessRole).filter_by(tenant_id=world.tenant.id).count()
    assert permissions == len(ALL_PERMISSION_KEYS)
    assert roles == len(ROLE_TEMPLATES)

    assert ensure_tenant_rbac_bootstrap(db_session, world.tenant.id) == 0
    assert db_session.query(models.AccessPermission).filter_by(tenant_id=world.tenant.id).count() == permissions


def test_admin_resolves_to_wildcard(db_session, world):
    grants = resolve_grants(db_session, world.admin)
    assert grants == [PermissionGrant("*", None)]
    assert has_permission(grants, "requests.final_approve")
    assert has_permission(grants, "assets.move", 999)


def test_user_without_assignments_has_no_grants(db_session, world):
    assert resolve_grants(db_session, world.user) == []


def test_scoped_assignment_yields_scoped_grants(db_session, world):
    assign_role(db_session, world.admin, world.user.id, "DIVISION_HEAD", requesting_service_id=world.service.id)
    grants = resolve_grants(db_session, world.user)

    assert PermissionGrant("requests.approve", world.service.id) in grants
    assert has_permission(grants, "requests.approve", world.service.id)
    assert not has_permission(grants, "requests.approve", world.service.id + 1)
    assert not has_permission(grants, "requests.approve")


def test_unscoped_grant_matches_any_service(db_session, world):
    assign_role(db_session, world.admin, world.user.id, "ASSET_MANAGER")
    grants = resolve_grants(db_session, world.user)

    assert has_permission(grants, "assets.move")
    assert has_permission(grants, "assets.move", world.service.id)


def test_window_excludes_expired_and_future_assignments(db_session, world):
    now = datetime(2026, 5, 1, 12, 0)
    assign_role(
        db_session,
        world.admin,
        world.user.id,
        "AUDITOR",
        starts_at=now - timedelta(days=10),
        ends_at=now,
    )
    assign_role(db_session, world.admin, world.user.id, "FINANCE_OFFICER", starts_at=now + timedelta(days=1))

    assert resolve_grants(db_session, world.user, now=now) == []
    assert "reports.view" in _keys(resolve_grants(db_session, world.user, now=now - timedelta(seconds=1)))


def test_inactive_assignment_is_ignored(db_session, world):
    assignment = assign_role(db_session, world.admin, world.user.id, "AUDITOR")
    assert "assets.view" in _keys(resolve_grants(db_session, world.user))

    update_assignment(db_session, world.admin, assignment.id, {"is_active": False})
    assert resolve_grants(db_session, world.user) == []


def test_update_assignment_rejects_null_is_active(db_session, world):
    assignment = assign_role(db_session, world.admin, world.user.id, "AUDITOR")
    result = update_assignment(db_session, world.admin, assignment.id, {"is_active": None, "note": "x"})

    assert isinstance(result, Failure)
    assert result.kind == ErrorKind.VALIDATION_FAILED
    assert result.code == "is_active_required"
    db_session.refresh(assignment)
    assert assignment.is_active is True
    assert assignment.note is None


def test_grants_are_deduplicated(db_session, world):
    assign_role(db_session, world.admin, world.user.id, "OPERATOR_UO")
    assign_role(db_session, world.admin, world.user.id, "SUPERVISOR_UO")
    grants = resolve_grants(db_session, world.user)

    assert len([grant for grant in grants if grant.key == "requests.create"]) == 1


def test_assign_role_rejects_inverted_window(db_session, world):
    now = datetime.utcnow()
    result = assign_role(db_session, world.admin, world.user.id, "AUDITOR", starts_at=now, ends_at=now)

    assert isinstance(result, Failure)
    assert result.kind == ErrorKind.VALIDATION_FAILED
    assert result.code == "invalid_window"


def test_assign_role_unknown_service(db_session, world):
    result = assign_role(db_session, world.admin, world.user.id, "AUDITOR", requesting_service_id=4242)

    assert isinstance(result, Failure)
    assert result.code == "requesting_service_not_found"


def test_custom_role_clone_and_edit(db_session, world):
    role = create_role(db_session, world.admin, "aprovador_final", "Aprovador final", clone_from_role_key="AUDITOR")
    assert role.key == "APROVADOR_FINAL"
    assert not role.is_system
    assert len(role.permissions) == 5

    updated = set_role_permissions(db_session, world.admin, role.key, ["requests.final_approve", "requests.view"])
    assert {link.permission.key for link in updated.permissions} == {"requests.final_approve", "requests.view"}

    actions = [row.action for row in db_session.query(models.AuditLog).order_by(models.AuditLog.created_at).all()]
    assert "ROLE_CREATED" in actions
    assert "ROLE_PERMISSIONS_UPDATED" in actions


def test_system_roles_are_immutable(db_session, world):
    result = set_role_permissions(db_session, world.admin, "AUDITOR", ["requests.view"])

    assert isinstance(result, Failure)
    assert result.kind == ErrorKind.FORBIDDEN
    assert result.code == "system_role_immutable"


def test_unknown_permission_keys_are_rejected(db_session, world):
    create_role(db_session, world.admin, "CUSTOM", "Custom")
    result = set_role_permissions(db_session, world.admin, "CUSTOM", ["requests.view", "nao.existe"])

    assert isinstance(result, Failure)
    assert result.detail["keys"] == ["nao.existe"]


def test_duplicate_role_key_conflicts(db_session, world):
    result = create_role(db_session, world.admin, "AUDITOR", "Outro auditor")

    assert isinstance(result, Failure)
    assert result.kind == ErrorKind.CONFLICT
