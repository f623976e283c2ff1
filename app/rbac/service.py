import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import Failure, conflict, forbidden, not_found, validation_failed
from app.db import models
from app.rbac.catalog import PERMISSIONS_CATALOG, ROLE_TEMPLATES, permission_group, role_permissions_map
from app.services.audit import audit_log

logger = logging.getLogger("gtmi.rbac")

WILDCARD = "*"
ROLE_KEY_PATTERN = re.compile(r"^[A-Z0-9_]+$")


@dataclass(frozen=True)
class PermissionGrant:
    key: str
    requesting_service_id: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"key": self.key, "requestingServiceId": self.requesting_service_id}


def is_active_window(starts_at: datetime | None, ends_at: datetime | None, now: datetime) -> bool:
    if starts_at is not None and starts_at > now:
        return False
    if ends_at is not None and ends_at <= now:
        return False
    return True


def has_permission(grants: Iterable[PermissionGrant], key: str, requesting_service_id: int | None = None) -> bool:
    for grant in grants:
        if grant.key == WILDCARD:
            return True
        if grant.key != key:
            continue
        if grant.requesting_service_id is None:
            return True
        if requesting_service_id is None:
            continue
        if grant.requesting_service_id == requesting_service_id:
            return True
    return False


def _seed_tenant_rbac(db: Session, tenant_id: str) -> int:
    created = 0
    permissions = {
        perm.key: perm
        for perm in db.query(models.AccessPermission).filter(models.AccessPermission.tenant_id == tenant_id).all()
    }
    for key, name, description in PERMISSIONS_CATALOG:
        if key not in permissions:
            permission = models.AccessPermission(
                tenant_id=tenant_id,
                key=key,
                name=name,
                description=description,
                group_name=permission_group(key),
                is_system=True,
            )
            db.add(permission)
            permissions[key] = permission
            created += 1

    roles = {
        role.key: role
        for role in db.query(models.AccessRole).filter(models.AccessRole.tenant_id == tenant_id).all()
    }
    for key, name, description in ROLE_TEMPLATES:
        if key not in roles:
            role = models.AccessRole(tenant_id=tenant_id, key=key, name=name, description=description, is_system=True)
            db.add(role)
            roles[key] = role
            created += 1
    if created:
        db.flush()

    system_role_ids = [role.id for role in roles.values() if role.is_system]
    linked = {
        (link.role_id, link.permission_id)
        for link in db.query(models.AccessRolePermission)
        .filter(models.AccessRolePermission.role_id.in_(system_role_ids))
        .all()
    }
    for role_key, permission_keys in role_permissions_map().items():
        role = roles.get(role_key)
        if role is None or not role.is_system:
            continue
        for permission_key in permission_keys:
            permission = permissions.get(permission_key)
            if permission is None or (role.id, permission.id) in linked:
                continue
            db.add(models.AccessRolePermission(role_id=role.id, permission_id=permission.id))
            linked.add((role.id, permission.id))
            created += 1
    return created


def ensure_tenant_rbac_bootstrap(db: Session, tenant_id: str) -> int:
    """Seed the permission catalog and system roles of a tenant.

    Create-if-absent only; rows edited by administrators are left alone. Safe to
    call on every request: when nothing is missing no transaction is committed.
    A concurrent bootstrap losing a unique-constraint race is rolled back and
    re-run once, finding the rows the winner inserted.
    """
    for attempt in range(2):
        try:
            created = _seed_tenant_rbac(db, tenant_id)
            if created:
                db.commit()
                logger.info("rbac bootstrap tenant=%s created=%s", tenant_id, created)
            return created
        except IntegrityError:
            db.rollback()
            if attempt:
                raise
            logger.warning("rbac bootstrap race tenant=%s retrying", tenant_id)
    return 0


def resolve_grants(db: Session, user: models.User, now: datetime | None = None) -> list[PermissionGrant]:
    if user.role == "ADMIN":
        return [PermissionGrant(WILDCARD, None)]

    ensure_tenant_rbac_bootstrap(db, user.tenant_id)
    now = now or datetime.utcnow()
    rows = (
        db.query(
            models.AccessPermission.key,
            models.UserRoleAssignment.requesting_service_id,
            models.UserRoleAssignment.starts_at,
            models.UserRoleAssignment.ends_at,
        )
        .select_from(models.UserRoleAssignment)
        .join(models.AccessRolePermission, models.AccessRolePermission.role_id == models.UserRoleAssignment.role_id)
        .join(models.AccessPermission, models.AccessPermission.id == models.AccessRolePermission.permission_id)
        .filter(
            models.UserRoleAssignment.tenant_id == user.tenant_id,
            models.UserRoleAssignment.user_id == user.id,
            models.UserRoleAssignment.is_active.is_(True),
            models.AccessPermission.tenant_id == user.tenant_id,
        )
        .all()
    )
    grants: list[PermissionGrant] = []
    seen: set[PermissionGrant] = set()
    for key, requesting_service_id, starts_at, ends_at in rows:
        if not is_active_window(starts_at, ends_at, now):
            continue
        grant = PermissionGrant(key, requesting_service_id)
        if grant not in seen:
            seen.add(grant)
            grants.append(grant)
    return grants


def role_permission_keys(db: Session, role_id: str) -> list[str]:
    rows = (
        db.query(models.AccessPermission.key)
        .join(models.AccessRolePermission, models.AccessRolePermission.permission_id == models.AccessPermission.id)
        .filter(models.AccessRolePermission.role_id == role_id)
        .order_by(models.AccessPermission.key.asc())
        .all()
    )
    return [key for (key,) in rows]


def _get_role(db: Session, tenant_id: str, role_key: str) -> models.AccessRole | None:
    return (
        db.query(models.AccessRole)
        .filter(models.AccessRole.tenant_id == tenant_id, models.AccessRole.key == role_key)
        .first()
    )


def _permissions_by_key(db: Session, tenant_id: str, keys: Iterable[str]) -> dict[str, models.AccessPermission]:
    keys = list(keys)
    if not keys:
        return {}
    rows = (
        db.query(models.AccessPermission)
        .filter(models.AccessPermission.tenant_id == tenant_id, models.AccessPermission.key.in_(keys))
        .all()
    )
    return {perm.key: perm for perm in rows}


def create_role(
    db: Session,
    actor: models.User,
    key: str,
    name: str,
    description: str | None = None,
    clone_from_role_key: str | None = None,
) -> models.AccessRole | Failure:
    tenant_id = actor.tenant_id
    ensure_tenant_rbac_bootstrap(db, tenant_id)
    key = (key or "").strip().upper()
    if not ROLE_KEY_PATTERN.match(key):
        return validation_failed("invalid_role_key", "Chave do perfil invalida (A-Z, 0-9, _)", key=key)
    if _get_role(db, tenant_id, key):
        return conflict("role_exists", "Perfil ja existe", key=key)

    source = None
    if clone_from_role_key:
        source = _get_role(db, tenant_id, clone_from_role_key)
        if source is None:
            return validation_failed("clone_source_not_found", "Perfil de origem nao encontrado", key=clone_from_role_key)

    role = models.AccessRole(
        tenant_id=tenant_id,
        key=key,
        name=name.strip(),
        description=description,
        is_system=False,
    )
    db.add(role)
    db.flush()
    cloned: list[str] = []
    if source is not None:
        for link in source.permissions:
            db.add(models.AccessRolePermission(role_id=role.id, permission_id=link.permission_id))
            cloned.append(link.permission_id)
    audit_log(
        db,
        tenant_id,
        actor.id,
        "ROLE_CREATED",
        "ACCESS_ROLE",
        role.id,
        {"key": key, "clonedFrom": clone_from_role_key, "permissions": len(cloned)},
    )
    db.commit()
    db.refresh(role)
    logger.info("role created tenant=%s key=%s cloned_from=%s", tenant_id, key, clone_from_role_key)
    return role


def set_role_permissions(
    db: Session, actor: models.User, role_key: str, permission_keys: list[str]
) -> models.AccessRole | Failure:
    tenant_id = actor.tenant_id
    role = _get_role(db, tenant_id, role_key)
    if role is None:
        return not_found("role_not_found", "Perfil nao encontrado", key=role_key)
    if role.is_system:
        return forbidden("system_role_immutable", "Perfis de sistema nao podem ser alterados", key=role_key)

    wanted = sorted(set(permission_keys))
    permissions = _permissions_by_key(db, tenant_id, wanted)
    unknown = [key for key in wanted if key not in permissions]
    if unknown:
        return validation_failed("unknown_permissions", "Permissoes desconhecidas", keys=unknown)

    current = {link.permission_id: link for link in role.permissions}
    target_ids = {perm.id for perm in permissions.values()}
    for permission_id, link in current.items():
        if permission_id not in target_ids:
            role.permissions.remove(link)
    for permission_id in target_ids - set(current):
        role.permissions.append(models.AccessRolePermission(permission_id=permission_id))
    audit_log(db, tenant_id, actor.id, "ROLE_PERMISSIONS_UPDATED", "ACCESS_ROLE", role.id, {"permissions": wanted})
    db.commit()
    db.refresh(role)
    logger.info("role permissions updated tenant=%s key=%s count=%s", tenant_id, role_key, len(wanted))
    return role


def assign_role(
    db: Session,
    actor: models.User,
    user_id: str,
    role_key: str,
    requesting_service_id: int | None = None,
    starts_at: datetime | None = None,
    ends_at: datetime | None = None,
    note: str | None = None,
    is_active: bool = True,
) -> models.UserRoleAssignment | Failure:
    tenant_id = actor.tenant_id
    if starts_at is not None and ends_at is not None and starts_at >= ends_at:
        return validation_failed("invalid_window", "Data de inicio deve ser anterior a data de fim")

    user = db.query(models.User).filter(models.User.id == user_id, models.User.tenant_id == tenant_id).first()
    if user is None:
        return not_found("user_not_found", "Utilizador nao encontrado")
    ensure_tenant_rbac_bootstrap(db, tenant_id)
    role = _get_role(db, tenant_id, role_key)
    if role is None:
        return not_found("role_not_found", "Perfil nao encontrado", key=role_key)
    if requesting_service_id is not None:
        service = (
            db.query(models.RequestingService)
            .filter(
                models.RequestingService.id == requesting_service_id,
                models.RequestingService.tenant_id == tenant_id,
            )
            .first()
        )
        if service is None:
            return not_found("requesting_service_not_found", "Servico requisitante nao encontrado")

    assignment = models.UserRoleAssignment(
        tenant_id=tenant_id,
        user_id=user.id,
        role_id=role.id,
        requesting_service_id=requesting_service_id,
        starts_at=starts_at,
        ends_at=ends_at,
        is_active=is_active,
        note=note,
        assigned_by_user_id=actor.id,
    )
    db.add(assignment)
    db.flush()
    audit_log(
        db,
        tenant_id,
        actor.id,
        "ROLE_ASSIGNED",
        "USER_ROLE_ASSIGNMENT",
        assignment.id,
        {"userId": user.id, "role": role_key, "requestingServiceId": requesting_service_id},
    )
    db.commit()
    db.refresh(assignment)
    logger.info(
        "role assigned tenant=%s user=%s role=%s scope=%s", tenant_id, user.id, role_key, requesting_service_id
    )
    return assignment


_ASSIGNMENT_FIELDS = {"is_active", "starts_at", "ends_at", "note"}


def update_assignment(
    db: Session, actor: models.User, assignment_id: str, changes: dict[str, Any]
) -> models.UserRoleAssignment | Failure:
    assignment = (
        db.query(models.UserRoleAssignment)
        .filter(
            models.UserRoleAssignment.id == assignment_id,
            models.UserRoleAssignment.tenant_id == actor.tenant_id,
        )
        .first()
    )
    if assignment is None:
        return not_found("assignment_not_found", "Atribuicao nao encontrada")

    changes = {field: value for field, value in changes.items() if field in _ASSIGNMENT_FIELDS}
    if "is_active" in changes and changes["is_active"] is None:
        return validation_failed("is_active_required", "Estado ativo nao pode ser nulo")
    starts_at = changes.get("starts_at", assignment.starts_at)
    ends_at = changes.get("ends_at", assignment.ends_at)
    if starts_at is not None and ends_at is not None and starts_at >= ends_at:
        return validation_failed("invalid_window", "Data de inicio deve ser anterior a data de fim")

    for field, value in changes.items():
        setattr(assignment, field, value)
    audit_log(
        db,
        actor.tenant_id,
        actor.id,
        "ROLE_ASSIGNMENT_UPDATED",
        "USER_ROLE_ASSIGNMENT",
        assignment.id,
        {key: (value.isoformat() if isinstance(value, datetime) else value) for key, value in changes.items()},
    )
    db.commit()
    db.refresh(assignment)
    return assignment


def list_assignments(
    db: Session,
    tenant_id: str,
    user_id: str | None = None,
    role_key: str | None = None,
    is_active: bool | None = None,
) -> list[models.UserRoleAssignment]:
    query = db.query(models.UserRoleAssignment).filter(models.UserRoleAssignment.tenant_id == tenant_id)
    if user_id:
        query = query.filter(models.UserRoleAssignment.user_id == user_id)
    if role_key:
        query = query.join(models.AccessRole, models.AccessRole.id == models.UserRoleAssignment.role_id).filter(
            models.AccessRole.key == role_key
        )
    if is_active is not None:
        query = query.filter(models.UserRoleAssignment.is_active.is_(is_active))
    return query.order_by(models.UserRoleAssignment.created_at.desc()).all()
