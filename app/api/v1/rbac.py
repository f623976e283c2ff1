from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.core.errors import raise_for_failure
from app.core.security import require_permission
from app.db import models
from app.db.session import get_db
from app.rbac import service as rbac

router = APIRouter(tags=["RBAC"])


class PermissionResponse(BaseModel):
    id: str
    key: str
    name: str
    description: str | None = None
    group: str | None = None
    is_system: bool


class RoleResponse(BaseModel):
    id: str
    key: str
    name: str
    description: str | None = None
    is_system: bool
    permissions: list[str]


class RoleCreate(BaseModel):
    key: str = Field(..., min_length=2, max_length=60)
    name: str = Field(..., min_length=2)
    description: str | None = None
    clone_from_role_key: str | None = None


class RolePermissionsUpdate(BaseModel):
    permissions: list[str] = Field(default_factory=list)


class AssignmentCreate(BaseModel):
    user_id: str
    role_key: str
    requesting_service_id: int | None = None
    starts_at: datetime | None = None
    ends_at: datetime | None = None
    note: str | None = None
    is_active: bool = True


class AssignmentUpdate(BaseModel):
    is_active: bool | None = None
    starts_at: datetime | None = None
    ends_at: datetime | None = None
    note: str | None = None


class AssignmentResponse(BaseModel):
    id: str
    user_id: str
    role_id: str
    requesting_service_id: int | None = None
    starts_at: datetime | None = None
    ends_at: datetime | None = None
    is_active: bool
    note: str | None = None
    assigned_by_user_id: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


def _role_response(db: Session, role: models.AccessRole) -> RoleResponse:
    return RoleResponse(
        id=role.id,
        key=role.key,
        name=role.name,
        description=role.description,
        is_system=role.is_system,
        permissions=rbac.role_permission_keys(db, role.id),
    )


@router.get("/rbac/permissions", response_model=list[PermissionResponse])
def list_permissions(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_permission("users.manage")),
):
    rbac.ensure_tenant_rbac_bootstrap(db, current_user.tenant_id)
    permissions = (
        db.query(models.AccessPermission)
        .filter(models.AccessPermission.tenant_id == current_user.tenant_id)
        .order_by(models.AccessPermission.key.asc())
        .all()
    )
    return [
        PermissionResponse(
            id=perm.id,
            key=perm.key,
            name=perm.name,
            description=perm.description,
            group=perm.group_name,
            is_system=perm.is_system,
        )
        for perm in permissions
    ]


@router.get("/rbac/roles", response_model=list[RoleResponse])
def list_roles(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_permission("users.manage")),
):
    rbac.ensure_tenant_rbac_bootstrap(db, current_user.tenant_id)
    roles = (
        db.query(models.AccessRole)
        .filter(models.AccessRole.tenant_id == current_user.tenant_id)
        .order_by(models.AccessRole.key.asc())
        .all()
    )
    return [_role_response(db, role) for role in roles]


@router.post("/rbac/roles", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
def create_role(
    payload: RoleCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_permission("users.manage")),
):
    role = raise_for_failure(
        rbac.create_role(
            db,
            current_user,
            payload.key,
            payload.name,
            description=payload.description,
            clone_from_role_key=payload.clone_from_role_key,
        )
    )
    return _role_response(db, role)


@router.put("/rbac/roles/{role_key}/permissions", response_model=RoleResponse)
def update_role_permissions(
    role_key: str,
    payload: RolePermissionsUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_permission("users.manage")),
):
    role = raise_for_failure(rbac.set_role_permissions(db, current_user, role_key, payload.permissions))
    return _role_response(db, role)


@router.get("/rbac/assignments", response_model=list[AssignmentResponse])
def list_assignments(
    user_id: str | None = Query(default=None, alias="userId"),
    role_key: str | None = Query(default=None, alias="roleKey"),
    is_active: bool | None = Query(default=None, alias="isActive"),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_permission("users.manage")),
):
    return rbac.list_assignments(db, current_user.tenant_id, user_id=user_id, role_key=role_key, is_active=is_active)


@router.post("/rbac/assignments", response_model=AssignmentResponse, status_code=status.HTTP_201_CREATED)
def create_assignment(
    payload: AssignmentCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_permission("users.manage")),
):
    return raise_for_failure(
        rbac.assign_role(
            db,
            current_user,
            payload.user_id,
            payload.role_key,
            requesting_service_id=payload.requesting_service_id,
            starts_at=payload.starts_at,
            ends_at=payload.ends_at,
            note=payload.note,
            is_active=payload.is_active,
        )
    )


@router.patch("/rbac/assignments/{assignment_id}", response_model=AssignmentResponse)
def update_assignment(
    assignment_id: str,
    payload: AssignmentUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_permission("users.manage")),
):
    changes = payload.model_dump(exclude_unset=True)
    return raise_for_failure(rbac.update_assignment(db, current_user, assignment_id, changes))
