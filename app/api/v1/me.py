from fastapi import APIRouter, Depends, HTTPException

from app.core.security import get_current_grants, get_current_user
from app.db import models
from app.rbac.service import PermissionGrant

router = APIRouter(tags=["Utilizador"])


@router.get("/me")
def get_me(
    current_user: models.User = Depends(get_current_user),
    grants: list[PermissionGrant] = Depends(get_current_grants),
):
    tenant = current_user.tenant
    if not tenant:
        raise HTTPException(status_code=404, detail="Tenant do utilizador nao encontrado")
    service = current_user.requesting_service

    return {
        "user": {
            "id": current_user.id,
            "name": current_user.name,
            "login": current_user.login,
            "email": current_user.email,
            "role": current_user.role,
            "requestingServiceId": current_user.requesting_service_id,
            "requestingService": (
                {"id": service.id, "codigo": service.codigo, "designacao": service.designacao} if service else None
            ),
        },
        "tenant": {"id": tenant.id, "name": tenant.name},
        "grants": [grant.to_dict() for grant in grants],
    }
