from typing import Any

from sqlalchemy.orm import Session

from app.db import models


def audit_log(
    db: Session,
    tenant_id: str,
    user_id: str | None,
    action: str,
    resource_type: str,
    resource_id: str | None,
    payload: dict[str, Any] | None = None,
    note: str | None = None,
    ip: str | None = None,
    user_agent: str | None = None,
) -> models.AuditLog:
    log = models.AuditLog(
        tenant_id=tenant_id,
        user_id=user_id,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        note=note,
        payload_resumo=payload or {},
        ip=ip,
        user_agent=user_agent,
    )
    db.add(log)
    return log
