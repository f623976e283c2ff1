import logging
import re

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.security import get_password_hash
from app.db import models
from app.db.session import SessionLocal
from app.rbac.service import ensure_tenant_rbac_bootstrap
from app.workflow.engine import WorkflowEngine

logger = logging.getLogger("gtmi")


def _slugify(value: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", value.strip().lower())
    return slug.strip("-") or "tenant"


def ensure_tenant_defaults(db: Session, tenant_id: str) -> None:
    ensure_tenant_rbac_bootstrap(db, tenant_id)
    WorkflowEngine(db).ensure_definition(tenant_id)
    db.commit()


def seed_initial_data() -> None:
    db: Session = SessionLocal()
    try:
        tenant = db.query(models.Tenant).first()
        if not tenant:
            tenant = models.Tenant(
                name=settings.SEED_TENANT_NAME,
                slug=_slugify(settings.SEED_TENANT_NAME),
                status="ATIVO",
            )
            db.add(tenant)
            db.commit()
            db.refresh(tenant)

        admin = (
            db.query(models.User)
            .filter(models.User.tenant_id == tenant.id, models.User.login == settings.SEED_ADMIN_LOGIN)
            .first()
        )
        if not admin and not settings.SEED_ADMIN_PASSWORD:
            logger.warning("SEED_ADMIN_PASSWORD nao definido; administrador inicial nao criado.")
        elif not admin:
            admin = models.User(
                tenant_id=tenant.id,
                name="Administrador",
                login=settings.SEED_ADMIN_LOGIN,
                password_hash=get_password_hash(settings.SEED_ADMIN_PASSWORD),
                role="ADMIN",
                is_active=True,
            )
            db.add(admin)
            db.commit()

        for (tenant_id,) in db.query(models.Tenant.id).all():
            ensure_tenant_defaults(db, tenant_id)
    finally:
        db.close()
