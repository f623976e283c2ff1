from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db import models
from app.db.immutability import register_immutability_listeners
from app.db.init_db import ensure_tenant_defaults
from app.inventory.lifecycle import AssetLifecycleEngine
from app.inventory.schemas import UnitRegisterPayload


@pytest.fixture()
def db_session():
    register_immutability_listeners()
    engine = create_engine("sqlite:///:memory:", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    models.Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = SessionLocal()
    yield db
    db.close()
    engine.dispose()


def seed_tenant(db, name="Camara Municipal"):
    tenant = models.Tenant(name=name, slug=name.lower().replace(" ", "-"), status="ATIVO")
    db.add(tenant)
    db.commit()
    ensure_tenant_defaults(db, tenant.id)
    service = models.RequestingService(tenant_id=tenant.id, codigo="DSI", designacao="Divisao de Sistemas")
    db.add(service)
    db.commit()
    return tenant, service


def seed_user(db, tenant, login, role="USER", service=None):
    user = models.User(
        tenant_id=tenant.id,
        name=login.title(),
        login=login,
        email=f"{login}@example.com",
        password_hash="x",
        role=role,
        requesting_service_id=service.id if service else None,
    )
    db.add(user)
    db.commit()
    return user


def seed_product(db, tenant, sku="LAP-01", name="Portatil"):
    product = models.Product(tenant_id=tenant.id, name=name, sku=sku)
    db.add(product)
    db.commit()
    return product


def register_units(db, actor, product, *codes):
    engine = AssetLifecycleEngine(db)
    units = []
    for code in codes:
        outcome = engine.register_unit(actor, UnitRegisterPayload(code=code, product_id=product.id))
        units.append(db.get(models.ProductUnit, outcome.unit.id))
    return units


@pytest.fixture()
def world(db_session):
    tenant, service = seed_tenant(db_session)
    admin = seed_user(db_session, tenant, "admin", role="ADMIN")
    user = seed_user(db_session, tenant, "ana", service=service)
    other = seed_user(db_session, tenant, "rui", service=service)
    product = seed_product(db_session, tenant)
    return SimpleNamespace(tenant=tenant, service=service, admin=admin, user=user, other=other, product=product)
