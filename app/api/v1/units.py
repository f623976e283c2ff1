import logging
from typing import Callable

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.core.errors import raise_for_failure
from app.core.security import get_current_user, get_event_bus, require_permission
from app.db import models
from app.db.session import get_db
from app.inventory.lifecycle import AssetLifecycleEngine
from app.inventory.schemas import (
    UnitAcquirePayload,
    UnitRegisterPayload,
    UnitRepairPayload,
    UnitReturnPayload,
    UnitSubstitutePayload,
)
from app.services.realtime import EventPublisher

router = APIRouter(tags=["Equipamentos"])
logger = logging.getLogger("gtmi.units")


def _run(operation: str, call: Callable[[], object]) -> dict:
    try:
        result = call()
    except Exception:
        logger.exception("unit operation failed operation=%s", operation)
        raise HTTPException(status_code=500, detail="Falha ao processar equipamento")
    return raise_for_failure(result).model_dump(by_alias=True, mode="json")


@router.post("/units", status_code=status.HTTP_201_CREATED)
def register_unit(
    payload: UnitRegisterPayload,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_permission("assets.create")),
    bus: EventPublisher | None = Depends(get_event_bus),
):
    engine = AssetLifecycleEngine(db, bus=bus)
    return _run("register", lambda: engine.register_unit(current_user, payload))


@router.post("/units/acquire")
def acquire_unit(
    payload: UnitAcquirePayload,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    bus: EventPublisher | None = Depends(get_event_bus),
):
    engine = AssetLifecycleEngine(db, bus=bus)
    return _run("acquire", lambda: engine.acquire(current_user, payload))


@router.post("/units/return", status_code=status.HTTP_201_CREATED)
def return_unit(
    payload: UnitReturnPayload,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    bus: EventPublisher | None = Depends(get_event_bus),
):
    engine = AssetLifecycleEngine(db, bus=bus)
    return _run("return", lambda: engine.return_unit(current_user, payload))


@router.post("/units/repair-out")
def repair_out(
    payload: UnitRepairPayload,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_permission("assets.move")),
    bus: EventPublisher | None = Depends(get_event_bus),
):
    engine = AssetLifecycleEngine(db, bus=bus)
    return _run("repair-out", lambda: engine.repair_out(current_user, payload))


@router.post("/units/repair-in")
def repair_in(
    payload: UnitRepairPayload,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_permission("assets.move")),
    bus: EventPublisher | None = Depends(get_event_bus),
):
    engine = AssetLifecycleEngine(db, bus=bus)
    return _run("repair-in", lambda: engine.repair_in(current_user, payload))


@router.post("/units/substitute")
def substitute_unit(
    payload: UnitSubstitutePayload,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    bus: EventPublisher | None = Depends(get_event_bus),
):
    engine = AssetLifecycleEngine(db, bus=bus)
    return _run("substitute", lambda: engine.substitute(current_user, payload))
