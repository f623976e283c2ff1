import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.core.authorization import can_view_request
from app.core.errors import raise_for_failure, transition_not_allowed
from app.core.security import get_current_grants, get_current_user, get_event_bus
from app.db import models
from app.db.session import get_db
from app.inventory.requests import create_request, get_request, serialize_request
from app.inventory.schemas import RequestCreatePayload
from app.rbac.service import PermissionGrant
from app.services.realtime import EventPublisher
from app.workflow.actions import describe_request_workflow, perform_request_action
from app.workflow.schemas import WorkflowActionPayload

router = APIRouter(tags=["Requisicoes"])
logger = logging.getLogger("gtmi.requests")


@router.post("/requests", status_code=status.HTTP_201_CREATED)
def create_request_endpoint(
    payload: RequestCreatePayload,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    bus: EventPublisher | None = Depends(get_event_bus),
):
    request = raise_for_failure(create_request(db, current_user, payload, bus=bus))
    return serialize_request(request)


@router.get("/requests/{request_id}")
def get_request_endpoint(
    request_id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    grants: list[PermissionGrant] = Depends(get_current_grants),
):
    request = get_request(db, current_user.tenant_id, request_id)
    if not request:
        raise HTTPException(status_code=404, detail="Requisicao nao encontrada")
    if not can_view_request(grants, current_user, request):
        raise HTTPException(status_code=403, detail="Sem acesso a esta requisicao")
    return serialize_request(request)


@router.get("/workflows/requests/{request_id}/action")
def get_request_workflow(
    request_id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    return raise_for_failure(describe_request_workflow(db, current_user, request_id))


@router.post("/workflows/requests/{request_id}/action")
def post_request_workflow_action(
    request_id: str,
    payload: WorkflowActionPayload,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    bus: EventPublisher | None = Depends(get_event_bus),
):
    action = payload.resolved_action()
    if action is None:
        raise_for_failure(transition_not_allowed(None, f"targetStatus:{payload.target_status.value}"))
    try:
        outcome = perform_request_action(db, current_user, request_id, action, payload.clean_note(), bus=bus)
    except Exception:
        logger.exception("workflow action failed request=%s action=%s", request_id, action.value)
        raise HTTPException(status_code=500, detail="Falha ao executar acao")
    return raise_for_failure(outcome).to_dict()
