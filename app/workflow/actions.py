import logging
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.orm import Session

from app.core.authorization import authorize_transition, can_view_request
from app.core.errors import Failure, forbidden, not_found
from app.db import models
from app.inventory.lifecycle import AssetLifecycleEngine
from app.inventory.requests import get_request
from app.rbac.service import resolve_grants
from app.services.audit import audit_log
from app.services.realtime import EventPublisher, RealtimeEvent, publish_safely
from app.workflow.definition import RequestStatus, WorkflowAction
from app.workflow.engine import TransitionResult, WorkflowEngine

logger = logging.getLogger("gtmi.workflow")


@dataclass
class ActionOutcome:
    transition: TransitionResult
    gtmi_number: str
    restocked_units: list[str] = field(default_factory=list)
    released_units: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "requestId": self.transition.request_id,
            "gtmiNumber": self.gtmi_number,
            "action": self.transition.action,
            "fromState": self.transition.from_state,
            "toState": self.transition.to_state,
            "fromStatus": self.transition.from_status,
            "status": self.transition.status,
            "completed": self.transition.completed,
            "restockedUnits": self.restocked_units,
            "releasedUnits": self.released_units,
        }


def _deny(db: Session, user: models.User, request: models.Request, action: str, failure: Failure) -> Failure:
    db.rollback()
    logger.warning(
        "request action denied request=%s action=%s user=%s code=%s", request.id, action, user.id, failure.code
    )
    audit_log(
        db,
        user.tenant_id,
        user.id,
        "REQUEST_ACTION_DENIED",
        "REQUEST",
        request.id,
        {"action": action, **failure.detail},
        note=failure.code,
    )
    db.commit()
    return failure


def perform_request_action(
    db: Session,
    user: models.User,
    request_id: str,
    action: WorkflowAction | str,
    note: str | None = None,
    bus: EventPublisher | None = None,
) -> ActionOutcome | Failure:
    action = WorkflowAction(action).value
    tenant_id = user.tenant_id
    grants = resolve_grants(db, user)
    request = get_request(db, tenant_id, request_id)
    if request is None:
        return not_found("request_not_found", "Requisicao nao encontrada")

    engine = WorkflowEngine(db)
    plan = engine.resolve_transition(tenant_id, request.id, action)
    if isinstance(plan, Failure):
        db.rollback()
        return plan
    denied = authorize_transition(grants, user, request, plan)
    if denied is not None:
        return _deny(db, user, request, action, denied)

    lifecycle = AssetLifecycleEngine(db, bus=bus, workflow=engine)
    try:
        result = engine.transition_tx(tenant_id, request.id, action, user.id, note)
        if isinstance(result, Failure):
            db.rollback()
            return result
        outcome = ActionOutcome(transition=result, gtmi_number=request.gtmi_number)
        if request.request_type == "RETURN":
            if result.status == RequestStatus.FULFILLED.value:
                outcome.restocked_units = lifecycle.complete_return_tx(user, request)
            elif result.status == RequestStatus.REJECTED.value:
                outcome.released_units = lifecycle.release_return_tx(request)
        db.add(
            models.RequestStatusAudit(
                tenant_id=tenant_id,
                request_id=request.id,
                from_status=result.from_status,
                to_status=result.status,
                changed_by_user_id=user.id,
                source="workflow.action",
                note=note,
            )
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    publish_safely(
        bus,
        RealtimeEvent(
            type="request.status_changed",
            tenant_id=tenant_id,
            audience="USER",
            user_id=request.user_id,
            payload=outcome.to_dict(),
        ),
    )
    for code in outcome.restocked_units:
        publish_safely(
            bus,
            RealtimeEvent(
                type="unit.returned",
                tenant_id=tenant_id,
                audience="ADMIN",
                user_id=request.user_id,
                payload={"code": code, "requestId": request.id, "gtmiNumber": request.gtmi_number},
            ),
        )
    return outcome


def describe_request_workflow(db: Session, user: models.User, request_id: str) -> dict[str, Any] | Failure:
    request = get_request(db, user.tenant_id, request_id)
    if request is None:
        return not_found("request_not_found", "Requisicao nao encontrada")
    if not can_view_request(resolve_grants(db, user), user, request):
        return forbidden("request_view_denied", "Sem acesso a esta requisicao")
    return WorkflowEngine(db).describe(user.tenant_id, request.id)
