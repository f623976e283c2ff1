import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.errors import Failure, InvariantViolation, transition_not_allowed
from app.db import models
from app.workflow.definition import (
    REQUEST_WORKFLOW_KEY,
    REQUEST_WORKFLOW_NAME,
    STATE_TEMPLATES,
    TRANSITION_TEMPLATES,
)

logger = logging.getLogger("gtmi.workflow")


class InstanceNotFound(InvariantViolation):
    pass


@dataclass(frozen=True)
class TransitionPlan:
    instance_id: str
    action: str
    from_state_id: str
    from_state: str
    to_state_id: str
    to_state: str
    to_status: str | None
    required_permission: str | None


@dataclass(frozen=True)
class TransitionResult:
    request_id: str
    action: str
    from_state: str
    to_state: str
    from_status: str | None
    status: str
    completed: bool
    event_id: str


def _state_dict(state: models.WorkflowState | None) -> dict[str, Any] | None:
    if state is None:
        return None
    return {
        "id": state.id,
        "code": state.code,
        "name": state.name,
        "requestStatus": state.request_status,
        "isTerminal": state.is_terminal,
    }


class WorkflowEngine:
    """Request state machine backed by the tenant's workflow tables.

    Permission checks are not done here: callers read ``required_permission``
    from :meth:`resolve_transition` and authorize before calling
    :meth:`transition_tx`.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def _find_definition(self, tenant_id: str) -> models.WorkflowDefinition | None:
        return (
            self.db.query(models.WorkflowDefinition)
            .filter(
                models.WorkflowDefinition.tenant_id == tenant_id,
                models.WorkflowDefinition.key == REQUEST_WORKFLOW_KEY,
                models.WorkflowDefinition.target_type == "REQUEST",
                models.WorkflowDefinition.is_active.is_(True),
            )
            .order_by(models.WorkflowDefinition.version.desc())
            .first()
        )

    def ensure_definition(self, tenant_id: str) -> models.WorkflowDefinition:
        definition = self._find_definition(tenant_id)
        if definition is None:
            definition = models.WorkflowDefinition(
                tenant_id=tenant_id,
                key=REQUEST_WORKFLOW_KEY,
                name=REQUEST_WORKFLOW_NAME,
                target_type="REQUEST",
                version=1,
                is_active=True,
            )
            self.db.add(definition)
            self.db.flush()
            logger.info("workflow definition created tenant=%s key=%s", tenant_id, REQUEST_WORKFLOW_KEY)

        states = {
            state.code: state
            for state in self.db.query(models.WorkflowState)
            .filter(models.WorkflowState.workflow_id == definition.id)
            .all()
        }
        for code, name, sort_order, is_initial, is_terminal, request_status in STATE_TEMPLATES:
            if code in states:
                continue
            state = models.WorkflowState(
                tenant_id=tenant_id,
                workflow_id=definition.id,
                code=code,
                name=name,
                sort_order=sort_order,
                is_initial=is_initial,
                is_terminal=is_terminal,
                request_status=request_status.value,
            )
            self.db.add(state)
            states[code] = state
        self.db.flush()

        existing = {
            (transition.from_state_id, transition.action)
            for transition in self.db.query(models.WorkflowTransition)
            .filter(models.WorkflowTransition.workflow_id == definition.id)
            .all()
        }
        for from_code, action, to_code, required_permission in TRANSITION_TEMPLATES:
            from_state = states.get(from_code)
            to_state = states.get(to_code)
            if from_state is None or to_state is None or (from_state.id, action.value) in existing:
                continue
            self.db.add(
                models.WorkflowTransition(
                    tenant_id=tenant_id,
                    workflow_id=definition.id,
                    from_state_id=from_state.id,
                    to_state_id=to_state.id,
                    action=action.value,
                    required_permission=required_permission,
                )
            )
            existing.add((from_state.id, action.value))
        self.db.flush()
        return definition

    def _find_instance(self, tenant_id: str, request_id: str) -> models.WorkflowInstance | None:
        return (
            self.db.query(models.WorkflowInstance)
            .filter(
                models.WorkflowInstance.tenant_id == tenant_id,
                models.WorkflowInstance.request_id == request_id,
            )
            .first()
        )

    def ensure_instance(self, tenant_id: str, request_id: str) -> models.WorkflowInstance:
        instance = self._find_instance(tenant_id, request_id)
        if instance is not None:
            return instance

        definition = self.ensure_definition(tenant_id)
        request = (
            self.db.query(models.Request)
            .filter(models.Request.id == request_id, models.Request.tenant_id == tenant_id)
            .first()
        )
        if request is None:
            raise InstanceNotFound(f"Requisicao {request_id} sem registo no tenant {tenant_id}")

        states = (
            self.db.query(models.WorkflowState)
            .filter(models.WorkflowState.workflow_id == definition.id)
            .order_by(models.WorkflowState.sort_order.asc())
            .all()
        )
        seed = next((state for state in states if state.request_status == request.status), None)
        seed = seed or next((state for state in states if state.is_initial), None) or (states[0] if states else None)
        if seed is None:
            raise InvariantViolation(f"Workflow {definition.id} sem estados")

        instance = models.WorkflowInstance(
            tenant_id=tenant_id,
            workflow_id=definition.id,
            request_id=request_id,
            current_state_id=seed.id,
            completed_at=datetime.utcnow() if seed.is_terminal else None,
        )
        self.db.add(instance)
        self.db.flush()
        return instance

    def resolve_transition(self, tenant_id: str, request_id: str, action: str) -> TransitionPlan | Failure:
        instance = self.ensure_instance(tenant_id, request_id)
        current = instance.current_state
        transition = (
            self.db.query(models.WorkflowTransition)
            .filter(
                models.WorkflowTransition.workflow_id == instance.workflow_id,
                models.WorkflowTransition.from_state_id == instance.current_state_id,
                models.WorkflowTransition.action == action,
            )
            .first()
        )
        if transition is None:
            return transition_not_allowed(current.code if current else None, action)
        return TransitionPlan(
            instance_id=instance.id,
            action=transition.action,
            from_state_id=instance.current_state_id,
            from_state=current.code,
            to_state_id=transition.to_state_id,
            to_state=transition.to_state.code,
            to_status=transition.to_state.request_status,
            required_permission=transition.required_permission,
        )

    def transition_tx(
        self,
        tenant_id: str,
        request_id: str,
        action: str,
        actor_id: str | None,
        note: str | None = None,
    ) -> TransitionResult | Failure:
        """Move the request inside the caller's transaction. Never commits."""
        plan = self.resolve_transition(tenant_id, request_id, action)
        if isinstance(plan, Failure):
            return plan

        instance = self.db.get(models.WorkflowInstance, plan.instance_id)
        if instance is None:
            raise InstanceNotFound(f"Instancia {plan.instance_id} desapareceu")
        to_state = self.db.get(models.WorkflowState, plan.to_state_id)
        request = self.db.get(models.Request, request_id)

        position = (
            self.db.query(func.count(models.WorkflowEvent.id))
            .filter(models.WorkflowEvent.instance_id == instance.id)
            .scalar()
        ) + 1
        instance.current_state_id = to_state.id
        instance.completed_at = datetime.utcnow() if to_state.is_terminal else None
        from_status = request.status
        if to_state.request_status:
            request.status = to_state.request_status
        event = models.WorkflowEvent(
            tenant_id=tenant_id,
            instance_id=instance.id,
            request_id=request_id,
            position=position,
            action=plan.action,
            from_state_id=plan.from_state_id,
            to_state_id=to_state.id,
            actor_user_id=actor_id,
            note=note,
        )
        self.db.add(event)
        self.db.flush()
        self.db.refresh(instance)
        logger.info(
            "workflow transition request=%s action=%s from=%s to=%s actor=%s",
            request_id,
            plan.action,
            plan.from_state,
            to_state.code,
            actor_id,
        )
        return TransitionResult(
            request_id=request_id,
            action=plan.action,
            from_state=plan.from_state,
            to_state=to_state.code,
            from_status=from_status,
            status=request.status,
            completed=to_state.is_terminal,
            event_id=event.id,
        )

    def transition(
        self,
        tenant_id: str,
        request_id: str,
        action: str,
        actor_id: str | None,
        note: str | None = None,
    ) -> TransitionResult | Failure:
        try:
            result = self.transition_tx(tenant_id, request_id, action, actor_id, note)
        except Exception:
            self.db.rollback()
            raise
        if isinstance(result, Failure):
            self.db.rollback()
            return result
        self.db.commit()
        return result

    def describe(self, tenant_id: str, request_id: str) -> dict[str, Any]:
        created = self._find_instance(tenant_id, request_id) is None
        instance = self.ensure_instance(tenant_id, request_id)
        if created:
            self.db.commit()
        definition = self.db.get(models.WorkflowDefinition, instance.workflow_id)
        events = (
            self.db.query(models.WorkflowEvent)
            .filter(models.WorkflowEvent.instance_id == instance.id)
            .order_by(models.WorkflowEvent.position.desc())
            .all()
        )
        return {
            "definition": {
                "id": definition.id,
                "key": definition.key,
                "name": definition.name,
                "version": definition.version,
            },
            "currentState": _state_dict(instance.current_state),
            "completedAt": instance.completed_at,
            "events": [
                {
                    "id": event.id,
                    "action": event.action,
                    "note": event.note,
                    "actor": {"id": event.actor.id, "name": event.actor.name} if event.actor else None,
                    "fromState": _state_dict(event.from_state),
                    "toState": _state_dict(event.to_state),
                    "createdAt": event.created_at,
                }
                for event in events
            ],
        }
