import pytest

from app.core.errors import ErrorKind, Failure
from app.db import models
from app.inventory.requests import new_request
from app.inventory.sequence import SequenceAllocator
from app.workflow.definition import STATE_TEMPLATES, TRANSITION_TEMPLATES
from app.workflow.engine import InstanceNotFound, WorkflowEngine


def _draft(db, actor):
    request = new_request(actor, actor, "STANDARD", "Toner")
    SequenceAllocator(db).assign(request, year=2026)
    db.commit()
    return request


def test_definition_is_seeded_once(db_session, world):
    engine = WorkflowEngine(db_session)
    first = engine.ensure_definition(world.tenant.id)
    second = engine.ensure_definition(world.tenant.id)
    db_session.commit()

    assert first.id == second.id
    assert db_session.query(models.WorkflowState).filter_by(workflow_id=first.id).count() == len(STATE_TEMPLATES)
    assert db_session.query(models.WorkflowTransition).filter_by(workflow_id=first.id).count() == len(
        TRANSITION_TEMPLATES
    )


def test_instance_is_seeded_from_request_status(db_session, world):
    request = _draft(db_session, world.user)
    instance = WorkflowEngine(db_session).ensure_instance(world.tenant.id, request.id)

    assert instance.current_state.code == "DRAFT"
    assert instance.completed_at is None


def test_instance_for_missing_request_raises(db_session, world):
    with pytest.raises(InstanceNotFound):
        WorkflowEngine(db_session).ensure_instance(world.tenant.id, "missing")


def test_submit_then_reject_records_two_events(db_session, world):
    request = _draft(db_session, world.user)
    engine = WorkflowEngine(db_session)

    submitted = engine.transition(world.tenant.id, request.id, "SUBMIT", world.user.id)
    assert submitted.to_state == "AWAITING_SUPERVISOR_APPROVAL"
    assert submitted.status == "SUBMITTED"
    assert submitted.from_status == "DRAFT"

    rejected = engine.transition(world.tenant.id, request.id, "REJECT", world.admin.id, "Sem orcamento")
    assert rejected.completed
    assert rejected.status == "REJECTED"

    described = engine.describe(world.tenant.id, request.id)
    assert described["currentState"]["code"] == "REJECTED"
    assert described["completedAt"] is not None
    assert [event["action"] for event in described["events"]] == ["REJECT", "SUBMIT"]
    assert described["events"][0]["note"] == "Sem orcamento"
    assert db_session.get(models.Request, request.id).status == "REJECTED"


def test_full_happy_path(db_session, world):
    request = _draft(db_session, world.user)
    engine = WorkflowEngine(db_session)
    for action in ("SUBMIT", "APPROVE", "APPROVE", "FULFILL"):
        result = engine.transition(world.tenant.id, request.id, action, world.admin.id)
        assert not isinstance(result, Failure)

    assert result.to_state == "FULFILLED"
    assert db_session.get(models.Request, request.id).status == "FULFILLED"
    positions = [
        event.position
        for event in db_session.query(models.WorkflowEvent).filter_by(request_id=request.id).order_by(
            models.WorkflowEvent.position
        )
    ]
    assert positions == [1, 2, 3, 4]


def test_presidency_shortcut_skips_admin_stage(db_session, world):
    request = _draft(db_session, world.user)
    engine = WorkflowEngine(db_session)
    engine.transition(world.tenant.id, request.id, "SUBMIT", world.user.id)
    result = engine.transition(world.tenant.id, request.id, "PRESIDENCY_APPROVE", world.admin.id)

    assert result.to_state == "APPROVED"


def test_illegal_transition_has_no_effect(db_session, world):
    request = _draft(db_session, world.user)
    engine = WorkflowEngine(db_session)

    result = engine.transition(world.tenant.id, request.id, "FULFILL", world.admin.id)

    assert isinstance(result, Failure)
    assert result.kind == ErrorKind.TRANSITION_NOT_ALLOWED
    assert result.detail == {"state": "DRAFT", "action": "FULFILL"}
    assert db_session.get(models.Request, request.id).status == "DRAFT"
    assert db_session.query(models.WorkflowEvent).count() == 0


def test_terminal_state_accepts_nothing(db_session, world):
    request = _draft(db_session, world.user)
    engine = WorkflowEngine(db_session)
    engine.transition(world.tenant.id, request.id, "SUBMIT", world.user.id)
    engine.transition(world.tenant.id, request.id, "REJECT", world.admin.id)

    for action in ("SUBMIT", "APPROVE", "REJECT", "FULFILL"):
        result = engine.transition(world.tenant.id, request.id, action, world.admin.id)
        assert isinstance(result, Failure)
