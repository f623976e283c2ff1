from app.core.errors import ErrorKind, Failure
from app.db import models
from app.inventory.lifecycle import AssetLifecycleEngine
from app.inventory.requests import new_request
from app.inventory.schemas import UnitAcquirePayload, UnitReturnPayload
from app.inventory.sequence import SequenceAllocator
from app.rbac.service import assign_role, create_role, set_role_permissions
from app.services.realtime import InProcessEventBus
from app.workflow.actions import describe_request_workflow, perform_request_action
from app.workflow.schemas import WorkflowActionPayload

from conftest import register_units


def _draft(db, owner, service):
    request = new_request(owner, owner, "STANDARD", "Toner")
    request.requesting_service_id = service.id
    SequenceAllocator(db).assign(request, year=2026)
    db.commit()
    return request


def _final_approver(db, world, scoped):
    create_role(db, world.admin, "FINAL_ONLY", "Decisao final")
    set_role_permissions(db, world.admin, "FINAL_ONLY", ["requests.final_approve"])
    assign_role(
        db,
        world.admin,
        world.other.id,
        "FINAL_ONLY",
        requesting_service_id=world.service.id if scoped else None,
    )


def test_legacy_target_status_maps_to_action():
    assert WorkflowActionPayload(targetStatus="SUBMITTED").resolved_action().value == "SUBMIT"
    assert WorkflowActionPayload(targetStatus="FULFILLED").resolved_action().value == "FULFILL"
    assert WorkflowActionPayload(targetStatus="DRAFT").resolved_action() is None
    assert WorkflowActionPayload(action="REJECT", note="  ").clean_note() is None


def test_owner_can_submit(db_session, world):
    request = _draft(db_session, world.user, world.service)
    outcome = perform_request_action(db_session, world.user, request.id, "SUBMIT")

    assert not isinstance(outcome, Failure)
    assert outcome.transition.status == "SUBMITTED"
    audit = db_session.query(models.RequestStatusAudit).filter_by(request_id=request.id).one()
    assert (audit.from_status, audit.to_status, audit.source) == ("DRAFT", "SUBMITTED", "workflow.action")


def test_stranger_cannot_submit(db_session, world):
    request = _draft(db_session, world.user, world.service)
    result = perform_request_action(db_session, world.other, request.id, "SUBMIT")

    assert isinstance(result, Failure)
    assert result.kind == ErrorKind.FORBIDDEN
    assert db_session.get(models.Request, request.id).status == "DRAFT"
    denied = db_session.query(models.AuditLog).filter_by(action="REQUEST_ACTION_DENIED").one()
    assert denied.resource_id == request.id


def test_scoped_approver_decides_for_own_service(db_session, world):
    request = _draft(db_session, world.user, world.service)
    perform_request_action(db_session, world.user, request.id, "SUBMIT")
    assign_role(db_session, world.admin, world.other.id, "DIVISION_HEAD", requesting_service_id=world.service.id)

    outcome = perform_request_action(db_session, world.other, request.id, "APPROVE", note="Ok chefia")

    assert outcome.transition.to_state == "AWAITING_ADMIN_APPROVAL"


def test_scoped_approver_is_denied_outside_service(db_session, world):
    elsewhere = models.RequestingService(tenant_id=world.tenant.id, codigo="DOM", designacao="Obras Municipais")
    db_session.add(elsewhere)
    db_session.commit()
    request = _draft(db_session, world.user, elsewhere)
    perform_request_action(db_session, world.user, request.id, "SUBMIT")
    assign_role(db_session, world.admin, world.other.id, "DIVISION_HEAD", requesting_service_id=world.service.id)

    result = perform_request_action(db_session, world.other, request.id, "APPROVE")

    assert isinstance(result, Failure)
    assert result.detail["permission"] == "requests.approve"


def test_final_decision_ignores_scoped_grant(db_session, world):
    request = _draft(db_session, world.user, world.service)
    perform_request_action(db_session, world.user, request.id, "SUBMIT")
    perform_request_action(db_session, world.admin, request.id, "APPROVE")
    _final_approver(db_session, world, scoped=True)

    result = perform_request_action(db_session, world.other, request.id, "APPROVE")

    assert isinstance(result, Failure)
    assert result.kind == ErrorKind.FORBIDDEN
    assert result.detail["permission"] == "requests.final_approve"


def test_final_decision_with_global_grant(db_session, world):
    request = _draft(db_session, world.user, world.service)
    perform_request_action(db_session, world.user, request.id, "SUBMIT")
    perform_request_action(db_session, world.admin, request.id, "APPROVE")
    _final_approver(db_session, world, scoped=False)

    outcome = perform_request_action(db_session, world.other, request.id, "APPROVE")

    assert outcome.transition.status == "APPROVED"


def test_illegal_action_is_transition_not_allowed(db_session, world):
    request = _draft(db_session, world.user, world.service)
    result = perform_request_action(db_session, world.admin, request.id, "FULFILL")

    assert isinstance(result, Failure)
    assert result.kind == ErrorKind.TRANSITION_NOT_ALLOWED


def test_unknown_request_is_not_found(db_session, world):
    result = perform_request_action(db_session, world.admin, "missing", "SUBMIT")

    assert isinstance(result, Failure)
    assert result.kind == ErrorKind.NOT_FOUND


def test_status_change_is_published_to_owner(db_session, world):
    bus = InProcessEventBus()
    received = []
    bus.subscribe(received.append)
    request = _draft(db_session, world.user, world.service)

    perform_request_action(db_session, world.user, request.id, "SUBMIT", bus=bus)

    assert [event.type for event in received] == ["request.status_changed"]
    assert received[0].audience == "USER"
    assert received[0].user_id == world.user.id


def test_fulfilling_return_restocks_unit(db_session, world):
    (unit,) = register_units(db_session, world.admin, world.product, "PC-001")
    engine = AssetLifecycleEngine(db_session)
    engine.acquire(world.admin, UnitAcquirePayload(code="PC-001", assigned_to_user_id=world.user.id))
    returned = engine.return_unit(world.user, UnitReturnPayload(code="PC-001", reason="Fim de contrato"))
    request_id = returned.linked_request.id

    perform_request_action(db_session, world.admin, request_id, "APPROVE")
    perform_request_action(db_session, world.admin, request_id, "APPROVE")
    outcome = perform_request_action(db_session, world.admin, request_id, "FULFILL")

    assert outcome.restocked_units == ["PC-001"]
    db_session.refresh(unit)
    assert unit.status == "IN_STOCK"
    assert unit.pending_return_request_id is None
    assert unit.assigned_to_user_id is None
    product = db_session.get(models.Product, world.product.id)
    assert product.quantity == 1
    types = [row.type for row in db_session.query(models.StockMovement).filter_by(unit_id=unit.id)]
    assert sorted(types) == ["IN", "OUT", "RETURN"]


def test_rejecting_return_releases_unit(db_session, world):
    (unit,) = register_units(db_session, world.admin, world.product, "PC-001")
    engine = AssetLifecycleEngine(db_session)
    engine.acquire(world.admin, UnitAcquirePayload(code="PC-001", assigned_to_user_id=world.user.id))
    returned = engine.return_unit(world.user, UnitReturnPayload(code="PC-001"))

    outcome = perform_request_action(db_session, world.admin, returned.linked_request.id, "REJECT")

    assert outcome.released_units == ["PC-001"]
    db_session.refresh(unit)
    assert unit.status == "ACQUIRED"
    assert unit.pending_return_request_id is None
    assert db_session.get(models.Product, world.product.id).quantity == 0


def test_describe_requires_visibility(db_session, world):
    request = _draft(db_session, world.user, world.service)

    assert describe_request_workflow(db_session, world.user, request.id)["currentState"]["code"] == "DRAFT"
    denied = describe_request_workflow(db_session, world.other, request.id)
    assert isinstance(denied, Failure)
    assert denied.kind == ErrorKind.FORBIDDEN
