from app.core.errors import ErrorKind, Failure
from app.db import models
from app.inventory.requests import create_request, serialize_request
from app.inventory.schemas import RequestCreatePayload
from app.services.realtime import InProcessEventBus

from conftest import seed_product, seed_tenant


def _payload(world, **fields):
    data = {
        "requestingServiceId": world.service.id,
        "title": "Consumiveis",
        "items": [{"productId": world.product.id, "quantity": 2}, {"description": "Papel A4", "quantity": 10}],
    }
    data.update(fields)
    return RequestCreatePayload.model_validate(data)


def test_create_request_submits_by_default(db_session, world):
    bus = InProcessEventBus()
    received = []
    bus.subscribe(received.append)

    request = create_request(db_session, world.user, _payload(world), bus=bus)

    assert not isinstance(request, Failure)
    assert request.status == "SUBMITTED"
    assert request.gtmi_number.startswith("GTMI-")
    assert request.requesting_service == "DSI - Divisao de Sistemas"
    assert [item.position for item in request.items] == [0, 1]
    assert [event.type for event in received] == ["request.created"]
    body = serialize_request(request)
    assert body["items"][1]["description"] == "Papel A4"


def test_create_request_as_draft(db_session, world):
    request = create_request(db_session, world.user, _payload(world, submit=False))

    assert request.status == "DRAFT"
    assert db_session.query(models.WorkflowInstance).filter_by(request_id=request.id).count() == 1
    assert db_session.query(models.WorkflowEvent).count() == 0


def test_numbers_increase(db_session, world):
    first = create_request(db_session, world.user, _payload(world))
    second = create_request(db_session, world.user, _payload(world))

    assert second.gtmi_seq == first.gtmi_seq + 1


def test_inactive_service_is_rejected(db_session, world):
    world.service.ativo = False
    db_session.commit()

    result = create_request(db_session, world.user, _payload(world))

    assert isinstance(result, Failure)
    assert result.kind == ErrorKind.VALIDATION_FAILED
    assert result.code == "requesting_service_inactive"


def test_foreign_product_is_not_found(db_session, world):
    other_tenant, _ = seed_tenant(db_session, name="Outra Camara")
    foreign = seed_product(db_session, other_tenant, sku="X-1")

    result = create_request(db_session, world.user, _payload(world, items=[{"productId": foreign.id}]))

    assert isinstance(result, Failure)
    assert result.kind == ErrorKind.NOT_FOUND
    assert db_session.query(models.Request).count() == 0


def test_on_behalf_requires_admin(db_session, world):
    denied = create_request(db_session, world.user, _payload(world, asUserId=world.other.id))
    assert isinstance(denied, Failure)
    assert denied.kind == ErrorKind.FORBIDDEN

    request = create_request(db_session, world.admin, _payload(world, asUserId=world.other.id))
    assert request.user_id == world.other.id
    assert request.created_by_user_id == world.admin.id
