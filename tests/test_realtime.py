import pytest

from app.services.realtime import InProcessEventBus, RealtimeEvent, publish_safely, tenant_filter


def _event(**fields):
    data = {"type": "unit.acquired", "tenant_id": "t1", "audience": "ALL"}
    data.update(fields)
    return RealtimeEvent(**data)


def test_publish_fans_out_and_unsubscribe():
    bus = InProcessEventBus()
    first, second = [], []
    bus.subscribe(first.append)
    unsubscribe = bus.subscribe(second.append)

    bus.publish(_event())
    unsubscribe()
    bus.publish(_event())

    assert len(first) == 2
    assert len(second) == 1
    assert bus.subscriber_count == 1


def test_failing_listener_does_not_stop_delivery():
    bus = InProcessEventBus()
    received = []

    def _boom(event):
        raise RuntimeError("listener down")

    bus.subscribe(_boom)
    bus.subscribe(received.append)
    bus.publish(_event())

    assert len(received) == 1


def test_invalid_audience_is_rejected():
    with pytest.raises(ValueError):
        InProcessEventBus().publish(_event(audience="EVERYONE"))


def test_tenant_filter_audiences():
    admin_view = tenant_filter("t1", user_id="u1", is_admin=True)
    user_view = tenant_filter("t1", user_id="u2")

    assert admin_view(_event(audience="ADMIN"))
    assert not user_view(_event(audience="ADMIN"))
    assert user_view(_event(audience="USER", user_id="u2"))
    assert not user_view(_event(audience="USER", user_id="u1"))
    assert not admin_view(_event(tenant_id="t2"))


def test_filtered_subscription():
    bus = InProcessEventBus()
    received = []
    bus.subscribe(received.append, tenant_filter("t1"))

    bus.publish(_event(tenant_id="t2"))
    bus.publish(_event())

    assert [event.tenant_id for event in received] == ["t1"]


def test_publish_safely_tolerates_missing_bus():
    publish_safely(None, _event())


def test_envelope_serialization():
    data = _event(user_id="u1", payload={"code": "PC-001"}).to_dict()

    assert set(data) == {"type", "tenant_id", "audience", "user_id", "payload", "id", "created_at"}
    assert isinstance(data["created_at"], str)
