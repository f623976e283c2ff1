import logging
import threading
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Callable, Protocol

logger = logging.getLogger("gtmi.realtime")

AUDIENCES = ("ADMIN", "USER", "ALL")


@dataclass(frozen=True)
class RealtimeEvent:
    type: str
    tenant_id: str
    audience: str = "ALL"
    user_id: str | None = None
    payload: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["created_at"] = self.created_at.isoformat()
        return data


EventListener = Callable[[RealtimeEvent], None]
EventFilter = Callable[[RealtimeEvent], bool]


class EventPublisher(Protocol):
    def publish(self, event: RealtimeEvent) -> RealtimeEvent: ...


class InProcessEventBus:
    """Fan-out of notifications to in-process subscribers.

    Delivery is at-most-once: a failing listener is logged and skipped. The
    host owns the instance (``app.state.event_bus``) and hands it to the
    services that publish.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: dict[str, tuple[EventListener, EventFilter | None]] = {}

    def publish(self, event: RealtimeEvent) -> RealtimeEvent:
        if event.audience not in AUDIENCES:
            raise ValueError(f"Audiencia invalida: {event.audience}")
        with self._lock:
            subscribers = list(self._subscribers.values())
        for listener, event_filter in subscribers:
            if event_filter is not None and not event_filter(event):
                continue
            try:
                listener(event)
            except Exception:
                logger.exception("realtime listener failed type=%s id=%s", event.type, event.id)
        logger.debug("realtime published type=%s tenant=%s subscribers=%s", event.type, event.tenant_id, len(subscribers))
        return event

    def subscribe(self, listener: EventListener, event_filter: EventFilter | None = None) -> Callable[[], None]:
        token = str(uuid.uuid4())
        with self._lock:
            self._subscribers[token] = (listener, event_filter)

        def _unsubscribe() -> None:
            with self._lock:
                self._subscribers.pop(token, None)

        return _unsubscribe

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)


def tenant_filter(tenant_id: str, user_id: str | None = None, is_admin: bool = False) -> EventFilter:
    def _filter(event: RealtimeEvent) -> bool:
        if event.tenant_id != tenant_id:
            return False
        if event.audience == "ALL":
            return True
        if event.audience == "ADMIN":
            return is_admin
        return user_id is not None and event.user_id == user_id

    return _filter


def publish_safely(bus: EventPublisher | None, event: RealtimeEvent) -> None:
    if bus is None:
        return
    try:
        bus.publish(event)
    except Exception:
        logger.exception("realtime publish failed type=%s tenant=%s", event.type, event.tenant_id)
