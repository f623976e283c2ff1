import logging
from typing import Any

from sqlalchemy.orm import Session

from app.core.errors import Failure, forbidden, not_found, validation_failed
from app.db import models
from app.inventory.schemas import LinkedRequest, RequestCreatePayload
from app.inventory.sequence import SequenceAllocator
from app.services.realtime import EventPublisher, RealtimeEvent, publish_safely
from app.workflow.definition import WorkflowAction
from app.workflow.engine import WorkflowEngine

logger = logging.getLogger("gtmi.requests")


def service_label(service: models.RequestingService | None) -> str | None:
    if service is None:
        return None
    return f"{service.codigo} - {service.designacao}"[:120]


def new_request(
    actor: models.User,
    owner: models.User,
    request_type: str,
    title: str | None,
    service: models.RequestingService | None = None,
    notes: str | None = None,
    priority: str | None = None,
    requester_name: str | None = None,
) -> models.Request:
    return models.Request(
        tenant_id=actor.tenant_id,
        request_type=request_type,
        status="DRAFT",
        title=title,
        notes=notes,
        priority=priority,
        user_id=owner.id,
        created_by_user_id=actor.id,
        requesting_service_id=service.id if service else owner.requesting_service_id,
        requesting_service=service_label(service),
        requester_name=requester_name or owner.name,
    )


def linked_request(request: models.Request, owner: models.User) -> LinkedRequest:
    return LinkedRequest(
        id=request.id,
        gtmi_number=request.gtmi_number,
        status=request.status,
        owner_user_id=owner.id,
        owner_name=owner.name,
    )


def tenant_user(db: Session, tenant_id: str, user_id: str | None) -> models.User | None:
    if not user_id:
        return None
    return db.query(models.User).filter(models.User.id == user_id, models.User.tenant_id == tenant_id).first()


def get_request(db: Session, tenant_id: str, request_id: str) -> models.Request | None:
    return (
        db.query(models.Request)
        .filter(models.Request.id == request_id, models.Request.tenant_id == tenant_id)
        .first()
    )


def serialize_request(request: models.Request) -> dict[str, Any]:
    return {
        "id": request.id,
        "gtmiNumber": request.gtmi_number,
        "gtmiYear": request.gtmi_year,
        "gtmiSeq": request.gtmi_seq,
        "requestType": request.request_type,
        "status": request.status,
        "title": request.title,
        "notes": request.notes,
        "priority": request.priority,
        "userId": request.user_id,
        "createdByUserId": request.created_by_user_id,
        "requestingServiceId": request.requesting_service_id,
        "requestingService": request.requesting_service,
        "requesterName": request.requester_name,
        "requestedAt": request.requested_at,
        "items": [
            {
                "id": item.id,
                "position": item.position,
                "productId": item.product_id,
                "unitId": item.unit_id,
                "description": item.description,
                "quantity": item.quantity,
                "unit": item.unit,
                "reference": item.reference,
                "destination": item.destination,
                "notes": item.notes,
                "role": item.role,
            }
            for item in request.items
        ],
    }


def create_request(
    db: Session,
    actor: models.User,
    payload: RequestCreatePayload,
    bus: EventPublisher | None = None,
    sequence: SequenceAllocator | None = None,
    workflow: WorkflowEngine | None = None,
) -> models.Request | Failure:
    sequence = sequence or SequenceAllocator(db)
    workflow = workflow or WorkflowEngine(db)
    tenant_id = actor.tenant_id

    owner = actor
    if payload.as_user_id and payload.as_user_id != actor.id:
        if actor.role != "ADMIN":
            return forbidden("as_user_requires_admin", "Apenas administradores criam requisicoes em nome de outros")
        owner = tenant_user(db, tenant_id, payload.as_user_id)
        if owner is None:
            return not_found("user_not_found", "Utilizador nao encontrado")

    service = (
        db.query(models.RequestingService)
        .filter(
            models.RequestingService.id == payload.requesting_service_id,
            models.RequestingService.tenant_id == tenant_id,
        )
        .first()
    )
    if service is None:
        return validation_failed("requesting_service_invalid", "Servico requisitante invalido")
    if not service.ativo:
        return validation_failed("requesting_service_inactive", "Servico requisitante inativo")

    product_ids = {item.product_id for item in payload.items if item.product_id}
    if product_ids:
        found = {
            product_id
            for (product_id,) in db.query(models.Product.id)
            .filter(models.Product.tenant_id == tenant_id, models.Product.id.in_(product_ids))
            .all()
        }
        missing = sorted(product_ids - found)
        if missing:
            return not_found("product_not_found", "Produto nao encontrado", product_ids=missing)

    def _work() -> models.Request | Failure:
        request = new_request(
            actor,
            owner,
            "STANDARD",
            payload.title,
            service=service,
            notes=payload.notes,
            priority=payload.priority,
            requester_name=payload.requester_name,
        )
        request.supplier_option1 = payload.supplier_option1
        request.supplier_option2 = payload.supplier_option2
        for position, item in enumerate(payload.items):
            request.items.append(
                models.RequestItem(
                    tenant_id=tenant_id,
                    position=position,
                    product_id=item.product_id,
                    description=item.description,
                    quantity=item.quantity,
                    unit=item.unit or "un",
                    reference=item.reference,
                    destination=item.destination,
                    notes=item.notes,
                    role="STANDARD",
                )
            )
        sequence.assign(request)
        workflow.ensure_instance(tenant_id, request.id)
        if payload.submit:
            moved = workflow.transition_tx(tenant_id, request.id, WorkflowAction.SUBMIT.value, actor.id)
            if isinstance(moved, Failure):
                return moved
        return request

    result = sequence.run(_work)
    if isinstance(result, Failure):
        logger.warning("request create failed tenant=%s code=%s", tenant_id, result.code)
        return result

    logger.info("request created id=%s gtmi=%s status=%s", result.id, result.gtmi_number, result.status)
    publish_safely(
        bus,
        RealtimeEvent(
            type="request.created",
            tenant_id=tenant_id,
            audience="ADMIN",
            user_id=owner.id,
            payload={"requestId": result.id, "gtmiNumber": result.gtmi_number, "status": result.status},
        ),
    )
    return result
