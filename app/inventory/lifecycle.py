"""Serialized unit operations: register, acquire, return, repair, substitute.

Each public operation is one unit of work. Input that can be judged without
the database is validated first; ownership and status checks run inside the
transaction, and any ``Failure`` rolls everything back.
"""

import logging
import uuid
from datetime import datetime
from typing import Callable, TypeVar

from sqlalchemy.orm import Session

from app.core.errors import Failure, conflict, forbidden, invalid_state, not_found, validation_failed
from app.db import models
from app.inventory.ledger import StockLedger
from app.inventory.requests import linked_request, new_request, tenant_user
from app.inventory.schemas import (
    ProductSnapshot,
    ReturnOutcome,
    SubstitutionMeta,
    SubstitutionOutcome,
    UnitAcquirePayload,
    UnitOutcome,
    UnitRegisterPayload,
    UnitRepairPayload,
    UnitReturnPayload,
    UnitSnapshot,
    UnitSubstitutePayload,
)
from app.inventory.sequence import SequenceAllocator
from app.services.audit import audit_log
from app.services.realtime import EventPublisher, RealtimeEvent, publish_safely
from app.workflow.definition import WorkflowAction
from app.workflow.engine import WorkflowEngine

logger = logging.getLogger("gtmi.units")

T = TypeVar("T")

IN_STOCK = "IN_STOCK"
ACQUIRED = "ACQUIRED"
IN_REPAIR = "IN_REPAIR"
SCRAPPED = "SCRAPPED"
LOST = "LOST"
TERMINAL_STATES = {SCRAPPED, LOST}

REASON_LABELS = {
    "AVARIA": "Avaria",
    "FIM_USO": "Fim de uso",
    "TROCA": "Troca",
    "EXTRAVIO": "Extravio",
    "OUTRO": "Outro",
}

ALLOWED_DISPOSITIONS = {
    "AVARIA": {"REPAIR", "SCRAP"},
    "EXTRAVIO": {"LOST"},
    "FIM_USO": {"RETURN"},
    "TROCA": {"RETURN"},
}

RESTRICTED_DISPOSITIONS = {"SCRAP", "LOST"}

# disposition -> (unit status, movement type, stock delta)
DISPOSITION_EFFECTS = {
    "RETURN": (IN_STOCK, "RETURN", 1),
    "REPAIR": (IN_REPAIR, "REPAIR_OUT", 0),
    "SCRAP": (SCRAPPED, "SCRAP", 0),
    "LOST": (LOST, "LOST", 0),
}

OLD_ITEM_REFERENCES = {
    "RETURN": "Equipamento antigo (devolucao)",
    "REPAIR": "Equipamento antigo (reparacao)",
    "SCRAP": "Equipamento antigo (abate)",
    "LOST": "Equipamento antigo (extravio)",
}

RETURN_REQUEST_TITLE = "Requisicao de Devolucao"
SUBSTITUTION_REQUEST_TITLE = "Requisicao de Devolucao / Substituicao"


def substitution_reason(reason_code: str, detail: str | None, fallback: str | None) -> str:
    label = REASON_LABELS.get(reason_code, reason_code)
    extra = detail or fallback
    return f"{label}: {extra}" if extra else label


def substitution_notes(
    notes: str | None,
    substitution_id: str,
    old_code: str,
    new_code: str,
    ticket_number: str | None,
    override_reason: str | None,
) -> str:
    parts = [notes] if notes else []
    parts.append(f"SUB:{substitution_id}")
    parts.append(f"OLD:{old_code}")
    parts.append(f"NEW:{new_code}")
    if ticket_number:
        parts.append(f"TICKET:{ticket_number}")
    if override_reason:
        parts.append(f"SKU_OVERRIDE:{override_reason}")
    return " | ".join(parts)


def validate_substitution(payload: UnitSubstitutePayload) -> Failure | None:
    if payload.old_code == payload.new_code:
        return validation_failed("same_unit", "O equipamento antigo e o novo devem ser diferentes")
    if payload.return_reason_code == "OUTRO" and not payload.return_reason_detail:
        return validation_failed("reason_detail_required", "Indique o detalhe do motivo")
    allowed = ALLOWED_DISPOSITIONS.get(payload.return_reason_code)
    if allowed is not None and payload.old_disposition not in allowed:
        return validation_failed(
            "disposition_incompatible",
            "Destino do equipamento incompativel com o motivo",
            reason_code=payload.return_reason_code,
            disposition=payload.old_disposition,
            allowed=sorted(allowed),
        )
    return None


class AssetLifecycleEngine:
    def __init__(
        self,
        db: Session,
        bus: EventPublisher | None = None,
        ledger: StockLedger | None = None,
        sequence: SequenceAllocator | None = None,
        workflow: WorkflowEngine | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.db = db
        self.bus = bus
        self.ledger = ledger or StockLedger(db)
        self.sequence = sequence or SequenceAllocator(db)
        self.workflow = workflow or WorkflowEngine(db)
        self.clock = clock or datetime.utcnow

    def _atomic(self, work: Callable[[], T | Failure]) -> T | Failure:
        try:
            result = work()
        except Exception:
            self.db.rollback()
            raise
        if isinstance(result, Failure):
            self.db.rollback()
            return result
        self.db.commit()
        return result

    def _load_unit(self, actor: models.User, code: str) -> models.ProductUnit | Failure:
        unit = self.db.query(models.ProductUnit).filter(models.ProductUnit.code == code.strip()).first()
        if unit is None:
            return not_found("unit_not_found", "Equipamento nao encontrado", unit_code=code)
        if unit.tenant_id != actor.tenant_id:
            return forbidden("unit_other_tenant", "Equipamento pertence a outra entidade", unit_code=code)
        return unit

    def _snapshot(self, unit: models.ProductUnit) -> UnitSnapshot:
        product = self.db.get(models.Product, unit.product_id)
        return UnitSnapshot(
            id=unit.id,
            code=unit.code,
            status=unit.status,
            assigned_to_user_id=unit.assigned_to_user_id,
            pending_return_request_id=unit.pending_return_request_id,
            product=ProductSnapshot(
                id=product.id,
                name=product.name,
                sku=product.sku,
                quantity=product.quantity,
                status=product.status,
            ),
        )

    def _publish(self, type: str, actor: models.User, payload: dict, user_id: str | None = None) -> None:
        publish_safely(
            self.bus,
            RealtimeEvent(
                type=type,
                tenant_id=actor.tenant_id,
                audience="ADMIN",
                user_id=user_id or actor.id,
                payload=payload,
            ),
        )

    def _status_audit(self, request: models.Request, actor: models.User, source: str, note: str | None) -> None:
        self.db.add(
            models.RequestStatusAudit(
                tenant_id=request.tenant_id,
                request_id=request.id,
                from_status=None,
                to_status=request.status,
                changed_by_user_id=actor.id,
                source=source,
                note=note,
            )
        )

    def register_unit(self, actor: models.User, payload: UnitRegisterPayload) -> UnitOutcome | Failure:
        code = payload.code.strip()

        def _work() -> UnitOutcome | Failure:
            product = self.db.get(models.Product, payload.product_id)
            if product is None:
                return not_found("product_not_found", "Produto nao encontrado")
            if product.tenant_id != actor.tenant_id:
                return forbidden("product_other_tenant", "Produto pertence a outra entidade")
            if self.db.query(models.ProductUnit.id).filter(models.ProductUnit.code == code).first():
                return conflict("unit_code_exists", "Codigo de equipamento ja existe", unit_code=code)
            unit = models.ProductUnit(
                tenant_id=actor.tenant_id,
                product_id=product.id,
                code=code,
                status=IN_STOCK,
                serial_number=payload.serial_number,
                asset_tag=payload.asset_tag,
                invoice_id=payload.invoice_id,
            )
            self.db.add(unit)
            self.db.flush()
            movement = self.ledger.record(
                actor.tenant_id,
                "IN",
                product.id,
                unit_id=unit.id,
                delta=1,
                invoice_id=payload.invoice_id,
                performed_by_user_id=actor.id,
                reason=payload.reason,
                notes=payload.notes,
            )
            self.db.flush()
            return UnitOutcome(unit=self._snapshot(unit), movement_id=movement.id, movement_type="IN")

        result = self._atomic(_work)
        if isinstance(result, Failure):
            return result
        logger.info("unit registered code=%s product=%s", code, payload.product_id)
        self._publish("unit.registered", actor, {"unitId": result.unit.id, "code": code})
        return result

    def acquire(self, actor: models.User, payload: UnitAcquirePayload) -> UnitOutcome | Failure:
        def _work() -> UnitOutcome | Failure:
            unit = self._load_unit(actor, payload.code)
            if isinstance(unit, Failure):
                return unit
            if unit.status == ACQUIRED:
                return invalid_state("already_acquired", "Equipamento ja adquirido", unit.status, unit_code=unit.code)
            if unit.status != IN_STOCK:
                return invalid_state("unit_not_in_stock", "Equipamento nao esta em stock", unit.status, unit_code=unit.code)
            if payload.assigned_to_user_id and tenant_user(self.db, actor.tenant_id, payload.assigned_to_user_id) is None:
                return not_found("assignee_not_found", "Utilizador de destino nao encontrado")

            unit.status = ACQUIRED
            unit.acquired_at = self.clock()
            unit.acquired_by_user_id = actor.id
            unit.assigned_to_user_id = payload.assigned_to_user_id
            unit.acquired_reason = payload.reason
            unit.cost_center = payload.cost_center
            unit.acquired_notes = payload.notes
            movement = self.ledger.record(
                actor.tenant_id,
                "OUT",
                unit.product_id,
                unit_id=unit.id,
                delta=-1,
                invoice_id=unit.invoice_id,
                performed_by_user_id=actor.id,
                assigned_to_user_id=payload.assigned_to_user_id,
                reason=payload.reason,
                cost_center=payload.cost_center,
                notes=payload.notes,
            )
            self.db.flush()
            return UnitOutcome(unit=self._snapshot(unit), movement_id=movement.id, movement_type="OUT")

        result = self._atomic(_work)
        if isinstance(result, Failure):
            return result
        logger.info("unit acquired code=%s actor=%s", result.unit.code, actor.id)
        self._publish(
            "unit.acquired",
            actor,
            {"unitId": result.unit.id, "code": result.unit.code, "assignedToUserId": result.unit.assigned_to_user_id},
        )
        return result

    def return_unit(self, actor: models.User, payload: UnitReturnPayload) -> ReturnOutcome | Failure:
        """Open a RETURN request for an acquired unit.

        The unit keeps ``ACQUIRED`` and is only marked with the pending request;
        stock re-entry happens when that request is fulfilled.
        """

        def _work() -> ReturnOutcome | Failure:
            unit = self._load_unit(actor, payload.code)
            if isinstance(unit, Failure):
                return unit
            if unit.status != ACQUIRED:
                return invalid_state("unit_not_acquired", "Equipamento nao esta adquirido", unit.status, unit_code=unit.code)
            if unit.pending_return_request_id:
                return invalid_state(
                    "return_pending",
                    "Equipamento ja tem devolucao pendente",
                    unit.status,
                    request_id=unit.pending_return_request_id,
                )
            owner = tenant_user(self.db, actor.tenant_id, unit.assigned_to_user_id or actor.id)
            if owner is None:
                return forbidden("owner_other_tenant", "Responsavel do equipamento invalido")

            request = new_request(actor, owner, "RETURN", RETURN_REQUEST_TITLE, notes=payload.notes)
            request.items.append(
                models.RequestItem(
                    tenant_id=actor.tenant_id,
                    position=0,
                    product_id=unit.product_id,
                    unit_id=unit.id,
                    quantity=1,
                    unit="un",
                    reference="Equipamento devolvido",
                    destination=unit.code,
                    notes=payload.reason,
                    role="OLD",
                )
            )
            self.sequence.assign(request)
            self.workflow.ensure_instance(actor.tenant_id, request.id)
            moved = self.workflow.transition_tx(
                actor.tenant_id, request.id, WorkflowAction.SUBMIT.value, actor.id, "auto-submit (unit return)"
            )
            if isinstance(moved, Failure):
                return moved
            self._status_audit(request, actor, "units.return", payload.reason)
            unit.pending_return_request_id = request.id
            audit_log(
                self.db,
                actor.tenant_id,
                actor.id,
                "UNIT_RETURN_REQUEST_CREATED",
                "PRODUCT_UNIT",
                unit.id,
                {"code": unit.code, "requestId": request.id, "gtmiNumber": request.gtmi_number, "ownerUserId": owner.id},
            )
            self.db.flush()
            return ReturnOutcome(unit=self._snapshot(unit), linked_request=linked_request(request, owner))

        result = self.sequence.run(_work)
        if isinstance(result, Failure):
            return result
        logger.info(
            "unit return requested code=%s request=%s", result.unit.code, result.linked_request.gtmi_number
        )
        self._publish(
            "unit.return_requested",
            actor,
            {
                "unitId": result.unit.id,
                "code": result.unit.code,
                "requestId": result.linked_request.id,
                "gtmiNumber": result.linked_request.gtmi_number,
            },
            user_id=result.linked_request.owner_user_id,
        )
        return result

    def repair_out(self, actor: models.User, payload: UnitRepairPayload) -> UnitOutcome | Failure:
        def _work() -> UnitOutcome | Failure:
            unit = self._load_unit(actor, payload.code)
            if isinstance(unit, Failure):
                return unit
            if unit.status == IN_REPAIR:
                return invalid_state("already_in_repair", "Equipamento ja esta em reparacao", unit.status)
            if unit.status in TERMINAL_STATES:
                return invalid_state("terminal_state", "Equipamento abatido ou extraviado", unit.status)
            if unit.pending_return_request_id:
                return invalid_state("return_pending", "Equipamento tem devolucao pendente", unit.status)

            delta = -1 if unit.status == IN_STOCK else 0
            previous_assignee = unit.assigned_to_user_id
            unit.status = IN_REPAIR
            unit.assigned_to_user_id = None
            notes = payload.notes
            if payload.ticket_number:
                notes = " | ".join(part for part in (notes, f"TICKET:{payload.ticket_number}") if part)
            movement = self.ledger.record(
                actor.tenant_id,
                "REPAIR_OUT",
                unit.product_id,
                unit_id=unit.id,
                delta=delta,
                invoice_id=unit.invoice_id,
                performed_by_user_id=actor.id,
                assigned_to_user_id=previous_assignee,
                reason=payload.reason,
                cost_center=payload.cost_center,
                notes=notes,
            )
            self.db.flush()
            return UnitOutcome(unit=self._snapshot(unit), movement_id=movement.id, movement_type="REPAIR_OUT")

        result = self._atomic(_work)
        if isinstance(result, Failure):
            return result
        logger.info("unit repair out code=%s", result.unit.code)
        self._publish("unit.repair_out", actor, {"unitId": result.unit.id, "code": result.unit.code})
        return result

    def repair_in(self, actor: models.User, payload: UnitRepairPayload) -> UnitOutcome | Failure:
        def _work() -> UnitOutcome | Failure:
            unit = self._load_unit(actor, payload.code)
            if isinstance(unit, Failure):
                return unit
            if unit.status != IN_REPAIR:
                return invalid_state("not_in_repair", "Equipamento nao esta em reparacao", unit.status)

            unit.status = IN_STOCK
            unit.assigned_to_user_id = None
            movement = self.ledger.record(
                actor.tenant_id,
                "REPAIR_IN",
                unit.product_id,
                unit_id=unit.id,
                delta=1,
                invoice_id=unit.invoice_id,
                performed_by_user_id=actor.id,
                reason=payload.reason,
                cost_center=payload.cost_center,
                notes=payload.notes,
            )
            self.db.flush()
            return UnitOutcome(unit=self._snapshot(unit), movement_id=movement.id, movement_type="REPAIR_IN")

        result = self._atomic(_work)
        if isinstance(result, Failure):
            return result
        logger.info("unit repair in code=%s", result.unit.code)
        self._publish("unit.repair_in", actor, {"unitId": result.unit.id, "code": result.unit.code})
        return result

    def _deny_restricted_disposition(self, actor: models.User, payload: UnitSubstitutePayload) -> Failure:
        logger.warning(
            "unit substitute denied actor=%s disposition=%s old=%s new=%s",
            actor.id,
            payload.old_disposition,
            payload.old_code,
            payload.new_code,
        )
        audit_log(
            self.db,
            actor.tenant_id,
            actor.id,
            "UNIT_SUBSTITUTE_DENIED_NON_ADMIN_RESTRICTED_DISPOSITION",
            "PRODUCT_UNIT",
            None,
            {
                "oldCode": payload.old_code,
                "newCode": payload.new_code,
                "disposition": payload.old_disposition,
                "reasonCode": payload.return_reason_code,
            },
        )
        self.db.commit()
        return forbidden(
            "restricted_disposition",
            "Apenas administradores podem abater ou dar como extraviado",
            disposition=payload.old_disposition,
        )

    def substitute(self, actor: models.User, payload: UnitSubstitutePayload) -> SubstitutionOutcome | Failure:
        payload = payload.cleaned()
        failure = validate_substitution(payload)
        if failure is not None:
            return failure
        if payload.old_disposition in RESTRICTED_DISPOSITIONS and actor.role != "ADMIN":
            return self._deny_restricted_disposition(actor, payload)

        reason_text = substitution_reason(payload.return_reason_code, payload.return_reason_detail, payload.reason)

        def _work() -> SubstitutionOutcome | Failure:
            old_unit = self._load_unit(actor, payload.old_code)
            if isinstance(old_unit, Failure):
                return old_unit
            new_unit = self._load_unit(actor, payload.new_code)
            if isinstance(new_unit, Failure):
                return new_unit
            if old_unit.status not in (ACQUIRED, IN_REPAIR):
                return invalid_state("invalid_old_state", "Equipamento antigo em estado invalido", old_unit.status)
            if old_unit.pending_return_request_id:
                return invalid_state("return_pending", "Equipamento antigo tem devolucao pendente", old_unit.status)
            if payload.old_disposition == "REPAIR" and old_unit.status == IN_REPAIR:
                return invalid_state("already_in_repair", "Equipamento antigo ja esta em reparacao", old_unit.status)
            if new_unit.status != IN_STOCK:
                return invalid_state("invalid_new_state", "Equipamento novo nao esta em stock", new_unit.status)
            sku_mismatch = old_unit.product_id != new_unit.product_id
            if sku_mismatch and not payload.compatibility_override_reason:
                return validation_failed(
                    "sku_mismatch_requires_reason",
                    "Produtos diferentes exigem justificacao de compatibilidade",
                    old_product_id=old_unit.product_id,
                    new_product_id=new_unit.product_id,
                )
            if payload.assigned_to_user_id and tenant_user(self.db, actor.tenant_id, payload.assigned_to_user_id) is None:
                return not_found("assignee_not_found", "Utilizador de destino nao encontrado")
            previous_assignee = old_unit.assigned_to_user_id
            new_assignee = payload.assigned_to_user_id or previous_assignee
            owner = tenant_user(self.db, actor.tenant_id, new_assignee or actor.id)
            if owner is None:
                return forbidden("owner_other_tenant", "Responsavel do equipamento invalido")

            substitution_id = str(uuid.uuid4())
            performed_at = self.clock()
            notes = substitution_notes(
                payload.notes,
                substitution_id,
                old_unit.code,
                new_unit.code,
                payload.ticket_number,
                payload.compatibility_override_reason if sku_mismatch else None,
            )

            request = new_request(actor, owner, "RETURN", SUBSTITUTION_REQUEST_TITLE, notes=notes)
            request.items.append(
                models.RequestItem(
                    tenant_id=actor.tenant_id,
                    position=0,
                    product_id=old_unit.product_id,
                    unit_id=old_unit.id,
                    quantity=1,
                    reference=OLD_ITEM_REFERENCES[payload.old_disposition],
                    destination=old_unit.code,
                    notes=reason_text,
                    role="OLD",
                )
            )
            request.items.append(
                models.RequestItem(
                    tenant_id=actor.tenant_id,
                    position=1,
                    product_id=new_unit.product_id,
                    unit_id=new_unit.id,
                    quantity=1,
                    reference="Equipamento novo (substituicao)",
                    destination=new_unit.code,
                    role="NEW",
                )
            )
            self.sequence.assign(request)
            self.workflow.ensure_instance(actor.tenant_id, request.id)
            moved = self.workflow.transition_tx(
                actor.tenant_id, request.id, WorkflowAction.SUBMIT.value, actor.id, "auto-submit (unit substitute)"
            )
            if isinstance(moved, Failure):
                return moved
            self._status_audit(request, actor, "units.substitute", reason_text)

            status_after, movement_type, delta = DISPOSITION_EFFECTS[payload.old_disposition]
            old_unit.status = status_after
            old_unit.assigned_to_user_id = None
            self.ledger.record(
                actor.tenant_id,
                movement_type,
                old_unit.product_id,
                unit_id=old_unit.id,
                delta=delta,
                request_id=request.id,
                invoice_id=old_unit.invoice_id,
                performed_by_user_id=actor.id,
                assigned_to_user_id=previous_assignee,
                reason=reason_text,
                cost_center=payload.cost_center,
                notes=notes,
            )

            new_unit.status = ACQUIRED
            new_unit.acquired_at = performed_at
            new_unit.acquired_by_user_id = actor.id
            new_unit.assigned_to_user_id = new_assignee
            new_unit.acquired_reason = reason_text
            new_unit.cost_center = payload.cost_center
            new_unit.acquired_notes = notes
            self.ledger.record(
                actor.tenant_id,
                "OUT",
                new_unit.product_id,
                unit_id=new_unit.id,
                delta=-1,
                request_id=request.id,
                invoice_id=new_unit.invoice_id,
                performed_by_user_id=actor.id,
                assigned_to_user_id=new_assignee,
                reason=reason_text,
                cost_center=payload.cost_center,
                notes=notes,
            )
            for product_id in {old_unit.product_id, new_unit.product_id}:
                self.ledger.refresh_status(product_id)

            meta = SubstitutionMeta(
                reason=reason_text,
                reason_code=payload.return_reason_code,
                reason_detail=payload.return_reason_detail,
                disposition=payload.old_disposition,
                cost_center=payload.cost_center,
                ticket_number=payload.ticket_number,
                notes=payload.notes,
                compatibility_override_reason=payload.compatibility_override_reason,
                performed_at=performed_at,
            )
            audit_log(
                self.db,
                actor.tenant_id,
                actor.id,
                "UNIT_SUBSTITUTE",
                "PRODUCT_UNIT",
                old_unit.id,
                {
                    "substitutionId": substitution_id,
                    "oldCode": old_unit.code,
                    "newCode": new_unit.code,
                    "disposition": payload.old_disposition,
                    "requestId": request.id,
                    "gtmiNumber": request.gtmi_number,
                    "reason": reason_text,
                },
            )
            self.db.flush()
            return SubstitutionOutcome(
                substitution_id=substitution_id,
                old_unit=self._snapshot(old_unit),
                new_unit=self._snapshot(new_unit),
                meta=meta,
                linked_request=linked_request(request, owner),
            )

        result = self.sequence.run(_work)
        if isinstance(result, Failure):
            logger.info("unit substitute rejected code=%s kind=%s", result.code, result.kind.value)
            return result
        logger.info(
            "unit substituted substitution_id=%s old=%s new=%s disposition=%s",
            result.substitution_id,
            result.old_unit.code,
            result.new_unit.code,
            result.meta.disposition,
        )
        self._publish(
            "unit.substituted",
            actor,
            {
                "substitutionId": result.substitution_id,
                "oldCode": result.old_unit.code,
                "newCode": result.new_unit.code,
                "requestId": result.linked_request.id,
            },
            user_id=result.linked_request.owner_user_id,
        )
        return result

    def complete_return_tx(self, actor: models.User, request: models.Request) -> list[str]:
        """Restock the units waiting on ``request``. Runs in the caller's transaction."""
        units = (
            self.db.query(models.ProductUnit)
            .filter(
                models.ProductUnit.tenant_id == request.tenant_id,
                models.ProductUnit.pending_return_request_id == request.id,
            )
            .all()
        )
        codes = []
        for unit in units:
            previous_assignee = unit.assigned_to_user_id
            unit.status = IN_STOCK
            unit.assigned_to_user_id = None
            unit.pending_return_request_id = None
            self.ledger.record(
                request.tenant_id,
                "RETURN",
                unit.product_id,
                unit_id=unit.id,
                delta=1,
                request_id=request.id,
                invoice_id=unit.invoice_id,
                performed_by_user_id=actor.id,
                assigned_to_user_id=previous_assignee,
                reason="Devolucao concluida",
            )
            codes.append(unit.code)
        self.db.flush()
        return codes

    def release_return_tx(self, request: models.Request) -> list[str]:
        units = (
            self.db.query(models.ProductUnit)
            .filter(
                models.ProductUnit.tenant_id == request.tenant_id,
                models.ProductUnit.pending_return_request_id == request.id,
            )
            .all()
        )
        for unit in units:
            unit.pending_return_request_id = None
        self.db.flush()
        return [unit.code for unit in units]
