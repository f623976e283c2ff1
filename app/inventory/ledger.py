import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from app.core.config import settings
from app.db import models

logger = logging.getLogger("gtmi.ledger")

MOVEMENT_TYPES = ("IN", "OUT", "RETURN", "REPAIR_OUT", "REPAIR_IN", "SCRAP", "LOST")


def compute_product_status(quantity: int) -> str:
    if quantity > settings.STOCK_LOW_THRESHOLD:
        return "Available"
    if quantity > 0:
        return "Stock Low"
    return "Stock Out"


@dataclass
class MovementFilters:
    product_id: str | None = None
    unit_id: str | None = None
    type: str | None = None
    performed_by_user_id: str | None = None
    assigned_to_user_id: str | None = None
    request_id: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    q: str | None = None


class StockLedger:
    """Append-only movement log plus the product quantity it drives.

    Each movement stores the signed ``stock_delta`` it applied, so the product
    quantity can always be rebuilt from the ledger. Nothing here commits.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def record(
        self,
        tenant_id: str,
        type: str,
        product_id: str,
        unit_id: str | None = None,
        delta: int = 0,
        quantity: int = 1,
        request_id: str | None = None,
        invoice_id: str | None = None,
        performed_by_user_id: str | None = None,
        assigned_to_user_id: str | None = None,
        reason: str | None = None,
        cost_center: str | None = None,
        notes: str | None = None,
    ) -> models.StockMovement:
        if type not in MOVEMENT_TYPES:
            raise ValueError(f"Tipo de movimento invalido: {type}")
        movement = models.StockMovement(
            tenant_id=tenant_id,
            type=type,
            quantity=quantity,
            stock_delta=delta,
            product_id=product_id,
            unit_id=unit_id,
            request_id=request_id,
            invoice_id=invoice_id,
            performed_by_user_id=performed_by_user_id,
            assigned_to_user_id=assigned_to_user_id,
            reason=reason,
            cost_center=cost_center,
            notes=notes,
        )
        self.db.add(movement)
        if delta:
            self.reconcile(product_id, delta)
        return movement

    def reconcile(self, product_id: str, delta: int) -> models.Product:
        product = self.db.get(models.Product, product_id)
        if product is None:
            raise LookupError(f"Produto {product_id} nao encontrado")
        product.quantity = (product.quantity or 0) + delta
        product.status = compute_product_status(product.quantity)
        return product

    def refresh_status(self, product_id: str) -> models.Product:
        return self.reconcile(product_id, 0)

    def net_quantity(self, tenant_id: str, product_id: str) -> int:
        total = (
            self.db.query(func.coalesce(func.sum(models.StockMovement.stock_delta), 0))
            .filter(models.StockMovement.tenant_id == tenant_id, models.StockMovement.product_id == product_id)
            .scalar()
        )
        return int(total or 0)

    def list_movements(
        self,
        tenant_id: str,
        filters: MovementFilters | None = None,
        limit: int = 50,
        cursor: str | None = None,
    ) -> tuple[list[models.StockMovement], str | None]:
        filters = filters or MovementFilters()
        limit = max(1, min(limit, 200))
        query = self.db.query(models.StockMovement).filter(models.StockMovement.tenant_id == tenant_id)
        if filters.product_id:
            query = query.filter(models.StockMovement.product_id == filters.product_id)
        if filters.unit_id:
            query = query.filter(models.StockMovement.unit_id == filters.unit_id)
        if filters.type:
            query = query.filter(models.StockMovement.type == filters.type)
        if filters.performed_by_user_id:
            query = query.filter(models.StockMovement.performed_by_user_id == filters.performed_by_user_id)
        if filters.assigned_to_user_id:
            query = query.filter(models.StockMovement.assigned_to_user_id == filters.assigned_to_user_id)
        if filters.request_id:
            query = query.filter(models.StockMovement.request_id == filters.request_id)
        if filters.date_from:
            query = query.filter(models.StockMovement.created_at >= filters.date_from)
        if filters.date_to:
            query = query.filter(models.StockMovement.created_at <= filters.date_to)
        if filters.q:
            term = f"%{filters.q.strip()}%"
            query = query.filter(
                or_(
                    models.StockMovement.reason.ilike(term),
                    models.StockMovement.cost_center.ilike(term),
                    models.StockMovement.notes.ilike(term),
                )
            )
        if cursor:
            anchor = (
                self.db.query(models.StockMovement)
                .filter(models.StockMovement.id == cursor, models.StockMovement.tenant_id == tenant_id)
                .first()
            )
            if anchor is not None:
                query = query.filter(
                    or_(
                        models.StockMovement.created_at < anchor.created_at,
                        (models.StockMovement.created_at == anchor.created_at) & (models.StockMovement.id < anchor.id),
                    )
                )
        rows = (
            query.order_by(models.StockMovement.created_at.desc(), models.StockMovement.id.desc())
            .limit(limit + 1)
            .all()
        )
        next_cursor = rows[limit - 1].id if len(rows) > limit else None
        return rows[:limit], next_cursor
