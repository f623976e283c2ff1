from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.security import require_permission
from app.db import models
from app.db.session import get_db
from app.inventory.ledger import MovementFilters, StockLedger
from app.inventory.schemas import StockMovementResponse

router = APIRouter(tags=["Movimentos"])


@router.get("/stock-movements")
def list_stock_movements(
    product_id: str | None = Query(default=None, alias="productId"),
    unit_id: str | None = Query(default=None, alias="unitId"),
    type: str | None = Query(default=None),
    performed_by_user_id: str | None = Query(default=None, alias="performedByUserId"),
    assigned_to_user_id: str | None = Query(default=None, alias="assignedToUserId"),
    request_id: str | None = Query(default=None, alias="requestId"),
    date_from: datetime | None = Query(default=None, alias="from"),
    date_to: datetime | None = Query(default=None, alias="to"),
    q: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    cursor: str | None = Query(default=None),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_permission("assets.audit_view")),
):
    filters = MovementFilters(
        product_id=product_id,
        unit_id=unit_id,
        type=type,
        performed_by_user_id=performed_by_user_id,
        assigned_to_user_id=assigned_to_user_id,
        request_id=request_id,
        date_from=date_from,
        date_to=date_to,
        q=q,
    )
    rows, next_cursor = StockLedger(db).list_movements(current_user.tenant_id, filters, limit=limit, cursor=cursor)
    return {
        "items": [StockMovementResponse.model_validate(row).model_dump(by_alias=True) for row in rows],
        "nextCursor": next_cursor,
    }
