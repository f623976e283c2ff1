"""ORM listeners that keep the ledger tables append-only.

Stock movements, workflow events and audit log rows are history: they are
inserted once and never updated or deleted. Corrections are new rows.
"""

import logging

from sqlalchemy import event

from app.db import models

logger = logging.getLogger("gtmi.db")

APPEND_ONLY_MODELS = (models.StockMovement, models.WorkflowEvent, models.AuditLog)


class ImmutableRecordError(RuntimeError):
    def __init__(self, entity_type: str, entity_id: str | None, operation: str) -> None:
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.operation = operation
        super().__init__(f"{entity_type} {entity_id} e imutavel ({operation} bloqueado)")


def _block(operation: str):
    def _listener(mapper, connection, target) -> None:
        entity_type = type(target).__name__
        logger.error(
            "immutable record blocked entity=%s id=%s operation=%s",
            entity_type,
            target.id,
            operation,
        )
        raise ImmutableRecordError(entity_type, target.id, operation)

    return _listener


_block_update = _block("UPDATE")
_block_delete = _block("DELETE")


def register_immutability_listeners() -> None:
    for model in APPEND_ONLY_MODELS:
        if not event.contains(model, "before_update", _block_update):
            event.listen(model, "before_update", _block_update)
        if not event.contains(model, "before_delete", _block_delete):
            event.listen(model, "before_delete", _block_delete)
