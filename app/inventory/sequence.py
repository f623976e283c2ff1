import logging
from datetime import datetime
from typing import Callable, TypeVar

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import Failure, conflict
from app.db import models

logger = logging.getLogger("gtmi.sequence")

T = TypeVar("T")


class SequenceConflict(Exception):
    def __init__(self, tenant_id: str, year: int, seq: int) -> None:
        self.tenant_id = tenant_id
        self.year = year
        self.seq = seq
        super().__init__(f"GTMI {year}/{seq} ja atribuido no tenant {tenant_id}")


def format_gtmi_number(year: int, seq: int) -> str:
    return f"GTMI-{year}-{seq:06d}"


# Postgres names the constraint, SQLite names the columns.
_GTMI_CONFLICT_MARKERS = (
    "uq_request_gtmi_seq",
    "uq_request_gtmi_number",
    "requests.gtmi_seq",
    "requests.gtmi_number",
)


def is_gtmi_conflict(exc: IntegrityError) -> bool:
    message = str(exc.orig)
    return any(marker in message for marker in _GTMI_CONFLICT_MARKERS)


class SequenceAllocator:
    """Per tenant/year document numbers with optimistic retries.

    ``run`` owns the transaction: the work callable reads the current maximum,
    writes the request carrying ``max + 1`` and the unique constraint on
    ``(tenant_id, gtmi_year, gtmi_seq)`` decides which concurrent writer wins.
    The loser rolls back and runs the whole unit of work again.
    """

    def __init__(self, db: Session, max_attempts: int | None = None) -> None:
        self.db = db
        self.max_attempts = max_attempts or settings.GTMI_MAX_ATTEMPTS

    def allocate(self, tenant_id: str, year: int) -> int:
        current = (
            self.db.query(func.max(models.Request.gtmi_seq))
            .filter(models.Request.tenant_id == tenant_id, models.Request.gtmi_year == year)
            .scalar()
        )
        return (current or 0) + 1

    def assign(self, request: models.Request, year: int | None = None) -> str:
        year = year or datetime.utcnow().year
        seq = self.allocate(request.tenant_id, year)
        request.gtmi_year = year
        request.gtmi_seq = seq
        request.gtmi_number = format_gtmi_number(year, seq)
        self.db.add(request)
        try:
            self.db.flush()
        except IntegrityError as exc:
            if not is_gtmi_conflict(exc):
                raise
            raise SequenceConflict(request.tenant_id, year, seq) from exc
        return request.gtmi_number

    def run(self, work: Callable[[], T | Failure]) -> T | Failure:
        for attempt in range(1, self.max_attempts + 1):
            try:
                result = work()
            except SequenceConflict as exc:
                self.db.rollback()
                logger.debug(
                    "gtmi conflict tenant=%s year=%s seq=%s attempt=%s", exc.tenant_id, exc.year, exc.seq, attempt
                )
                continue
            except Exception:
                self.db.rollback()
                raise
            if isinstance(result, Failure):
                self.db.rollback()
                return result
            try:
                self.db.commit()
            except IntegrityError as exc:
                self.db.rollback()
                if not is_gtmi_conflict(exc):
                    raise
                logger.debug("gtmi conflict on commit attempt=%s", attempt)
                continue
            return result

        logger.warning("gtmi sequence exhausted attempts=%s", self.max_attempts)
        return conflict(
            "gtmi_sequence_exhausted",
            "Nao foi possivel gerar numero GTMI unico",
            attempts=self.max_attempts,
        )
