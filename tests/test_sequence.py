import threading

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from app.core.errors import ErrorKind, Failure
from app.db import models
from app.db.immutability import register_immutability_listeners
from app.inventory.requests import new_request
from app.inventory.sequence import SequenceAllocator, format_gtmi_number

from conftest import seed_tenant, seed_user


def _create(db, allocator, actor, year=2026):
    def _work():
        request = new_request(actor, actor, "STANDARD", "Material")
        allocator.assign(request, year=year)
        return request

    return allocator.run(_work)


def test_format_gtmi_number():
    assert format_gtmi_number(2026, 1) == "GTMI-2026-000001"
    assert format_gtmi_number(2026, 123456) == "GTMI-2026-123456"


def test_sequential_numbers_per_tenant_and_year(db_session, world):
    allocator = SequenceAllocator(db_session)
    first = _create(db_session, allocator, world.user)
    second = _create(db_session, allocator, world.user)
    next_year = _create(db_session, allocator, world.user, year=2027)

    assert (first.gtmi_seq, second.gtmi_seq) == (1, 2)
    assert second.gtmi_number == "GTMI-2026-000002"
    assert next_year.gtmi_number == "GTMI-2027-000001"


def test_tenants_have_independent_sequences(db_session, world):
    other_tenant, _ = seed_tenant(db_session, name="Junta de Freguesia")
    outsider = seed_user(db_session, other_tenant, "joao")
    allocator = SequenceAllocator(db_session)

    _create(db_session, allocator, world.user)
    _create(db_session, allocator, world.user)
    theirs = _create(db_session, allocator, outsider)

    assert theirs.gtmi_number == "GTMI-2026-000001"


def test_stale_read_is_retried(db_session, world, monkeypatch):
    allocator = SequenceAllocator(db_session)
    _create(db_session, allocator, world.user)

    # first attempt reuses a taken number, as a concurrent writer would see it
    stale = iter([1])
    real_allocate = SequenceAllocator.allocate

    def _allocate(self, tenant_id, year):
        value = next(stale, None)
        return value if value is not None else real_allocate(self, tenant_id, year)

    monkeypatch.setattr(SequenceAllocator, "allocate", _allocate)
    request = _create(db_session, allocator, world.user)

    assert not isinstance(request, Failure)
    assert request.gtmi_seq == 2
    numbers = [row.gtmi_number for row in db_session.query(models.Request).order_by(models.Request.gtmi_seq).all()]
    assert numbers == ["GTMI-2026-000001", "GTMI-2026-000002"]


def test_exhausted_attempts_return_conflict(db_session, world, monkeypatch):
    allocator = SequenceAllocator(db_session, max_attempts=3)
    _create(db_session, allocator, world.user)
    calls = []

    def _always_stale(self, tenant_id, year):
        calls.append(year)
        return 1

    monkeypatch.setattr(SequenceAllocator, "allocate", _always_stale)
    result = _create(db_session, allocator, world.user)

    assert isinstance(result, Failure)
    assert result.kind == ErrorKind.CONFLICT
    assert result.code == "gtmi_sequence_exhausted"
    assert len(calls) == 3
    assert db_session.query(models.Request).count() == 1


def test_failure_from_work_rolls_back(db_session, world):
    allocator = SequenceAllocator(db_session)

    def _work():
        request = new_request(world.user, world.user, "STANDARD", "Material")
        allocator.assign(request, year=2026)
        return Failure(ErrorKind.VALIDATION_FAILED, "nope", "Nao")

    result = allocator.run(_work)

    assert isinstance(result, Failure)
    assert db_session.query(models.Request).count() == 0


def test_unrelated_integrity_error_is_not_retried(db_session, world):
    allocator = SequenceAllocator(db_session)
    attempts = []

    def _work():
        attempts.append(1)
        request = new_request(world.user, world.user, "STANDARD", "Material")
        allocator.assign(request, year=2026)
        db_session.add(models.Product(tenant_id=world.tenant.id, name="Duplicado", sku="LAP-01"))
        return request

    with pytest.raises(IntegrityError):
        allocator.run(_work)

    assert len(attempts) == 1
    assert db_session.query(models.Request).count() == 0


def test_concurrent_allocations_are_gapless(tmp_path):
    register_immutability_listeners()
    engine = create_engine(
        f"sqlite:///{tmp_path / 'seq.db'}", connect_args={"check_same_thread": False, "timeout": 30}
    )
    models.Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    setup = SessionLocal()
    tenant, service = seed_tenant(setup)
    user_id = seed_user(setup, tenant, "ana", service=service).id
    setup.close()

    workers = 8
    barrier = threading.Barrier(workers)
    seqs, errors = [], []
    lock = threading.Lock()

    def _worker():
        db = SessionLocal()
        try:
            actor = db.get(models.User, user_id)
            allocator = SequenceAllocator(db, max_attempts=20)
            barrier.wait()
            result = _create(db, allocator, actor)
            with lock:
                if isinstance(result, Failure):
                    errors.append(result.code)
                else:
                    seqs.append(result.gtmi_seq)
        except Exception as exc:
            with lock:
                errors.append(repr(exc))
        finally:
            db.close()

    threads = [threading.Thread(target=_worker) for _ in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    engine.dispose()

    assert errors == []
    assert sorted(seqs) == list(range(1, workers + 1))
