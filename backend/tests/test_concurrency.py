"""
Concurrency tests against a file-backed SQLite database.

Each worker thread gets its own Session and SessionService; they share the
lock registry the way request handlers in one process do.
"""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import sessionmaker

from cuebill_api.models import ConsumableItem, Invoice, PlaySession, PricingPolicy, VenueTable
from cuebill_api.services.domain import SessionService
from cuebill_api.services.locks import KeyedLockRegistry
from shared.config.constants import PricingKind, SessionStatus, TableStatus
from shared.utils.exceptions import AppException, InvalidTransitionError, LockTimeoutError, ResourceBusyError
from tests.conftest import FakeClock, RecordingPublisher, seed_venue


@pytest.fixture
def shared_db(file_engine_factory):
    engine = file_engine_factory()
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    with factory() as db:
        venue = seed_venue(db)
    return factory, venue


@pytest.fixture
def shared_locks():
    return KeyedLockRegistry(timeout_seconds=10)


def run_concurrently(count, fn):
    """Run fn(index) on ``count`` threads released together; return results or exceptions."""
    barrier = threading.Barrier(count)

    def _worker(index):
        barrier.wait()
        try:
            return fn(index)
        except AppException as exc:
            return exc

    with ThreadPoolExecutor(max_workers=count) as pool:
        return list(pool.map(_worker, range(count)))


def make_service(factory, locks, clock=None):
    db = factory()
    return db, SessionService(db, clock=clock or FakeClock(), publisher=RecordingPublisher(), locks=locks)


class TestConcurrentAttach:

    def test_all_attaches_succeed_and_subtotal_is_exact(self, shared_db, shared_locks):
        factory, venue = shared_db
        db, service = make_service(factory, shared_locks)
        session = service.start_session(venue.organization_id, venue.table_id, venue.capped_service_id, guest_name="Ana")
        db.close()

        def attach(_):
            worker_db, worker = make_service(factory, shared_locks)
            with worker_db:
                return worker.attach_order(session.id, venue.organization_id, venue.cola_id, 1)

        results = run_concurrently(8, attach)

        assert not [r for r in results if isinstance(r, Exception)]
        with factory() as check:
            stored = check.get(PlaySession, session.id)
            assert stored.consumable_subtotal_cents == 8 * 500
            assert stored.total_amount_cents == 8 * 500
            assert check.get(ConsumableItem, venue.cola_id).stock_quantity == 2

    def test_stock_is_never_oversold(self, shared_db, shared_locks):
        factory, venue = shared_db
        db, service = make_service(factory, shared_locks)
        sessions = [
            service.start_session(venue.organization_id, table_id, venue.capped_service_id, guest_name="Ana")
            for table_id in (venue.table_id, venue.other_table_id)
        ]
        db.close()

        def attach(index):
            worker_db, worker = make_service(factory, shared_locks)
            with worker_db:
                return worker.attach_order(sessions[index % 2].id, venue.organization_id, venue.nachos_id, 3)

        results = run_concurrently(6, attach)

        succeeded = [r for r in results if not isinstance(r, Exception)]
        assert len(succeeded) == 3  # 10 in stock, 3 per order
        with factory() as check:
            assert check.get(ConsumableItem, venue.nachos_id).stock_quantity == 1
            total = check.scalar(select(func.sum(PlaySession.consumable_subtotal_cents)))
            assert total == 3 * 3 * 2000


class TestConcurrentStart:

    def test_only_one_start_wins_a_table(self, shared_db, shared_locks):
        factory, venue = shared_db

        def start(index):
            worker_db, worker = make_service(factory, shared_locks)
            with worker_db:
                return worker.start_session(
                    venue.organization_id, venue.table_id, venue.capped_service_id, guest_name=f"Guest {index}"
                )

        results = run_concurrently(5, start)

        winners = [r for r in results if isinstance(r, PlaySession)]
        assert len(winners) == 1
        assert all(isinstance(r, ResourceBusyError) for r in results if r not in winners)
        with factory() as check:
            assert check.scalar(select(func.count(PlaySession.id))) == 1
            assert check.get(VenueTable, venue.table_id).status == TableStatus.OCCUPIED


class TestConcurrentClose:

    def test_invoice_numbers_are_distinct(self, shared_db, shared_locks):
        factory, venue = shared_db
        with factory() as db:
            for label in ("T-03", "T-04", "T-05"):
                table = VenueTable(organization_id=venue.organization_id, label=label, status=TableStatus.AVAILABLE)
                db.add(table)
                db.flush()
                db.add(
                    PricingPolicy(
                        table_id=table.id,
                        service_type_id=venue.fixed_service_id,
                        kind=PricingKind.FIXED,
                        fixed_amount_cents=10000,
                    )
                )
            db.commit()
            table_ids = list(db.scalars(select(VenueTable.id).order_by(VenueTable.id)))

        db, service = make_service(factory, shared_locks)
        session_ids = [
            service.start_session(venue.organization_id, table_id, venue.fixed_service_id, guest_name="Ana").id
            for table_id in table_ids
        ]
        db.close()

        def close(index):
            worker_db, worker = make_service(factory, shared_locks)
            with worker_db:
                return worker.close_session(session_ids[index], venue.organization_id)

        results = run_concurrently(len(session_ids), close)

        assert not [r for r in results if isinstance(r, Exception)]
        numbers = [r.invoice.number for r in results]
        assert len(set(numbers)) == len(session_ids)
        with factory() as check:
            assert check.scalar(select(func.count(Invoice.id))) == len(session_ids)

    def test_attach_racing_close_is_either_billed_or_rejected(self, shared_db, shared_locks):
        factory, venue = shared_db
        db, service = make_service(factory, shared_locks)
        session = service.start_session(venue.organization_id, venue.table_id, venue.fixed_service_id, guest_name="Ana")
        db.close()

        def work(index):
            worker_db, worker = make_service(factory, shared_locks)
            with worker_db:
                if index == 0:
                    return worker.close_session(session.id, venue.organization_id)
                return worker.attach_order(session.id, venue.organization_id, venue.cola_id, 1)

        results = run_concurrently(6, work)

        attached = [r for r in results[1:] if not isinstance(r, Exception)]
        rejected = [r for r in results[1:] if isinstance(r, Exception)]
        assert all(isinstance(r, InvalidTransitionError) for r in rejected)
        with factory() as check:
            stored = check.get(PlaySession, session.id)
            invoice = check.scalar(select(Invoice).where(Invoice.session_id == session.id))
            assert stored.status == SessionStatus.COMPLETED
            assert stored.consumable_subtotal_cents == len(attached) * 500
            assert invoice.subtotal_cents == 10000 + len(attached) * 500
            assert check.get(ConsumableItem, venue.cola_id).stock_quantity == 10 - len(attached)


class TestKeyedLockRegistry:

    def test_timeout_raises_retryable_error(self):
        registry = KeyedLockRegistry(timeout_seconds=0.05)
        held = threading.Event()
        release = threading.Event()

        def holder():
            with registry.hold("session:1"):
                held.set()
                release.wait(5)

        thread = threading.Thread(target=holder)
        thread.start()
        held.wait(5)
        try:
            with pytest.raises(LockTimeoutError) as exc_info:
                with registry.hold("session:1"):
                    pass
            assert exc_info.value.retryable is True
            assert exc_info.value.status_code == 503
        finally:
            release.set()
            thread.join()

        assert registry.lock_count == 0

    def test_different_keys_do_not_block(self):
        registry = KeyedLockRegistry(timeout_seconds=0.05)
        with registry.hold("session:1"):
            with registry.hold("session:2"):
                assert registry.lock_count == 2
        assert registry.lock_count == 0
