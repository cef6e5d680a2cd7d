"""
Concurrent requests for one teacher: racing creates, and status or payment
changes interleaved with other writers.

Runs against a file-backed SQLite store so each worker has its own
connection and session, as separate requests would.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import date
from decimal import Decimal
import threading

import pytest
from sqlalchemy.orm import sessionmaker

from tests.factories.booking_builders import booking_request, make_user
from tutorbook.core.enums import CancelledBy, PaymentStatus, RoleName
from tutorbook.core.exceptions import (
    BookingConflictException,
    ConflictException,
    InvalidTransitionException,
    ValidationException,
)
from tutorbook.database import Base, build_engine
from tutorbook.domain.booking_lifecycle import BookingStatus
from tutorbook.models.booking import Booking
from tutorbook.services.booking_service import BookingService
from tutorbook.services.payment_status_service import PaymentStatusService

DAY = date(2025, 7, 10)


@pytest.fixture
def file_session_factory(tmp_path):
    engine = build_engine(f"sqlite+pysqlite:///{tmp_path / 'race.db'}")
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)
    engine.dispose()


@pytest.fixture
def participants(file_session_factory):
    session = file_session_factory()
    try:
        teacher = make_user(
            session,
            name="Race Teacher",
            email="race-teacher@example.com",
            role=RoleName.TEACHER,
            hourly_rate=Decimal("40.00"),
        )
        students = [
            make_user(
                session,
                name=f"Student {i}",
                email=f"student{i}@example.com",
                role=RoleName.STUDENT,
            )
            for i in range(8)
        ]
        return teacher.id, [s.id for s in students]
    finally:
        session.close()


def _race(file_session_factory, teacher_id, requests):
    barrier = threading.Barrier(len(requests))

    def attempt(request):
        session = file_session_factory()
        try:
            barrier.wait()
            try:
                BookingService(session).create_booking(request)
                return "created"
            except BookingConflictException as exc:
                return exc.code
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=len(requests)) as pool:
        return list(pool.map(attempt, requests))


def test_same_slot_only_one_wins(file_session_factory, participants):
    teacher_id, student_ids = participants
    requests = [booking_request(sid, teacher_id, booking_date=DAY, start_time="10:00") for sid in student_ids]

    outcomes = _race(file_session_factory, teacher_id, requests)

    assert outcomes.count("created") == 1
    assert set(outcomes) <= {"created", "BOOKING_CONFLICT", "BOOKING_BUSY"}


def test_overlapping_slots_only_one_wins(file_session_factory, participants):
    teacher_id, student_ids = participants
    starts = ["10:00", "10:15", "10:30", "10:45", "10:05", "10:20", "10:35", "10:50"]
    requests = [
        booking_request(sid, teacher_id, booking_date=DAY, start_time=start, duration=60)
        for sid, start in zip(student_ids, starts)
    ]

    outcomes = _race(file_session_factory, teacher_id, requests)

    assert outcomes.count("created") == 1
    session = file_session_factory()
    try:
        assert session.query(Booking).filter(Booking.teacher_id == teacher_id).count() == 1
    finally:
        session.close()


def test_disjoint_slots_all_succeed(file_session_factory, participants):
    teacher_id, student_ids = participants
    requests = [
        booking_request(sid, teacher_id, booking_date=DAY, start_time=f"{9 + i:02d}:00")
        for i, sid in enumerate(student_ids)
    ]

    outcomes = _race(file_session_factory, teacher_id, requests)

    assert outcomes == ["created"] * len(requests)


def _seed_booking(file_session_factory, teacher_id, student_id, start_time="14:00"):
    session = file_session_factory()
    try:
        booking = BookingService(session).create_booking(
            booking_request(student_id, teacher_id, booking_date=DAY, start_time=start_time)
        )
        return booking.id
    finally:
        session.close()


def _load(file_session_factory, booking_id):
    session = file_session_factory()
    try:
        return session.get(Booking, booking_id)
    finally:
        session.close()


def _active_slots(file_session_factory, teacher_id):
    session = file_session_factory()
    try:
        rows = (
            session.query(Booking)
            .filter(
                Booking.teacher_id == teacher_id,
                Booking.status.in_(["pending", "confirmed", "rescheduled"]),
            )
            .order_by(Booking.start_time)
            .all()
        )
        return [(b.start_time, b.end_time, b.status) for b in rows]
    finally:
        session.close()


def test_confirm_read_before_cancel_cannot_revive_it(file_session_factory, participants):
    teacher_id, student_ids = participants
    booking_id = _seed_booking(file_session_factory, teacher_id, student_ids[0])

    teacher_session = file_session_factory()
    student_session = file_session_factory()
    try:
        teacher_service = BookingService(teacher_session)
        # The teacher's request has already read the booking as pending
        assert teacher_service.get_booking_for_user(booking_id, teacher_id).status == "pending"

        student_service = BookingService(student_session)
        student_service.update_status(booking_id, student_ids[0], BookingStatus.CANCELLED)
        student_service.create_booking(
            booking_request(student_ids[1], teacher_id, booking_date=DAY, start_time="14:30")
        )

        with pytest.raises(InvalidTransitionException):
            teacher_service.update_status(booking_id, teacher_id, BookingStatus.CONFIRMED)
    finally:
        teacher_session.close()
        student_session.close()

    original = _load(file_session_factory, booking_id)
    assert original.status == "cancelled"
    assert original.confirmed_at is None
    assert _active_slots(file_session_factory, teacher_id) == [("14:30", "15:30", "pending")]


def test_reschedule_read_before_cancel_is_refused(file_session_factory, participants):
    teacher_id, student_ids = participants
    booking_id = _seed_booking(file_session_factory, teacher_id, student_ids[0])

    mover_session = file_session_factory()
    canceller_session = file_session_factory()
    try:
        mover = BookingService(mover_session)
        assert mover.get_booking_for_user(booking_id, student_ids[0]).status == "pending"

        BookingService(canceller_session).update_status(
            booking_id, teacher_id, BookingStatus.CANCELLED
        )

        with pytest.raises(InvalidTransitionException):
            mover.reschedule(booking_id, student_ids[0], DAY, "16:00")
    finally:
        mover_session.close()
        canceller_session.close()

    original = _load(file_session_factory, booking_id)
    assert (original.status, original.start_time) == ("cancelled", "14:00")
    assert _active_slots(file_session_factory, teacher_id) == []


def test_stale_write_is_rejected_not_applied(file_session_factory, participants):
    teacher_id, student_ids = participants
    booking_id = _seed_booking(file_session_factory, teacher_id, student_ids[0])

    stale_session = file_session_factory()
    fresh_session = file_session_factory()
    try:
        stale = stale_session.get(Booking, booking_id)
        fresh = fresh_session.get(Booking, booking_id)
        fresh.cancel(CancelledBy.STUDENT, "Cannot make it")
        fresh_session.commit()

        stale.confirm()
        with pytest.raises(ConflictException) as exc_info:
            BookingService(stale_session).flush_or_conflict("booking")
        stale_session.rollback()
    finally:
        stale_session.close()
        fresh_session.close()

    assert exc_info.value.code == "STALE_WRITE"
    assert _load(file_session_factory, booking_id).status == "cancelled"


def test_refund_is_not_overwritten_by_a_stale_payment_update(file_session_factory, participants):
    teacher_id, student_ids = participants
    booking_id = _seed_booking(file_session_factory, teacher_id, student_ids[0])

    collaborator_a = file_session_factory()
    collaborator_b = file_session_factory()
    try:
        PaymentStatusService(collaborator_a).update_payment_status(booking_id, PaymentStatus.PAID)
        assert collaborator_a.get(Booking, booking_id).payment_status == "paid"

        PaymentStatusService(collaborator_b).update_payment_status(
            booking_id, PaymentStatus.REFUNDED
        )

        # Session A still holds the booking as paid; the move is judged on the committed row
        with pytest.raises(ValidationException) as exc_info:
            PaymentStatusService(collaborator_a).update_payment_status(
                booking_id, PaymentStatus.FAILED
            )
    finally:
        collaborator_a.close()
        collaborator_b.close()

    assert exc_info.value.code == "INVALID_PAYMENT_TRANSITION"
    assert _load(file_session_factory, booking_id).payment_status == "refunded"


def _run_together(*calls):
    barrier = threading.Barrier(len(calls))

    def run(call):
        barrier.wait()
        try:
            call()
            return "ok"
        except (InvalidTransitionException, BookingConflictException) as exc:
            return exc.code

    with ThreadPoolExecutor(max_workers=len(calls)) as pool:
        return list(pool.map(run, calls))


def _in_own_session(file_session_factory, action):
    def call():
        session = file_session_factory()
        try:
            action(BookingService(session))
        finally:
            session.close()

    return call


@pytest.mark.parametrize("attempt", range(3))
def test_confirm_and_cancel_race_ends_cancelled(file_session_factory, participants, attempt):
    teacher_id, student_ids = participants
    booking_id = _seed_booking(file_session_factory, teacher_id, student_ids[0])

    outcomes = _run_together(
        _in_own_session(
            file_session_factory,
            lambda svc: svc.update_status(booking_id, teacher_id, BookingStatus.CONFIRMED),
        ),
        _in_own_session(
            file_session_factory,
            lambda svc: svc.update_status(booking_id, student_ids[0], BookingStatus.CANCELLED),
        ),
    )

    # Either order is legal; a confirm can never land on top of the cancel
    assert outcomes[1] == "ok"
    assert outcomes[0] in {"ok", "INVALID_TRANSITION"}
    final = _load(file_session_factory, booking_id)
    assert final.status == "cancelled"
    assert final.cancelled_by == "student"


@pytest.mark.parametrize("attempt", range(3))
def test_reschedule_and_cancel_race_ends_cancelled(file_session_factory, participants, attempt):
    teacher_id, student_ids = participants
    booking_id = _seed_booking(file_session_factory, teacher_id, student_ids[0])

    outcomes = _run_together(
        _in_own_session(
            file_session_factory,
            lambda svc: svc.reschedule(booking_id, student_ids[0], DAY, "17:00"),
        ),
        _in_own_session(
            file_session_factory,
            lambda svc: svc.update_status(booking_id, teacher_id, BookingStatus.CANCELLED),
        ),
    )

    assert outcomes[1] == "ok"
    assert outcomes[0] in {"ok", "INVALID_TRANSITION"}
    final = _load(file_session_factory, booking_id)
    assert final.status == "cancelled"
    expected_start = "17:00" if outcomes[0] == "ok" else "14:00"
    assert final.start_time == expected_start
    assert _active_slots(file_session_factory, teacher_id) == []
