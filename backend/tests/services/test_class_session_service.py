"""Tests for ClassSessionService: scheduling and the session lifecycle."""

from datetime import datetime, timedelta, timezone

import pytest

from fitstudio.core.enums import RoleName
from fitstudio.core.exceptions import (
    ConflictException,
    ForbiddenException,
    InstructorConflictException,
    InvalidStateError,
    NotFoundException,
    ValidationException,
)
from fitstudio.models.booking import BookingStatus
from fitstudio.models.class_session import ClassSessionStatus

from conftest import new_id


class TestSchedule:
    def test_owner_schedules_a_session(self, class_session_service, staff_principal, clock):
        start = clock.now + timedelta(days=2)

        session = class_session_service.schedule(
            staff_principal(RoleName.OWNER),
            class_type_id=new_id(),
            location_id=new_id(),
            start_time=start,
            end_time=start + timedelta(minutes=45),
            capacity=12,
        )

        assert session.status == ClassSessionStatus.SCHEDULED.value
        assert session.spots_booked == 0
        assert session.available_spots == 12

    def test_end_must_follow_start(self, class_session_service, staff_principal, clock):
        with pytest.raises(ValidationException):
            class_session_service.schedule(
                staff_principal(),
                class_type_id=new_id(),
                location_id=new_id(),
                start_time=clock.now,
                end_time=clock.now,
                capacity=5,
            )

    def test_instructor_cannot_schedule(self, class_session_service, staff_principal, clock):
        with pytest.raises(ForbiddenException):
            class_session_service.schedule(
                staff_principal(RoleName.INSTRUCTOR),
                class_type_id=new_id(),
                location_id=new_id(),
                start_time=clock.now + timedelta(hours=1),
                end_time=clock.now + timedelta(hours=2),
                capacity=5,
            )

    def test_overlapping_class_for_same_instructor_is_rejected(
        self, class_session_service, staff_principal, session_factory
    ):
        instructor_id = new_id()
        existing = session_factory(starts_in=timedelta(days=1), instructor_id=instructor_id)

        with pytest.raises(InstructorConflictException) as exc_info:
            class_session_service.schedule(
                staff_principal(),
                class_type_id=new_id(),
                location_id=new_id(),
                instructor_id=instructor_id,
                start_time=existing.start_time + timedelta(minutes=30),
                end_time=existing.end_time + timedelta(minutes=30),
                capacity=8,
            )

        assert exc_info.value.code == "INSTRUCTOR_CONFLICT"
        assert exc_info.value.details["conflicting_class_session_id"] == existing.id

    def test_back_to_back_and_cancelled_classes_do_not_conflict(
        self, class_session_service, staff_principal, session_factory
    ):
        instructor_id = new_id()
        earlier = session_factory(starts_in=timedelta(days=1), instructor_id=instructor_id)
        session_factory(
            start_time=earlier.end_time,
            instructor_id=instructor_id,
            status=ClassSessionStatus.CANCELLED,
        )

        session = class_session_service.schedule(
            staff_principal(),
            class_type_id=new_id(),
            location_id=new_id(),
            instructor_id=instructor_id,
            start_time=earlier.end_time,
            end_time=earlier.end_time + timedelta(hours=1),
            capacity=8,
        )

        assert session.instructor_id == instructor_id

    def test_list_filters_by_tenant_status_and_window(
        self, class_session_service, staff_principal, session_factory, clock
    ):
        tomorrow = session_factory(starts_in=timedelta(days=1))
        next_week = session_factory(starts_in=timedelta(days=7))
        session_factory(starts_in=timedelta(days=2), status=ClassSessionStatus.CANCELLED)
        session_factory(tenant=new_id())

        listed = class_session_service.list(
            staff_principal(),
            status=ClassSessionStatus.SCHEDULED,
            starts_after=clock.now,
            starts_before=clock.now + timedelta(days=3),
        )

        assert [s.id for s in listed] == [tomorrow.id]
        assert next_week.id not in [s.id for s in listed]


class TestCapacity:
    def test_raising_capacity_promotes_waitlist_in_order(
        self,
        class_session_service,
        booking_service,
        member_factory,
        member_principal,
        staff_principal,
        session_factory,
        notifier,
    ):
        session = session_factory(capacity=1)
        booking_service.book(member_principal(member_factory()), session.id)
        waiting = [
            booking_service.book(member_principal(member_factory()), session.id) for _ in range(3)
        ]

        change = class_session_service.update_capacity(staff_principal(), session.id, 3)

        assert [b.id for b in change.promoted] == [waiting[0].id, waiting[1].id]
        assert change.session.capacity == 3
        assert change.session.spots_booked == 3
        assert notifier.of_type("booking.promoted") == [waiting[0].id, waiting[1].id]

    def test_capacity_below_booked_spots_is_rejected(
        self, class_session_service, staff_principal, session_factory
    ):
        session = session_factory(capacity=5, spots_booked=4)

        with pytest.raises(ConflictException):
            class_session_service.update_capacity(staff_principal(), session.id, 3)

    def test_capacity_of_started_session_cannot_change(
        self, class_session_service, staff_principal, session_factory
    ):
        session = session_factory(status=ClassSessionStatus.IN_PROGRESS)

        with pytest.raises(InvalidStateError):
            class_session_service.update_capacity(staff_principal(), session.id, 20)


class TestLifecycle:
    def test_instructor_starts_and_completes(
        self, class_session_service, staff_principal, session_factory
    ):
        session = session_factory()
        instructor = staff_principal(RoleName.INSTRUCTOR)

        assert class_session_service.start(instructor, session.id).status == "IN_PROGRESS"
        assert class_session_service.complete(instructor, session.id).status == "COMPLETED"

    def test_completed_session_cannot_restart(
        self, class_session_service, staff_principal, session_factory
    ):
        session = session_factory(status=ClassSessionStatus.COMPLETED)

        with pytest.raises(InvalidStateError):
            class_session_service.start(staff_principal(), session.id)

    def test_front_desk_cannot_start(self, class_session_service, staff_principal, session_factory):
        with pytest.raises(ForbiddenException):
            class_session_service.start(staff_principal(RoleName.FRONT_DESK), session_factory().id)

    def test_cancel_cancels_every_open_booking_without_promotion(
        self,
        class_session_service,
        booking_service,
        member_factory,
        member_principal,
        staff_principal,
        session_factory,
        notifier,
    ):
        session = session_factory(capacity=1)
        confirmed = booking_service.book(member_principal(member_factory()), session.id)
        waitlisted = booking_service.book(member_principal(member_factory()), session.id)
        notifier.events.clear()

        cancelled, affected = class_session_service.cancel(
            staff_principal(RoleName.ADMIN), session.id, reason="Instructor ill"
        )

        assert cancelled.status == ClassSessionStatus.CANCELLED.value
        assert cancelled.cancellation_reason == "Instructor ill"
        assert cancelled.spots_booked == 0
        assert {b.id for b in affected} == {confirmed.id, waitlisted.id}
        assert all(b.status == BookingStatus.CANCELLED.value for b in affected)
        assert notifier.of_type("booking.promoted") == []
        assert sorted(notifier.of_type("booking.cancelled")) == sorted([confirmed.id, waitlisted.id])

    def test_cancel_keeps_spots_of_checked_in_members(
        self,
        class_session_service,
        booking_service,
        member_factory,
        member_principal,
        staff_principal,
        session_factory,
    ):
        session = session_factory(capacity=2, starts_in=timedelta(minutes=20))
        arrived = booking_service.book(member_principal(member_factory()), session.id)
        pending = booking_service.book(member_principal(member_factory()), session.id)
        booking_service.check_in(staff_principal(), arrived.id)

        cancelled, affected = class_session_service.cancel(
            staff_principal(RoleName.ADMIN), session.id
        )

        assert [b.id for b in affected] == [pending.id]
        assert cancelled.spots_booked == 1
        repo = booking_service.booking_repository
        assert repo.get_by_id(arrived.id).status == BookingStatus.CHECKED_IN.value
        assert repo.get_by_id(pending.id).status == BookingStatus.CANCELLED.value

    def test_cancelled_session_cannot_be_cancelled_again(
        self, class_session_service, staff_principal, session_factory
    ):
        session = session_factory(status=ClassSessionStatus.CANCELLED)

        with pytest.raises(InvalidStateError):
            class_session_service.cancel(staff_principal(), session.id)

    def test_session_of_another_tenant_is_not_found(
        self, class_session_service, staff_principal, session_factory
    ):
        session = session_factory(tenant=new_id())

        with pytest.raises(NotFoundException):
            class_session_service.start(staff_principal(), session.id)


class TestNoShowReconciliation:
    def test_marks_remaining_confirmed_bookings(
        self,
        class_session_service,
        booking_service,
        member_factory,
        member_principal,
        staff_principal,
        session_factory,
        clock,
    ):
        session = session_factory(starts_in=timedelta(minutes=15), duration=timedelta(hours=1))
        attended = booking_service.book(member_principal(member_factory()), session.id)
        absent = booking_service.book(member_principal(member_factory()), session.id)
        booking_service.check_in(staff_principal(), attended.id)
        clock.advance(hours=2)

        no_shows = class_session_service.reconcile_no_shows(
            staff_principal(RoleName.INSTRUCTOR), session.id
        )

        assert [b.id for b in no_shows] == [absent.id]
        repo = booking_service.booking_repository
        assert repo.get_by_id(attended.id).status == BookingStatus.CHECKED_IN.value
        assert repo.get_by_id(absent.id).status == BookingStatus.NO_SHOW.value

    def test_reconciling_before_the_end_is_rejected(
        self, class_session_service, staff_principal, session_factory
    ):
        with pytest.raises(InvalidStateError):
            class_session_service.reconcile_no_shows(staff_principal(), session_factory().id)

    def test_reconciling_a_cancelled_session_is_rejected(
        self, class_session_service, staff_principal, session_factory, clock
    ):
        session = session_factory(status=ClassSessionStatus.CANCELLED)
        clock.advance(days=3)

        with pytest.raises(InvalidStateError):
            class_session_service.reconcile_no_shows(staff_principal(), session.id)


class TestRosterAndWaitlist:
    def test_roster_shows_confirmed_and_checked_in(
        self,
        class_session_service,
        booking_service,
        member_factory,
        member_principal,
        staff_principal,
        session_factory,
    ):
        session = session_factory(capacity=2, starts_in=timedelta(minutes=10))
        first = booking_service.book(member_principal(member_factory()), session.id)
        second = booking_service.book(member_principal(member_factory()), session.id)
        booking_service.book(member_principal(member_factory()), session.id)
        booking_service.check_in(staff_principal(), first.id)

        roster = class_session_service.roster(staff_principal(RoleName.FRONT_DESK), session.id)

        assert [b.id for b in roster] == [first.id, second.id]
        assert roster[0].member is not None

    def test_waitlist_positions_are_one_based(
        self,
        class_session_service,
        booking_service,
        member_factory,
        member_principal,
        staff_principal,
        session_factory,
    ):
        session = session_factory(capacity=1)
        booking_service.book(member_principal(member_factory()), session.id)
        waiting = [
            booking_service.book(member_principal(member_factory()), session.id) for _ in range(2)
        ]

        entries = class_session_service.waitlist(staff_principal(), session.id)

        assert [(e.booking.id, e.position) for e in entries] == [(waiting[0].id, 1), (waiting[1].id, 2)]

    def test_members_cannot_read_roster(
        self, class_session_service, member_factory, member_principal, session_factory
    ):
        with pytest.raises(ForbiddenException):
            class_session_service.roster(member_principal(member_factory()), session_factory().id)


class TestUpdate:
    def test_reschedule_keeps_bookings_and_moves_times(
        self,
        class_session_service,
        booking_service,
        member_factory,
        member_principal,
        staff_principal,
        session_factory,
        clock,
    ):
        session = session_factory(capacity=3)
        booking = booking_service.book(member_principal(member_factory()), session.id)
        new_start = clock.now + timedelta(days=3)

        change = class_session_service.update(
            staff_principal(),
            session.id,
            start_time=new_start,
            end_time=new_start + timedelta(minutes=50),
        )

        assert change.session.start_time == new_start
        assert change.session.end_time == new_start + timedelta(minutes=50)
        assert change.session.spots_booked == 1
        assert change.promoted == []
        assert booking_service.booking_repository.get_by_id(booking.id).status == "CONFIRMED"

    def test_moving_only_the_start_past_the_end_is_rejected(
        self, class_session_service, staff_principal, session_factory
    ):
        session = session_factory(duration=timedelta(hours=1))

        with pytest.raises(ValidationException):
            class_session_service.update(
                staff_principal(), session.id, start_time=session.end_time + timedelta(minutes=5)
            )

    def test_assigning_a_busy_instructor_is_rejected(
        self, class_session_service, staff_principal, session_factory
    ):
        instructor_id = new_id()
        busy = session_factory(starts_in=timedelta(days=1), instructor_id=instructor_id)
        session = session_factory(start_time=busy.start_time + timedelta(minutes=15))

        with pytest.raises(InstructorConflictException):
            class_session_service.update(staff_principal(), session.id, instructor_id=instructor_id)

    def test_session_does_not_conflict_with_itself(
        self, class_session_service, staff_principal, session_factory
    ):
        instructor_id = new_id()
        session = session_factory(instructor_id=instructor_id)

        change = class_session_service.update(
            staff_principal(),
            session.id,
            start_time=session.start_time + timedelta(minutes=15),
            end_time=session.end_time + timedelta(minutes=15),
        )

        assert change.session.instructor_id == instructor_id

    def test_raising_capacity_promotes_waitlist(
        self,
        class_session_service,
        booking_service,
        member_factory,
        member_principal,
        staff_principal,
        session_factory,
        notifier,
    ):
        session = session_factory(capacity=1)
        booking_service.book(member_principal(member_factory()), session.id)
        waiting = booking_service.book(member_principal(member_factory()), session.id)

        change = class_session_service.update(staff_principal(), session.id, capacity=2)

        assert [b.id for b in change.promoted] == [waiting.id]
        assert change.session.spots_booked == 2
        assert notifier.of_type("booking.promoted") == [waiting.id]

    def test_capacity_below_booked_spots_is_rejected(
        self, class_session_service, staff_principal, session_factory
    ):
        session = session_factory(capacity=5, spots_booked=4)

        with pytest.raises(ConflictException):
            class_session_service.update(staff_principal(), session.id, capacity=2)

    def test_only_scheduled_sessions_can_be_updated(
        self, class_session_service, staff_principal, session_factory
    ):
        session = session_factory(status=ClassSessionStatus.IN_PROGRESS)

        with pytest.raises(InvalidStateError):
            class_session_service.update(staff_principal(), session.id, capacity=20)

    def test_front_desk_cannot_update(self, class_session_service, staff_principal, session_factory):
        with pytest.raises(ForbiddenException):
            class_session_service.update(
                staff_principal(RoleName.FRONT_DESK), session_factory().id, capacity=20
            )


class TestWeeklySchedule:
    def test_defaults_to_the_week_starting_last_sunday(
        self, class_session_service, staff_principal, session_factory
    ):
        # 2026-03-02 is a Monday; the week runs from Sunday 2026-03-01.
        sunday = datetime(2026, 3, 1, tzinfo=timezone.utc)
        early_sunday = session_factory(start_time=sunday + timedelta(hours=7))
        saturday = session_factory(start_time=sunday + timedelta(days=6, hours=18))
        session_factory(start_time=sunday + timedelta(days=7, hours=7))
        session_factory(start_time=sunday - timedelta(hours=2))
        session_factory(
            start_time=sunday + timedelta(days=2), status=ClassSessionStatus.CANCELLED
        )

        week_start, sessions = class_session_service.weekly_schedule(staff_principal())

        assert week_start == sunday
        assert [s.id for s in sessions] == [early_sunday.id, saturday.id]

    def test_explicit_start_and_location(
        self, class_session_service, staff_principal, session_factory, clock
    ):
        studio = new_id()
        start = clock.now + timedelta(days=10)
        wanted = session_factory(start_time=start + timedelta(days=1), location_id=studio)
        session_factory(start_time=start + timedelta(days=1))

        week_start, sessions = class_session_service.weekly_schedule(
            staff_principal(), week_start=start, location_id=studio
        )

        assert week_start == start
        assert [s.id for s in sessions] == [wanted.id]
