import json
from datetime import date
from decimal import Decimal

import pytest

from class_generation import filter_new_candidates, generate_classes_from_start_date
from errors import DataIntegrityError, RecordNotFound, ScheduleValidationError
from extensions import db
from models import ClassSession, Student
from reconciliation import add_months, reconcile_schedule, refresh_student_classes
from tests.conftest import MONDAY_16_17, WEDNESDAY_18_19


def _materialize(store, student, schedule, start, end):
    candidates = generate_classes_from_start_date(store, student.id, student.course_id, schedule, start, end)
    for payload in filter_new_candidates(candidates, store.list_classes(student_id=student.id)):
        store.create_class(payload)


@pytest.fixture
def enrolled(store, make_course, make_student):
    """Student enrolled 2024-01-15 with a Monday slot, classes materialized through 2024-02-05."""
    course = make_course(price="25.00")
    student = make_student(course, [MONDAY_16_17], start_date=date(2024, 1, 15))
    _materialize(store, student, [MONDAY_16_17], date(2024, 1, 15), date(2024, 2, 5))
    return student


def test_add_months_clamps_to_month_end():
    assert add_months(date(2024, 1, 24), 1) == date(2024, 2, 24)
    assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
    assert add_months(date(2024, 12, 15), 1) == date(2025, 1, 15)


def test_schedule_edit_example(store, enrolled):
    result = reconcile_schedule(store, enrolled.id, [WEDNESDAY_18_19], date(2024, 1, 24))

    rows = store.list_classes(student_id=enrolled.id)
    mondays = [r.date for r in rows if r.start_time == "16:00"]
    wednesdays = [r.date for r in rows if r.start_time == "18:00"]

    assert mondays == [date(2024, 1, 15), date(2024, 1, 22)]
    # 2024-01-24 is itself a Wednesday; default horizon is one month
    assert wednesdays == [date(2024, 1, 24), date(2024, 1, 31), date(2024, 2, 7),
                          date(2024, 2, 14), date(2024, 2, 21)]
    assert result.deleted == 2
    assert result.created == 5
    assert result.skipped == 0


def test_history_is_left_exactly_as_it_was(store, enrolled):
    past = store.list_classes(student_id=enrolled.id, date_to=date(2024, 1, 23))
    past[0].status = "completed"
    past[0].payment_status = "paid"
    past[0].price = Decimal("30.00")
    past[1].status = "cancelled"
    db.session.commit()
    before = {r.id: r.to_dict() for r in store.list_classes(student_id=enrolled.id, date_to=date(2024, 1, 23))}

    reconcile_schedule(store, enrolled.id, [WEDNESDAY_18_19], date(2024, 1, 24))
    reconcile_schedule(store, enrolled.id, [], date(2024, 1, 24))

    db.session.expire_all()
    after = {r.id: r.to_dict() for r in store.list_classes(student_id=enrolled.id, date_to=date(2024, 1, 23))}
    assert after == before


def test_manual_classes_are_not_touched(store, enrolled):
    manual_id = store.create_class({
        "student_id": enrolled.id, "course_id": enrolled.course_id, "date": date(2024, 1, 30),
        "start_time": "10:00", "end_time": "11:00", "duration": 60, "price": Decimal("25.00"),
        "is_recurring": False,
    })

    reconcile_schedule(store, enrolled.id, [WEDNESDAY_18_19], date(2024, 1, 24))

    assert db.session.get(ClassSession, manual_id) is not None


def test_schedule_is_persisted_as_legacy_json(store, enrolled):
    reconcile_schedule(store, enrolled.id, [WEDNESDAY_18_19, MONDAY_16_17], date(2024, 1, 24))
    stored = json.loads(db.session.get(Student, enrolled.id).fixed_schedule)
    assert [s["day_of_week"] for s in stored] == [3, 1]
    assert stored[0]["start_time"] == "18:00"


def test_overlapping_schedule_is_rejected_before_any_write(store, enrolled):
    before = [r.to_dict() for r in store.list_classes(student_id=enrolled.id)]
    overlapping = [MONDAY_16_17, {"day_of_week": 1, "start_time": "16:30", "end_time": "17:30"}]

    with pytest.raises(ScheduleValidationError):
        reconcile_schedule(store, enrolled.id, overlapping, date(2024, 1, 24))

    assert [r.to_dict() for r in store.list_classes(student_id=enrolled.id)] == before
    assert json.loads(db.session.get(Student, enrolled.id).fixed_schedule) == [MONDAY_16_17]


def test_empty_schedule_only_clears_the_future(store, enrolled):
    result = reconcile_schedule(store, enrolled.id, [], date(2024, 1, 24))

    assert result.deleted == 2
    assert result.created == 0
    assert [r.date for r in store.list_classes(student_id=enrolled.id)] == [date(2024, 1, 15), date(2024, 1, 22)]
    assert db.session.get(Student, enrolled.id).fixed_schedule is None


def test_class_dated_today_is_regenerated(store, enrolled):
    # 2024-01-29 is a Monday with an existing class
    result = reconcile_schedule(store, enrolled.id, [MONDAY_16_17], date(2024, 1, 29), date(2024, 2, 5))
    assert result.deleted == 2
    assert result.created == 2
    dates = [r.date for r in store.list_classes(student_id=enrolled.id)]
    assert dates == [date(2024, 1, 15), date(2024, 1, 22), date(2024, 1, 29), date(2024, 2, 5)]


def test_explicit_horizon_is_respected(store, enrolled):
    reconcile_schedule(store, enrolled.id, [WEDNESDAY_18_19], date(2024, 1, 24), date(2024, 3, 31))
    rows = store.list_classes(student_id=enrolled.id, date_from=date(2024, 1, 24))
    assert rows[-1].date == date(2024, 3, 27)
    assert all(r.date <= date(2024, 3, 31) for r in rows)


def test_unknown_student(store):
    with pytest.raises(RecordNotFound):
        reconcile_schedule(store, 4242, [MONDAY_16_17], date(2024, 1, 24))


def test_course_without_valid_price_aborts_before_deleting(store, make_course, make_student):
    course = make_course(price="-1.00")
    student = make_student(course, [MONDAY_16_17])
    store.create_class({
        "student_id": student.id, "course_id": course.id, "date": date(2024, 1, 29),
        "start_time": "16:00", "end_time": "17:00", "duration": 60, "price": Decimal("0"),
        "is_recurring": True,
    })

    with pytest.raises(DataIntegrityError):
        reconcile_schedule(store, student.id, [WEDNESDAY_18_19], date(2024, 1, 24))

    assert len(store.list_classes(student_id=student.id)) == 1


def test_refresh_recovers_after_interrupted_update(store, enrolled):
    # Simulate a crash after the delete step of a schedule update
    for row in store.list_classes(student_id=enrolled.id, is_recurring=True, date_from=date(2024, 1, 24)):
        store.delete_class(row.id)

    result = refresh_student_classes(store, enrolled.id, date(2024, 1, 24), date(2024, 2, 12))

    assert result.deleted == 0
    assert result.created == 3
    dates = [r.date for r in store.list_classes(student_id=enrolled.id)]
    assert dates == [date(2024, 1, 15), date(2024, 1, 22), date(2024, 1, 29), date(2024, 2, 5), date(2024, 2, 12)]


def test_regeneration_starts_at_enrollment(store, make_course, make_student):
    student = make_student(make_course(), [MONDAY_16_17], start_date=date(2024, 2, 12))

    result = reconcile_schedule(store, student.id, [MONDAY_16_17], date(2024, 1, 24))

    assert result.created == 2
    assert [r.date for r in store.list_classes(student_id=student.id)] == [date(2024, 2, 12), date(2024, 2, 19)]


def test_enrollment_after_horizon_generates_nothing(store, make_course, make_student):
    student = make_student(make_course(), [MONDAY_16_17], start_date=date(2024, 3, 4))

    result = reconcile_schedule(store, student.id, [WEDNESDAY_18_19], date(2024, 1, 24))
    refreshed = refresh_student_classes(store, student.id, date(2024, 1, 24))

    assert result.created == 0
    assert refreshed.created == 0
    assert store.list_classes(student_id=student.id) == []
    assert json.loads(db.session.get(Student, student.id).fixed_schedule) == [
        {"day_of_week": 3, "start_time": "18:00", "end_time": "19:00", "subject": "Physics",
         "course_id": None, "price": None}]
