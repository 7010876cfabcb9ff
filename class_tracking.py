"""
Class tracking: back-filling and auditing recurring classes, manual classes,
status/payment changes and the monthly summary.
"""

import calendar
import logging
from datetime import date, datetime, timedelta

from class_generation import (
    class_key, compute_class_price, filter_new_candidates,
    generate_classes_from_start_date, resolve_hourly_price, to_date,
)
from errors import ConfirmationRequired, DataIntegrityError, InvalidStatusTransition, ScheduleValidationError
from models import CLASS_STATUSES, PAYMENT_STATUSES
from schedule import calculate_duration, normalize_time, parse_fixed_schedule

logger = logging.getLogger(__name__)

# scheduled -> completed | cancelled; both are final
STATUS_TRANSITIONS = {
    'scheduled': {'completed', 'cancelled'},
    'completed': set(),
    'cancelled': set(),
}


def _student_result(student, **extra):
    result = {'student_id': student.id, 'student_name': student.full_name}
    result.update(extra)
    return result


def _load_schedule(student):
    try:
        return parse_fixed_schedule(student.fixed_schedule)
    except ScheduleValidationError as e:
        logger.error(f"Stored schedule of student {student.id} is unreadable: {e}")
        return []


def _insert_missing(store, student, candidates, date_from, date_to):
    existing = store.list_classes(student_id=student.id, date_from=date_from, date_to=date_to)
    fresh = filter_new_candidates(candidates, existing)
    for payload in fresh:
        store.create_class(payload)
    return fresh


def generate_missing_classes(store, student, today):
    """Back-fill every class the schedule implies from the student's start date up to today."""
    today = to_date(today)
    slots = _load_schedule(student)
    if not slots or not student.start_date:
        return _student_result(student, classes_created=0, message='No fixed schedule or start date')
    if student.start_date > today:
        return _student_result(student, classes_created=0, message='Start date is in the future')

    candidates = generate_classes_from_start_date(
        store, student.id, student.course_id, slots, student.start_date, today, today=today)
    fresh = _insert_missing(store, student, candidates, student.start_date, today)

    logger.info(f"Generated {len(fresh)} missing classes for student {student.id} up to {today}")
    return _student_result(student, classes_created=len(fresh),
                           message=f"{len(fresh)} classes created up to {today.isoformat()}")


def week_bounds(today):
    """Monday and Sunday of the week containing today."""
    monday = today - timedelta(days=today.weekday())
    return monday, monday + timedelta(days=6)


def generate_weekly_classes(store, today):
    """Make sure every student with a schedule has this week's classes."""
    today = to_date(today)
    week_start, week_end = week_bounds(today)
    logger.info(f"Generating classes for week {week_start} to {week_end}")

    results = []
    total_created = 0
    for student in store.list_students(with_schedule=True):
        if student.start_date > week_end:
            results.append(_student_result(student, classes_created=0, message='Start date is in the future'))
            continue

        slots = _load_schedule(student)
        if not slots:
            results.append(_student_result(student, classes_created=0, message='Empty or invalid fixed schedule'))
            continue

        candidates = generate_classes_from_start_date(
            store, student.id, student.course_id, slots,
            max(student.start_date, week_start), week_end, today=today)
        fresh = _insert_missing(store, student, candidates, week_start, week_end)
        total_created += len(fresh)
        results.append(_student_result(student, classes_created=len(fresh)))

    return {
        'week_start': week_start.isoformat(),
        'week_end': week_end.isoformat(),
        'total_classes_created': total_created,
        'students_processed': len(results),
        'results': results,
    }


def month_bounds(month):
    """'2024-02' -> (date(2024, 2, 1), date(2024, 2, 29))."""
    try:
        year, month_number = (int(part) for part in month.split('-'))
        last_day = calendar.monthrange(year, month_number)[1]
    except (ValueError, AttributeError, calendar.IllegalMonthError):
        raise ValueError(f"month must be YYYY-MM, got {month!r}") from None
    return date(year, month_number, 1), date(year, month_number, last_day)


def _serialize_candidate(candidate):
    data = dict(candidate)
    data['date'] = data['date'].isoformat()
    data['price'] = float(data['price'])
    return data


def compare_classes(store, student, today, month=None):
    """Expected recurring classes (from the schedule) against the rows actually stored."""
    today = to_date(today)
    slots = _load_schedule(student)
    if not slots or not student.start_date:
        return _student_result(student, status='skipped', message='No fixed schedule or start date')

    start_date, end_date = student.start_date, today
    if month:
        month_start, month_end = month_bounds(month)
        start_date = max(month_start, student.start_date)
        end_date = min(month_end, today)
    if start_date > end_date:
        return _student_result(student, status='skipped', message='Nothing to compare in this range')

    expected = generate_classes_from_start_date(
        store, student.id, student.course_id, slots, start_date, end_date, today=today)
    actual = store.list_classes(student_id=student.id, is_recurring=True,
                                date_from=start_date, date_to=end_date)

    expected_map = {class_key(c): c for c in expected}
    actual_map = {class_key(c): c for c in actual}

    missing = [c for key, c in expected_map.items() if key not in actual_map]
    extra = [c for key, c in actual_map.items() if key not in expected_map]

    return _student_result(
        student,
        status='success',
        date_range={'start_date': start_date.isoformat(), 'end_date': end_date.isoformat()},
        expected_classes=len(expected),
        actual_classes=len(actual),
        missing_classes=len(missing),
        extra_classes=len(extra),
        missing_classes_data=[_serialize_candidate(c) for c in missing],
        extra_classes_data=[c.to_dict() for c in extra],
    )


def create_manual_class(store, student, payload):
    """
    One-off class outside the weekly template. It is stored with
    is_recurring=False, so reconciliation never touches it.
    """
    try:
        class_date = to_date(payload.get('date'))
        start_time = normalize_time(payload.get('start_time'))
        end_time = normalize_time(payload.get('end_time'))
    except ValueError as e:
        raise ScheduleValidationError(f"invalid class data: {e}") from e

    duration = calculate_duration(start_time, end_time)
    if duration <= 0:
        raise ScheduleValidationError(f"class must end after it starts ({start_time}-{end_time})")

    course = store.get_course_by_id(student.course_id)
    if course is None:
        raise DataIntegrityError(f"course {student.course_id} of student {student.id} not found")
    price_per_hour = resolve_hourly_price(course, student)
    if price_per_hour is None:
        raise DataIntegrityError(f"course {course.id} has no valid price")

    class_id = store.create_class({
        'student_id': student.id,
        'course_id': course.id,
        'date': class_date,
        'day_of_week': class_date.isoweekday(),
        'start_time': start_time,
        'end_time': end_time,
        'duration': duration,
        'price': compute_class_price(duration, price_per_hour),
        'status': 'scheduled',
        'payment_status': 'unpaid',
        'payment_notes': '',
        'is_recurring': False,
        'subject': payload.get('subject') or '',
        'notes': payload.get('notes') or '',
    })
    logger.info(f"Created manual class {class_id} for student {student.id} on {class_date}")
    return class_id


def apply_class_update(cls, status=None, payment_status=None, payment_notes=None,
                       subject=None, confirm=False, now=None):
    """
    Apply an operator edit to a class row (the caller commits).

    Raises InvalidStatusTransition for unknown values or a move out of a final
    status, and ConfirmationRequired when cancelling a paid class without
    confirm=True.
    """
    if status is not None and status not in CLASS_STATUSES:
        raise InvalidStatusTransition(f"unknown class status {status!r}")
    if payment_status is not None and payment_status not in PAYMENT_STATUSES:
        raise InvalidStatusTransition(f"unknown payment status {payment_status!r}")

    if status is not None and status != cls.status:
        if status not in STATUS_TRANSITIONS[cls.status]:
            raise InvalidStatusTransition(f"cannot change class {cls.id} from {cls.status} to {status}")
        paid = (payment_status or cls.payment_status) == 'paid'
        if status == 'cancelled' and paid and not confirm:
            raise ConfirmationRequired(f"class {cls.id} is already paid; confirm to cancel it")
        if status == 'cancelled' and paid:
            logger.warning(f"Paid class {cls.id} of student {cls.student_id} cancelled after confirmation")
        cls.status = status

    if payment_status is not None and payment_status != cls.payment_status:
        cls.payment_status = payment_status
        cls.payment_date = (now or datetime.now()) if payment_status == 'paid' else None

    if payment_notes is not None:
        cls.payment_notes = payment_notes
    if subject is not None:
        cls.subject = subject
    return cls


def monthly_report(store, year, month, student_id=None):
    """Totals for one calendar month. Cancelled classes are counted but not billed."""
    first_day, last_day = month_bounds(f"{year}-{month:02d}")
    classes = store.list_classes(student_id=student_id, date_from=first_day, date_to=last_day)

    billable = [c for c in classes if c.status != 'cancelled']
    total = sum((c.price for c in billable), 0)
    paid_total = sum((c.price for c in billable if c.payment_status == 'paid'), 0)
    total_minutes = sum(c.duration for c in billable)

    by_status = {status: 0 for status in CLASS_STATUSES}
    for c in classes:
        by_status[c.status] = by_status.get(c.status, 0) + 1

    return {
        'year': year,
        'month': month,
        'student_id': student_id,
        'count_classes': len(billable),
        'by_status': by_status,
        'total_hours': round(total_minutes / 60, 2),
        'total': float(total),
        'paid': float(paid_total),
        'unpaid': float(total - paid_total),
        'recurring': sum(1 for c in billable if c.is_recurring),
        'manual': sum(1 for c in billable if not c.is_recurring),
    }
