from flask import Blueprint, request, jsonify, current_app
from extensions import db
from models import Course, Student
from record_store import SQLAlchemyRecordStore
from class_generation import generate_classes_from_start_date, filter_new_candidates, to_date
from reconciliation import reconcile_schedule, refresh_student_classes, default_horizon
from schedule import validate_schedule, dump_fixed_schedule, parse_fixed_schedule
from errors import ScheduleValidationError
from config import school_today

students_bp = Blueprint('students', __name__)

REQUIRED_FIELDS = ('first_name', 'last_name', 'course_id', 'start_date')
OPTIONAL_FIELDS = ('email', 'phone', 'dni', 'address', 'city', 'postal_code')


def _horizon(today, data):
    if data.get('horizon_end'):
        return to_date(data['horizon_end'])
    return default_horizon(today, current_app.config['RECONCILE_HORIZON_MONTHS'])


@students_bp.route('/', methods=['GET'])
def list_students():
    students = Student.query.order_by(Student.last_name, Student.first_name).all()
    return jsonify([s.to_dict() for s in students])


@students_bp.route('/', methods=['POST'])
def create_student():
    data = request.get_json(silent=True) or {}

    missing = [f for f in REQUIRED_FIELDS if not data.get(f)]
    if missing:
        return jsonify({'error': 'Missing required fields', 'fields': missing}), 400

    try:
        start_date = to_date(data['start_date'])
    except ValueError:
        return jsonify({'error': 'start_date must be YYYY-MM-DD'}), 400

    today = school_today()
    # Students are enrolled from today or a past date, never ahead of time
    if start_date > today:
        return jsonify({'error': 'start_date cannot be in the future'}), 400

    course = db.session.get(Course, data['course_id'])
    if course is None:
        return jsonify({'error': 'Course not found'}), 400

    raw_schedule = data.get('fixed_schedule') or data.get('schedule')
    slots = validate_schedule(parse_fixed_schedule(raw_schedule))

    student = Student(
        first_name=data['first_name'],
        last_name=data['last_name'],
        course_id=course.id,
        start_date=start_date,
        fixed_schedule=dump_fixed_schedule(slots),
        has_shared_pricing=bool(data.get('has_shared_pricing')),
    )
    for field in OPTIONAL_FIELDS:
        setattr(student, field, data.get(field))
    db.session.add(student)
    db.session.commit()
    current_app.logger.info(f"Student {student.id} created with {len(slots)} weekly slots")

    # Back-fill every class from the enrollment date up to today
    classes_created = 0
    if slots:
        store = SQLAlchemyRecordStore()
        candidates = generate_classes_from_start_date(
            store, student.id, course.id, slots, start_date, today, today=today)
        existing = store.list_classes(student_id=student.id)
        for payload in filter_new_candidates(candidates, existing):
            store.create_class(payload)
            classes_created += 1
        if not candidates:
            current_app.logger.warning(f"No classes generated for new student {student.id}")

    return jsonify({'student': student.to_dict(), 'classes_created': classes_created}), 201


@students_bp.route('/<int:student_id>', methods=['GET'])
def get_student(student_id):
    student = Student.query.get_or_404(student_id)
    return jsonify(student.to_dict())


@students_bp.route('/<int:student_id>/schedule', methods=['GET'])
def get_schedule(student_id):
    student = Student.query.get_or_404(student_id)
    try:
        schedule = parse_fixed_schedule(student.fixed_schedule)
    except ScheduleValidationError as e:
        current_app.logger.error(f"Cannot parse fixed_schedule of student {student_id}: {e}")
        return jsonify({'error': 'Stored schedule could not be parsed'}), 500
    return jsonify(schedule)


@students_bp.route('/<int:student_id>/schedule', methods=['PUT'])
def update_schedule(student_id):
    Student.query.get_or_404(student_id)
    data = request.get_json(silent=True) or {}
    schedule = data.get('schedule')
    if not isinstance(schedule, list):
        return jsonify({'error': 'schedule must be a list'}), 400

    today = school_today()
    try:
        horizon_end = _horizon(today, data)
    except ValueError:
        return jsonify({'error': 'horizon_end must be YYYY-MM-DD'}), 400

    result = reconcile_schedule(SQLAlchemyRecordStore(), student_id, schedule, today, horizon_end)
    return jsonify({
        'message': 'Schedule updated',
        'schedule_updated': True,
        'classes_deleted': result.deleted,
        'classes_created': result.created,
    })


@students_bp.route('/<int:student_id>/refresh', methods=['POST'])
def refresh_classes(student_id):
    Student.query.get_or_404(student_id)
    data = request.get_json(silent=True) or {}
    today = school_today()
    try:
        horizon_end = _horizon(today, data)
    except ValueError:
        return jsonify({'error': 'horizon_end must be YYYY-MM-DD'}), 400

    result = refresh_student_classes(SQLAlchemyRecordStore(), student_id, today, horizon_end)
    return jsonify({
        'success': True,
        'classes_deleted': result.deleted,
        'classes_created': result.created,
    })
