from flask import Blueprint, request, jsonify, current_app
from extensions import db
from models import Student, ClassSession
from record_store import SQLAlchemyRecordStore
from class_tracking import (
    generate_missing_classes, generate_weekly_classes, compare_classes,
    create_manual_class, apply_class_update,
)
from config import school_today

tracking_bp = Blueprint('tracking', __name__)


def _target_students(data):
    student_id = data.get('student_id')
    if student_id:
        return [Student.query.get_or_404(student_id)]
    return Student.query.order_by(Student.id).all()


@tracking_bp.route('/classes', methods=['GET'])
def list_classes():
    student_id = request.args.get('student_id', type=int)
    recurring = request.args.get('is_recurring')
    is_recurring = None if recurring is None else recurring.lower() in ('1', 'true', 'yes')
    classes = SQLAlchemyRecordStore().list_classes(student_id=student_id, is_recurring=is_recurring)
    return jsonify([c.to_dict() for c in classes])


@tracking_bp.route('/generate-missing', methods=['POST'])
def generate_missing():
    data = request.get_json(silent=True) or {}
    store = SQLAlchemyRecordStore()
    today = school_today()

    results = []
    for student in _target_students(data):
        try:
            results.append(generate_missing_classes(store, student, today))
        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Generating missing classes failed for student {student.id}: {e}", exc_info=True)
            results.append({'student_id': student.id, 'classes_created': 0, 'error': str(e)})

    return jsonify({
        'success': True,
        'total_classes_created': sum(r['classes_created'] for r in results),
        'students_processed': len(results),
        'results': results,
    })


@tracking_bp.route('/generate-weekly', methods=['POST'])
def generate_weekly():
    summary = generate_weekly_classes(SQLAlchemyRecordStore(), school_today())
    summary['success'] = True
    return jsonify(summary)


@tracking_bp.route('/compare', methods=['POST'])
def compare():
    data = request.get_json(silent=True) or {}
    store = SQLAlchemyRecordStore()
    today = school_today()
    month = data.get('month')

    try:
        results = [compare_classes(store, s, today, month) for s in _target_students(data)]
    except ValueError as e:
        return jsonify({'error': str(e)}), 400

    compared = [r for r in results if r['status'] == 'success']
    return jsonify({
        'success': True,
        'results': results,
        'summary': {
            'total_students': len(results),
            'students_with_issues': sum(1 for r in compared if r['missing_classes'] or r['extra_classes']),
            'total_missing_classes': sum(r['missing_classes'] for r in compared),
            'total_extra_classes': sum(r['extra_classes'] for r in compared),
        },
    })


@tracking_bp.route('/classes', methods=['POST'])
def create_class():
    data = request.get_json(silent=True) or {}
    missing = [f for f in ('student_id', 'date', 'start_time', 'end_time') if not data.get(f)]
    if missing:
        return jsonify({'error': 'Missing required fields', 'fields': missing}), 400

    student = Student.query.get_or_404(data['student_id'])
    class_id = create_manual_class(SQLAlchemyRecordStore(), student, data)
    return jsonify(db.session.get(ClassSession, class_id).to_dict()), 201


@tracking_bp.route('/classes/<int:class_id>', methods=['PATCH'])
def update_class(class_id):
    cls = ClassSession.query.get_or_404(class_id)
    data = request.get_json(silent=True) or {}

    fields = ('status', 'payment_status', 'payment_notes', 'subject')
    if not any(f in data for f in fields):
        return jsonify({'error': 'No fields to update'}), 400

    apply_class_update(
        cls,
        status=data.get('status'),
        payment_status=data.get('payment_status'),
        payment_notes=data.get('payment_notes'),
        subject=data.get('subject'),
        confirm=bool(data.get('confirm')),
    )
    db.session.commit()
    return jsonify(cls.to_dict())
