from decimal import Decimal, InvalidOperation

from flask import Blueprint, request, jsonify
from extensions import db
from models import Course

admin_bp = Blueprint('admin', __name__)


def _parse_price(value, default=None):
    if value in (None, ''):
        return default
    price = Decimal(str(value))
    if price < 0:
        raise InvalidOperation(value)
    return price


@admin_bp.route('/courses')
def list_courses():
    courses = Course.query.order_by(Course.name).all()
    return jsonify([c.to_dict() for c in courses])


@admin_bp.route('/courses', methods=['POST'])
def save_course():
    data = request.get_json(silent=True) or {}
    course_id = data.get('id')

    if course_id:
        course = Course.query.get_or_404(course_id)
    else:
        if not data.get('name'):
            return jsonify({'error': 'name is required'}), 400
        course = Course()
        db.session.add(course)

    try:
        if 'price' in data or not course_id:
            course.price = _parse_price(data.get('price'), Decimal('0'))
        if 'shared_class_price' in data:
            course.shared_class_price = _parse_price(data.get('shared_class_price'))
    except (InvalidOperation, ValueError):
        db.session.rollback()
        return jsonify({'error': 'prices must be non-negative numbers'}), 400

    if data.get('name'):
        course.name = data['name']
    if 'duration_default' in data:
        course.duration_default = int(data['duration_default']) if data['duration_default'] else 60
    if 'color' in data:
        course.color = data['color']
    if 'is_active' in data:
        course.is_active = bool(data['is_active'])

    # Existing classes keep the price they were created with
    db.session.commit()
    return jsonify(course.to_dict()), 200 if course_id else 201
