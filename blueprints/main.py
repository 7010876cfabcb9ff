from datetime import timedelta
from collections import defaultdict

from flask import Blueprint, request, jsonify, current_app
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from extensions import db
from record_store import SQLAlchemyRecordStore
from class_generation import to_date
from config import school_today

main_bp = Blueprint('main', __name__)

WEEK_NAMES = ['Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday', 'Sunday']


@main_bp.route('/health')
def health_check():
    try:
        db.session.execute(text('SELECT 1'))
    except SQLAlchemyError as e:
        current_app.logger.error(f"Health check failed: {e}")
        return jsonify({'error': 'Database error'}), 500
    return 'ok', 200


@main_bp.route('/')
def planner():
    """Classes of one week (Monday to Sunday), grouped by day."""
    selected_date_str = request.args.get('date')
    try:
        selected = to_date(selected_date_str) if selected_date_str else school_today()
    except ValueError:
        return jsonify({'error': 'date must be YYYY-MM-DD'}), 400

    start_of_week = selected - timedelta(days=selected.weekday())
    end_of_week = start_of_week + timedelta(days=6)

    events = SQLAlchemyRecordStore().list_classes(date_from=start_of_week, date_to=end_of_week)

    grouped_events = defaultdict(list)
    for event in events:
        grouped_events[event.date].append(event)

    daily_planner = []
    current_day = start_of_week
    for i in range(7):
        daily_planner.append({
            'date': current_day.isoformat(),
            'label': f"{WEEK_NAMES[i]}, {current_day.strftime('%d/%m')}",
            'classes': [e.to_dict() for e in grouped_events.get(current_day, [])],
        })
        current_day += timedelta(days=1)

    total_expected = sum(e.price for e in events if e.status != 'cancelled')

    return jsonify({
        'week_start': start_of_week.isoformat(),
        'week_end': end_of_week.isoformat(),
        'days': daily_planner,
        'total_expected': float(total_expected),
    })
