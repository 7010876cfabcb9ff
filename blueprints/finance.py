from flask import Blueprint, request, jsonify
from record_store import SQLAlchemyRecordStore
from class_tracking import monthly_report
from config import school_today

finance_bp = Blueprint('finance', __name__)


@finance_bp.route('/monthly-report')
def index():
    today = school_today()
    selected_month = request.args.get('month', today.month, type=int)
    selected_year = request.args.get('year', today.year, type=int)
    student_id = request.args.get('student_id', type=int)

    if not 1 <= selected_month <= 12:
        return jsonify({'error': 'month must be between 1 and 12'}), 400

    report = monthly_report(SQLAlchemyRecordStore(), selected_year, selected_month, student_id)
    return jsonify(report)
