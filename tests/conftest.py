import json
import os
import sys
from datetime import date
from decimal import Decimal

# Override env vars before config is imported
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret"
os.environ.setdefault("SCHOOL_TIMEZONE", "Europe/Madrid")

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import pytest

from app import create_app
from extensions import db
from models import Course, Student
from record_store import SQLAlchemyRecordStore

import blueprints.main
import blueprints.finance
import blueprints.students
import blueprints.tracking
import cli_commands


@pytest.fixture
def app():
    """Flask app bound to a fresh in-memory database, with an app context pushed."""
    flask_app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
        "RECONCILE_HORIZON_MONTHS": 1,
    })
    with flask_app.app_context():
        yield flask_app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def store(app):
    return SQLAlchemyRecordStore()


@pytest.fixture
def freeze_today(monkeypatch):
    """Pin the date the routes and CLI commands treat as today."""
    def _freeze(day):
        for module in (blueprints.main, blueprints.finance, blueprints.students,
                       blueprints.tracking, cli_commands):
            monkeypatch.setattr(module, "school_today", lambda: day)
        return day
    return _freeze


@pytest.fixture
def make_course(app):
    def _make(name="Maths", price="25.00", shared_class_price=None):
        course = Course(
            name=name,
            price=Decimal(price) if price is not None else None,
            shared_class_price=Decimal(shared_class_price) if shared_class_price else None,
        )
        db.session.add(course)
        db.session.commit()
        return course
    return _make


@pytest.fixture
def make_student(app):
    def _make(course, schedule=None, start_date=date(2024, 1, 15), first_name="Lucia",
              last_name="Garcia", has_shared_pricing=False):
        student = Student(
            first_name=first_name,
            last_name=last_name,
            course_id=course.id,
            start_date=start_date,
            fixed_schedule=json.dumps(schedule) if schedule else None,
            has_shared_pricing=has_shared_pricing,
        )
        db.session.add(student)
        db.session.commit()
        return student
    return _make


MONDAY_16_17 = {"day_of_week": 1, "start_time": "16:00", "end_time": "17:00", "subject": "Algebra"}
WEDNESDAY_18_19 = {"day_of_week": 3, "start_time": "18:00", "end_time": "19:00", "subject": "Physics"}
