"""
Persistence boundary for the schedule logic.

Class generation and reconciliation only talk to a RecordStore, so they can
run against any backend. SQLAlchemyRecordStore is the one the app uses.
"""

from abc import ABC, abstractmethod

from errors import RecordNotFound
from extensions import db
from models import Course, Student, ClassSession


class RecordStore(ABC):

    @abstractmethod
    def get_course_by_id(self, course_id):
        """Course or None."""

    @abstractmethod
    def get_student_by_id(self, student_id):
        """Student or None."""

    @abstractmethod
    def list_students(self, with_schedule=False):
        pass

    @abstractmethod
    def create_class(self, payload):
        """Insert one class row and return its id."""

    @abstractmethod
    def list_classes(self, student_id=None, is_recurring=None, date_from=None, date_to=None):
        """Classes matching every given filter, ordered by date and start time. Date bounds are inclusive."""

    @abstractmethod
    def delete_class(self, class_id):
        pass

    @abstractmethod
    def update_student(self, student_id, patch):
        pass


class SQLAlchemyRecordStore(RecordStore):
    """
    Flask-SQLAlchemy backed store. Every write commits on its own: there is
    no transaction spanning several rows.
    """

    def __init__(self, session=None):
        self.session = session or db.session

    def get_course_by_id(self, course_id):
        return self.session.get(Course, course_id)

    def get_student_by_id(self, student_id):
        return self.session.get(Student, student_id)

    def list_students(self, with_schedule=False):
        query = Student.query
        if with_schedule:
            query = query.filter(Student.fixed_schedule.isnot(None), Student.start_date.isnot(None))
        return query.order_by(Student.id).all()

    def create_class(self, payload):
        new_class = ClassSession(**payload)
        self.session.add(new_class)
        self.session.commit()
        return new_class.id

    def list_classes(self, student_id=None, is_recurring=None, date_from=None, date_to=None):
        query = ClassSession.query
        if student_id is not None:
            query = query.filter(ClassSession.student_id == student_id)
        if is_recurring is not None:
            query = query.filter(ClassSession.is_recurring == is_recurring)
        if date_from is not None:
            query = query.filter(ClassSession.date >= date_from)
        if date_to is not None:
            query = query.filter(ClassSession.date <= date_to)
        return query.order_by(ClassSession.date, ClassSession.start_time).all()

    def delete_class(self, class_id):
        existing = self.session.get(ClassSession, class_id)
        if existing is None:
            return
        self.session.delete(existing)
        self.session.commit()

    def update_student(self, student_id, patch):
        student = self.session.get(Student, student_id)
        if student is None:
            raise RecordNotFound(f"student {student_id} not found")
        for field, value in patch.items():
            setattr(student, field, value)
        self.session.commit()
