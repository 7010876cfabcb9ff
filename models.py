from extensions import db
from datetime import datetime

CLASS_STATUSES = ('scheduled', 'completed', 'cancelled')
PAYMENT_STATUSES = ('unpaid', 'paid')


class Course(db.Model):
    __tablename__ = 'courses'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    # Hourly rate
    price = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    shared_class_price = db.Column(db.Numeric(10, 2), nullable=True)
    duration_default = db.Column(db.Integer, default=60)
    color = db.Column(db.String(20), default='#3B82F6')
    is_active = db.Column(db.Boolean, default=True)

    students = db.relationship('Student', backref='course', lazy=True)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'price': float(self.price) if self.price is not None else None,
            'shared_class_price': float(self.shared_class_price) if self.shared_class_price is not None else None,
            'duration_default': self.duration_default,
            'color': self.color,
            'is_active': self.is_active,
        }


class Student(db.Model):
    __tablename__ = 'students'

    id = db.Column(db.Integer, primary_key=True)
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(200))
    phone = db.Column(db.String(30))
    course_id = db.Column(db.Integer, db.ForeignKey('courses.id'), nullable=False)

    start_date = db.Column(db.Date, nullable=True)
    # Weekly template: JSON array of time slots (day_of_week, start_time, end_time, ...)
    fixed_schedule = db.Column(db.Text, nullable=True)
    has_shared_pricing = db.Column(db.Boolean, default=False)

    # Fiscal data
    dni = db.Column(db.String(20))
    address = db.Column(db.String(300))
    city = db.Column(db.String(100))
    postal_code = db.Column(db.String(10))

    created_at = db.Column(db.DateTime, default=datetime.now)
    updated_at = db.Column(db.DateTime, default=datetime.now, onupdate=datetime.now)

    # Classes go away with the student
    classes = db.relationship('ClassSession', backref='student', lazy=True, cascade='all, delete-orphan')

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}"

    def to_dict(self):
        return {
            'id': self.id,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'email': self.email,
            'phone': self.phone,
            'course_id': self.course_id,
            'start_date': self.start_date.isoformat() if self.start_date else None,
            'fixed_schedule': self.fixed_schedule,
            'has_shared_pricing': self.has_shared_pricing,
            'dni': self.dni,
            'address': self.address,
            'city': self.city,
            'postal_code': self.postal_code,
        }


class ClassSession(db.Model):
    __tablename__ = 'classes'

    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(db.Integer, db.ForeignKey('students.id'), nullable=False, index=True)
    course_id = db.Column(db.Integer, db.ForeignKey('courses.id'), nullable=False)

    date = db.Column(db.Date, nullable=False, index=True)
    start_time = db.Column(db.String(5), nullable=False)
    end_time = db.Column(db.String(5), nullable=False)
    duration = db.Column(db.Integer, nullable=False)
    # 1 = Monday ... 7 = Sunday
    day_of_week = db.Column(db.Integer)

    # Snapshot taken when the class is created
    price = db.Column(db.Numeric(10, 2), nullable=False, default=0)

    status = db.Column(db.String(20), default='scheduled', nullable=False)
    payment_status = db.Column(db.String(20), default='unpaid', nullable=False)
    payment_date = db.Column(db.DateTime, nullable=True)
    payment_notes = db.Column(db.Text, default='')

    is_recurring = db.Column(db.Boolean, default=False, nullable=False)
    subject = db.Column(db.String(200), default='')
    notes = db.Column(db.Text, default='')

    created_at = db.Column(db.DateTime, default=datetime.now)

    course = db.relationship('Course', lazy=True)

    def to_dict(self):
        return {
            'id': self.id,
            'student_id': self.student_id,
            'course_id': self.course_id,
            'date': self.date.isoformat(),
            'start_time': self.start_time,
            'end_time': self.end_time,
            'duration': self.duration,
            'day_of_week': self.day_of_week,
            'price': float(self.price) if self.price is not None else None,
            'status': self.status,
            'payment_status': self.payment_status,
            'payment_date': self.payment_date.isoformat() if self.payment_date else None,
            'payment_notes': self.payment_notes,
            'is_recurring': self.is_recurring,
            'subject': self.subject,
            'notes': self.notes,
        }
