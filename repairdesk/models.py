from datetime import datetime

from flask_login import UserMixin
from sqlalchemy import func, or_, select
from sqlalchemy.orm import column_property
from werkzeug.security import check_password_hash, generate_password_hash

from repairdesk import db

JOB_CARD_STATUSES = ('pending', 'in-progress', 'completed')

# Allowed status edges. Every status may currently move to any other.
STATUS_TRANSITIONS = {
    'pending':     frozenset(JOB_CARD_STATUSES),
    'in-progress': frozenset(JOB_CARD_STATUSES),
    'completed':   frozenset(JOB_CARD_STATUSES),
}


def _iso(value):
    return value.isoformat() if value else None


class User(UserMixin, db.Model):
    __tablename__ = 'users'
    id            = db.Column(db.Integer, primary_key=True)
    username      = db.Column(db.String(80), unique=True, nullable=False)
    name          = db.Column(db.String(120))
    password_hash = db.Column(db.String(256), nullable=False)
    created_at    = db.Column(db.DateTime, default=datetime.utcnow)

    job_cards = db.relationship('JobCard', backref='created_by', lazy=True)

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id':        self.id,
            'username':  self.username,
            'name':      self.name,
            'createdAt': _iso(self.created_at),
        }

    def __repr__(self):
        return f'<User {self.username}>'


class Counter(db.Model):
    """Named sequence; ``value`` is the last number handed out."""
    __tablename__ = 'counters'
    name  = db.Column(db.String(50), primary_key=True)
    value = db.Column(db.Integer, nullable=False, default=0)


class Customer(db.Model):
    __tablename__ = 'customers'
    id             = db.Column(db.Integer, primary_key=True)
    name           = db.Column(db.String(200), nullable=False)
    mobile_number  = db.Column(db.String(20), unique=True, nullable=False)
    address        = db.Column(db.Text)
    aadhaar_number = db.Column(db.String(20))
    created_at     = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at     = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    job_cards = db.relationship('JobCard', backref='customer', lazy=True)

    def to_dict(self):
        return {
            'id':            self.id,
            'name':          self.name,
            'mobileNumber':  self.mobile_number,
            'address':       self.address,
            'aadhaarNumber': self.aadhaar_number,
            'visitCount':    self.visit_count,
            'createdAt':     _iso(self.created_at),
            'updatedAt':     _iso(self.updated_at),
        }

    def summary(self):
        return {
            'id':           self.id,
            'name':         self.name,
            'mobileNumber': self.mobile_number,
            'visitCount':   self.visit_count,
        }


class JobCard(db.Model):
    __tablename__ = 'job_cards'
    id             = db.Column(db.Integer, primary_key=True, autoincrement=False)
    bill_no        = db.Column(db.Integer, unique=True, nullable=False)
    customer_name  = db.Column(db.String(200), nullable=False)
    mobile_number  = db.Column(db.String(20), nullable=False, index=True)
    address        = db.Column(db.Text)
    aadhaar_number = db.Column(db.String(20))
    complaint      = db.Column(db.Text, nullable=False)
    model          = db.Column(db.String(200), nullable=False)

    # Device condition at intake
    is_on       = db.Column(db.Boolean, nullable=False, default=False)
    is_off      = db.Column(db.Boolean, nullable=False, default=False)
    has_battery = db.Column(db.Boolean, nullable=False, default=False)
    has_door    = db.Column(db.Boolean, nullable=False, default=False)
    has_sim     = db.Column(db.Boolean, nullable=False, default=False)
    has_slot    = db.Column(db.Boolean, nullable=False, default=False)

    admission_fees = db.Column(db.Float)
    estimate       = db.Column(db.Float)
    advance        = db.Column(db.Float)
    final_amount   = db.Column(db.Float)

    status      = db.Column(db.String(20), nullable=False, default='pending')
    created_at  = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at  = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    user_id     = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    customer_id = db.Column(
        db.Integer,
        db.ForeignKey('customers.id', ondelete='SET NULL'),
        nullable=True,
    )

    def to_dict(self, include_customer=False):
        creator = self.created_by
        data = {
            'id':            self.id,
            'billNo':        self.bill_no,
            'customerName':  self.customer_name,
            'mobileNumber':  self.mobile_number,
            'address':       self.address,
            'aadhaarNumber': self.aadhaar_number,
            'complaint':     self.complaint,
            'model':         self.model,
            'isOn':          self.is_on,
            'isOff':         self.is_off,
            'hasBattery':    self.has_battery,
            'hasDoor':       self.has_door,
            'hasSim':        self.has_sim,
            'hasSlot':       self.has_slot,
            'admissionFees': self.admission_fees,
            'estimate':      self.estimate,
            'advance':       self.advance,
            'finalAmount':   self.final_amount,
            'status':        self.status,
            'createdAt':     _iso(self.created_at),
            'updatedAt':     _iso(self.updated_at),
            'userId':        self.user_id,
            'customerId':    self.customer_id,
            'createdBy': (
                {'name': creator.name, 'username': creator.username}
                if creator else
                {'name': 'Unknown User', 'username': 'unknown'}
            ),
        }
        if include_customer:
            data['customer'] = self.customer.summary() if self.customer else None
        return data

    def __repr__(self):
        return f'<JobCard {self.bill_no} {self.status}>'


# Visit count is derived from job cards linked by id or sharing the mobile number.
Customer.visit_count = column_property(
    select(func.count(JobCard.id))
    .where(
        or_(
            JobCard.customer_id == Customer.id,
            JobCard.mobile_number == Customer.mobile_number,
        )
    )
    .correlate_except(JobCard)
    .scalar_subquery()
)
