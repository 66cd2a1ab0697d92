# repairdesk/job_cards/utils.py

"""Job card persistence helpers used by the job card blueprint."""

import logging

from sqlalchemy import String, cast, func, or_

from repairdesk import db
from repairdesk.errors import InvalidStatus, InvalidTransition, ValidationError
from repairdesk.listing import DEFAULT_PAGE_SIZE, STATUS_ALL, Page, clamp_page
from repairdesk.models import (
    JOB_CARD_STATUSES,
    STATUS_TRANSITIONS,
    Counter,
    Customer,
    JobCard,
)

logger = logging.getLogger(__name__)

BILL_COUNTER = 'job_card'

REQUIRED_FIELDS = ('customerName', 'mobileNumber', 'model', 'complaint')

# wire name -> column
TEXT_FIELDS = {
    'customerName':  'customer_name',
    'mobileNumber':  'mobile_number',
    'address':       'address',
    'aadhaarNumber': 'aadhaar_number',
    'complaint':     'complaint',
    'model':         'model',
}
FLAG_FIELDS = {
    'isOn':       'is_on',
    'isOff':      'is_off',
    'hasBattery': 'has_battery',
    'hasDoor':    'has_door',
    'hasSim':     'has_sim',
    'hasSlot':    'has_slot',
}
MONEY_FIELDS = {
    'admissionFees': 'admission_fees',
    'estimate':      'estimate',
    'advance':       'advance',
    'finalAmount':   'final_amount',
}


def _money(name, value):
    if value is None or value == '':
        return None
    if isinstance(value, bool):
        raise ValidationError(f'{name} must be a number')
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{name} must be a number') from None


def _flag(value):
    if isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 'yes', 'on')
    return bool(value)


def _text(value):
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def validate_status(status):
    if status not in JOB_CARD_STATUSES:
        raise InvalidStatus(status)
    return status


def business_fields(data) -> dict:
    """Map a JSON payload onto JobCard column values.

    Only keys present in ``data`` are returned, so the result doubles as a
    partial update.  Unknown keys are ignored.
    """
    values = {}
    for key, col in TEXT_FIELDS.items():
        if key in data:
            values[col] = _text(data[key])
    for key, col in FLAG_FIELDS.items():
        if key in data:
            values[col] = _flag(data[key])
    for key, col in MONEY_FIELDS.items():
        if key in data:
            values[col] = _money(key, data[key])
    if data.get('status'):
        values['status'] = validate_status(data['status'])
    return values


def find_customer_id(mobile_number):
    if not mobile_number:
        return None
    customer = Customer.query.filter_by(mobile_number=mobile_number).first()
    return customer.id if customer else None


def allocate_bill_number() -> int:
    """Reserve the next bill number inside the caller's transaction.

    The counter row is locked for the rest of the transaction on backends
    that support ``SELECT ... FOR UPDATE``.  On first use it is seeded from
    the highest existing job card id.
    """
    counter = db.session.get(Counter, BILL_COUNTER, with_for_update=True)
    if counter is None:
        current = db.session.query(func.max(JobCard.id)).scalar() or 0
        counter = Counter(name=BILL_COUNTER, value=current)
        db.session.add(counter)
    counter.value += 1
    db.session.flush()
    return counter.value


def create_job_card(data, user_id) -> JobCard:
    missing = [k for k in REQUIRED_FIELDS if not _text(data.get(k))]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    values = business_fields(data)
    values.setdefault('status', 'pending')

    number = allocate_bill_number()
    card = JobCard(
        id=number,
        bill_no=number,
        user_id=user_id,
        customer_id=find_customer_id(values['mobile_number']),
        **values,
    )
    db.session.add(card)
    db.session.commit()
    logger.info('Created job card %s (customer_id=%s)', card.bill_no, card.customer_id)
    return card


def update_job_card(card: JobCard, data) -> JobCard:
    values = business_fields(data)
    for key in REQUIRED_FIELDS:
        col = TEXT_FIELDS[key]
        if col in values and not values[col]:
            raise ValidationError(f'{key} cannot be empty')
    if 'status' in values:
        check_transition(card.status, values['status'])

    new_mobile = values.get('mobile_number')
    if new_mobile and new_mobile != card.mobile_number:
        customer_id = find_customer_id(new_mobile)
        if customer_id:
            values['customer_id'] = customer_id

    for col, value in values.items():
        setattr(card, col, value)
    db.session.commit()
    return card


def check_transition(current, target):
    validate_status(target)
    if target not in STATUS_TRANSITIONS.get(current, frozenset()):
        raise InvalidTransition(current, target)


def change_status(card: JobCard, status) -> JobCard:
    check_transition(card.status, status)
    previous = card.status
    card.status = status
    db.session.commit()
    logger.info('Job card %s status %s -> %s', card.bill_no, previous, status)
    return card


def search_filter(term):
    """Literal, case-insensitive substring match; LIKE wildcards are escaped."""
    return or_(
        cast(JobCard.bill_no, String).icontains(term, autoescape=True),
        JobCard.customer_name.icontains(term, autoescape=True),
        JobCard.mobile_number.icontains(term, autoescape=True),
        JobCard.model.icontains(term, autoescape=True),
    )


def query_job_cards(search=None, status=STATUS_ALL, page=1, page_size=DEFAULT_PAGE_SIZE, limit=None) -> Page:
    """Database-side filter, sort and slice.

    When ``limit`` exceeds ``page_size`` the first ``limit`` matches are
    returned from page 1 so callers can filter the bulk set themselves.
    The metadata then describes that bulk set as a single page.
    """
    query = JobCard.query
    term = (search or '').strip()
    if term:
        query = query.filter(search_filter(term))
    if status != STATUS_ALL:
        query = query.filter(JobCard.status == status)

    total = query.count()
    bulk = limit is not None and limit > page_size
    page = 1 if bulk else clamp_page(page, page_size, total)
    rows = (
        query.order_by(JobCard.created_at.desc(), JobCard.id.desc())
        .offset((page - 1) * page_size)
        .limit(limit if bulk else page_size)
        .all()
    )
    if bulk:
        # the bulk set is reported as one page of everything returned
        page_size = max(min(total, limit), 1)
    return Page(items=rows, total_count=total, page=page, page_size=page_size)
