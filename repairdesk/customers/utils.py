# repairdesk/customers/utils.py

"""Customer lookups and job card linking."""

import logging

from sqlalchemy import or_

from repairdesk import db
from repairdesk.errors import ValidationError
from repairdesk.listing import DEFAULT_PAGE_SIZE, Page, clamp_page
from repairdesk.models import Customer, JobCard

logger = logging.getLogger(__name__)

# wire name -> column
CUSTOMER_FIELDS = {
    'name':          'name',
    'mobileNumber':  'mobile_number',
    'address':       'address',
    'aadhaarNumber': 'aadhaar_number',
}


def customer_fields(data) -> dict:
    values = {}
    for key, col in CUSTOMER_FIELDS.items():
        if key in data:
            value = data[key]
            if value is not None:
                value = str(value).strip() or None
            values[col] = value
    return values


def query_customers(search=None, page=1, page_size=DEFAULT_PAGE_SIZE) -> Page:
    query = Customer.query
    term = (search or '').strip()
    if term:
        query = query.filter(or_(
            Customer.name.icontains(term, autoescape=True),
            Customer.mobile_number.icontains(term, autoescape=True),
            Customer.address.icontains(term, autoescape=True),
            Customer.aadhaar_number.icontains(term, autoescape=True),
        ))
    total = query.count()
    page = clamp_page(page, page_size, total)
    rows = (
        query.order_by(Customer.updated_at.desc(), Customer.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return Page(items=rows, total_count=total, page=page, page_size=page_size)


def job_cards_for(customer: Customer) -> list:
    """Job cards linked by id or sharing the customer's mobile number."""
    return JobCard.query.filter(or_(
        JobCard.customer_id == customer.id,
        JobCard.mobile_number == customer.mobile_number,
    )).all()


def link_job_cards(customer: Customer) -> int:
    """Attach unlinked job cards carrying this customer's mobile number."""
    linked = (
        JobCard.query
        .filter(JobCard.customer_id.is_(None))
        .filter(JobCard.mobile_number == customer.mobile_number)
        .update({JobCard.customer_id: customer.id}, synchronize_session=False)
    )
    if linked:
        logger.info('Linked %s job card(s) to customer %s', linked, customer.id)
    return linked


def mobile_taken(mobile_number, exclude_id=None) -> bool:
    query = Customer.query.filter(Customer.mobile_number == mobile_number)
    if exclude_id is not None:
        query = query.filter(Customer.id != exclude_id)
    return db.session.query(query.exists()).scalar()


def create_customer(data) -> Customer:
    values = customer_fields(data)
    missing = [k for k in ('name', 'mobileNumber') if not values.get(CUSTOMER_FIELDS[k])]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")
    if mobile_taken(values['mobile_number']):
        raise ValidationError('Customer with this mobile number already exists')

    customer = Customer(**values)
    db.session.add(customer)
    db.session.flush()
    link_job_cards(customer)
    db.session.commit()
    return customer


def update_customer(customer: Customer, data) -> Customer:
    values = customer_fields(data)
    for key in ('name', 'mobileNumber'):
        col = CUSTOMER_FIELDS[key]
        if col in values and not values[col]:
            raise ValidationError(f'{key} cannot be empty')
    new_mobile = values.get('mobile_number')
    if new_mobile and new_mobile != customer.mobile_number and mobile_taken(new_mobile, customer.id):
        raise ValidationError('Mobile number already in use by another customer')

    for col, value in values.items():
        setattr(customer, col, value)
    db.session.flush()
    link_job_cards(customer)
    db.session.commit()
    return customer


def delete_customer(customer: Customer) -> None:
    """Detach job cards, then remove the customer."""
    JobCard.query.filter(JobCard.customer_id == customer.id).update(
        {JobCard.customer_id: None}, synchronize_session=False
    )
    db.session.delete(customer)
    db.session.commit()


def reconcile_customers() -> list:
    """Relink every customer's job cards and report visit counts.

    Returns ``[(customer, linked, visit_count), ...]``.
    """
    report = []
    for customer in Customer.query.order_by(Customer.id).all():
        linked = link_job_cards(customer)
        report.append((customer, linked))
    db.session.commit()
    return [(c, linked, c.visit_count) for c, linked in report]
