# repairdesk/customers/routes.py

from flask import Blueprint, current_app, jsonify, request
from flask_login import login_required

from repairdesk import db
from repairdesk.listing import list_page, parse_paging
from repairdesk.models import Customer
from repairdesk.customers.utils import (
    create_customer,
    delete_customer,
    job_cards_for,
    query_customers,
    update_customer,
)

bp = Blueprint('customers', __name__)


@bp.before_request
@login_required
def require_login():
    pass


def _paging():
    return parse_paging(
        request.args,
        current_app.config['DEFAULT_PAGE_SIZE'],
        current_app.config['MAX_PAGE_SIZE'],
    )


def _load(customer_id):
    try:
        cid = int(customer_id)
    except ValueError:
        return None, (jsonify(error='Invalid customer ID'), 400)
    customer = db.session.get(Customer, cid)
    if customer is None:
        return None, (jsonify(error='Customer not found'), 404)
    return customer, None


def _json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else None


@bp.route('', methods=['GET'])
def list_customers():
    page, page_size = _paging()
    result = query_customers(request.args.get('search'), page, page_size)
    return jsonify(
        customers=[c.to_dict() for c in result.items],
        **result.meta(),
    )


@bp.route('', methods=['POST'])
def create():
    data = _json_body()
    if data is None:
        return jsonify(error='Expected a JSON object'), 400
    customer = create_customer(data)
    current_app.logger.info('Created customer %s (%s)', customer.id, customer.mobile_number)
    return jsonify(customer.to_dict()), 201


@bp.route('/<customer_id>', methods=['GET'])
def get_customer(customer_id):
    """
    Customer with a page of its job card history.
    Query: search, status, page, pageSize (filtered in memory).
    """
    customer, err = _load(customer_id)
    if err:
        return err
    page, page_size = _paging()
    history = list_page(
        job_cards_for(customer),
        search=request.args.get('search'),
        status=request.args.get('status'),
        page=page,
        page_size=page_size,
    )
    return jsonify(
        **customer.to_dict(),
        jobCards=[c.to_dict() for c in history.items],
        **history.meta(),
    )


@bp.route('/<customer_id>', methods=['PUT'])
def update(customer_id):
    customer, err = _load(customer_id)
    if err:
        return err
    data = _json_body()
    if data is None:
        return jsonify(error='Expected a JSON object'), 400
    customer = update_customer(customer, data)
    return jsonify(customer.to_dict())


@bp.route('/<customer_id>', methods=['DELETE'])
def delete(customer_id):
    customer, err = _load(customer_id)
    if err:
        return err
    current_app.logger.info('Deleting customer %s', customer.id)
    delete_customer(customer)
    return jsonify(success=True)
