# repairdesk/job_cards/routes.py

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required

from repairdesk import db
from repairdesk.errors import InvalidStatus
from repairdesk.listing import parse_paging, parse_status
from repairdesk.models import JobCard
from repairdesk.job_cards.utils import (
    change_status,
    create_job_card,
    query_job_cards,
    update_job_card,
)

bp = Blueprint('job_cards', __name__)


@bp.before_request
@login_required
def require_login():
    pass


def _load(job_card_id):
    """Fetch by raw id segment; returns (card, error_response)."""
    try:
        card_id = int(job_card_id)
    except ValueError:
        return None, (jsonify(error='Invalid ID'), 400)
    card = db.session.get(JobCard, card_id)
    if card is None:
        return None, (jsonify(error='Job card not found'), 404)
    return card, None


@bp.route('', methods=['GET'])
def list_job_cards():
    """
    Paginated job cards.
    Query: search, status, page, pageSize, limit.
    Returns { jobCards: [...], totalCount, page, pageSize, totalPages, ... }.
    """
    page, page_size = parse_paging(
        request.args,
        current_app.config['DEFAULT_PAGE_SIZE'],
        current_app.config['MAX_PAGE_SIZE'],
    )
    status = parse_status(request.args.get('status'))
    limit = request.args.get('limit', type=int)
    result = query_job_cards(
        search=request.args.get('search'),
        status=status,
        page=page,
        page_size=page_size,
        limit=limit,
    )
    return jsonify(
        jobCards=[c.to_dict(include_customer=True) for c in result.items],
        **result.meta(),
    )


@bp.route('', methods=['POST'])
def create():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify(error='Expected a JSON object'), 400
    card = create_job_card(data, current_user.id)
    return jsonify(card.to_dict(include_customer=True)), 201


@bp.route('/<job_card_id>', methods=['GET'])
def get_job_card(job_card_id):
    card, err = _load(job_card_id)
    if err:
        return err
    return jsonify(card.to_dict(include_customer=True))


@bp.route('/<job_card_id>', methods=['PUT'])
def update(job_card_id):
    card, err = _load(job_card_id)
    if err:
        return err
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify(error='Expected a JSON object'), 400
    card = update_job_card(card, data)
    return jsonify(card.to_dict(include_customer=True))


@bp.route('/<job_card_id>', methods=['DELETE'])
def delete(job_card_id):
    card, err = _load(job_card_id)
    if err:
        return err
    current_app.logger.info(
        'Deleting job card %s (customer_id=%s, mobile=%s)',
        card.bill_no, card.customer_id, card.mobile_number,
    )
    db.session.delete(card)
    db.session.commit()
    return jsonify(message='Job card deleted successfully')


@bp.route('/<job_card_id>/status', methods=['PATCH'])
def update_status(job_card_id):
    card, err = _load(job_card_id)
    if err:
        return err
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify(error='Expected a JSON object'), 400
    status = data.get('status')
    try:
        card = change_status(card, status)
    except InvalidStatus as e:
        current_app.logger.warning('Rejected status change for %s: %s', card.bill_no, e)
        raise
    return jsonify(card.to_dict())
