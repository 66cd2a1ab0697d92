import os
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from repairdesk import create_app, db
from repairdesk.cli import upsert_user
from repairdesk.models import JobCard


def setup_app():
    app = create_app('testing')
    with app.app_context():
        db.drop_all()
        db.create_all()
        upsert_user('admin', 'secret', 'Administrator')
    return app


def login(app):
    client = app.test_client()
    resp = client.post('/api/auth/login', json={'username': 'admin', 'password': 'secret'})
    assert resp.status_code == 200
    return client


def payload(**overrides):
    data = {
        'customerName': 'Ravi Kumar',
        'mobileNumber': '9876543210',
        'address': '12 Market Road',
        'complaint': 'Screen cracked',
        'model': 'Redmi Note 9',
        'isOn': True,
        'hasBattery': True,
        'admissionFees': 50,
        'estimate': 1200,
        'advance': '300',
    }
    data.update(overrides)
    return data


def test_create_then_fetch_round_trip():
    app = setup_app()
    client = login(app)
    resp = client.post('/api/job-cards', json=payload())
    assert resp.status_code == 201
    created = resp.get_json()
    assert created['billNo'] == created['id']
    assert created['status'] == 'pending'

    fetched = client.get(f"/api/job-cards/{created['id']}").get_json()
    for key, value in payload().items():
        if key == 'advance':
            assert fetched[key] == 300.0
        else:
            assert fetched[key] == value
    assert fetched['isOff'] is False
    assert fetched['finalAmount'] is None
    assert fetched['createdBy'] == {'name': 'Administrator', 'username': 'admin'}


def test_bill_numbers_follow_ids():
    app = setup_app()
    client = login(app)
    ids = [client.post('/api/job-cards', json=payload()).get_json()['id'] for _ in range(3)]
    assert ids == [1, 2, 3]
    with app.app_context():
        for card in JobCard.query.all():
            assert card.bill_no == card.id


def test_create_validation():
    app = setup_app()
    client = login(app)
    resp = client.post('/api/job-cards', json={'customerName': 'X'})
    assert resp.status_code == 400
    assert 'mobileNumber' in resp.get_json()['error']

    resp = client.post('/api/job-cards', json=payload(estimate='lots'))
    assert resp.status_code == 400
    assert 'estimate' in resp.get_json()['error']

    resp = client.post('/api/job-cards', json=payload(status='archived'))
    assert resp.status_code == 400
    with app.app_context():
        assert JobCard.query.count() == 0


def test_invalid_and_missing_ids():
    app = setup_app()
    client = login(app)
    assert client.get('/api/job-cards/abc').status_code == 400
    assert client.get('/api/job-cards/999').status_code == 404
    assert client.put('/api/job-cards/999', json={'model': 'x'}).status_code == 404
    assert client.delete('/api/job-cards/999').status_code == 404


def test_update_whitelists_fields():
    app = setup_app()
    client = login(app)
    card = client.post('/api/job-cards', json=payload()).get_json()
    resp = client.put(f"/api/job-cards/{card['id']}", json={
        'model': 'Redmi Note 10',
        'finalAmount': 1100,
        'billNo': 999,
        'id': 999,
    })
    assert resp.status_code == 200
    body = resp.get_json()
    assert body['model'] == 'Redmi Note 10'
    assert body['finalAmount'] == 1100.0
    assert body['billNo'] == card['billNo']
    assert body['id'] == card['id']


def test_delete():
    app = setup_app()
    client = login(app)
    card = client.post('/api/job-cards', json=payload()).get_json()
    resp = client.delete(f"/api/job-cards/{card['id']}")
    assert resp.get_json() == {'message': 'Job card deleted successfully'}
    assert client.get(f"/api/job-cards/{card['id']}").status_code == 404


def test_list_search_status_and_paging():
    app = setup_app()
    client = login(app)
    statuses = ['pending'] * 3 + ['in-progress'] * 2 + ['completed'] * 2
    for i, status in enumerate(statuses):
        client.post('/api/job-cards', json=payload(
            customerName=f'Customer {i}',
            mobileNumber=f'90000000{i:02d}',
            status=status,
        ))

    body = client.get('/api/job-cards?status=in-progress&page=1&pageSize=5').get_json()
    assert len(body['jobCards']) == 2
    assert body['totalPages'] == 1
    assert all(c['status'] == 'in-progress' for c in body['jobCards'])

    body = client.get('/api/job-cards?pageSize=5&page=2').get_json()
    assert body['totalCount'] == 7
    assert body['totalPages'] == 2
    assert [c['billNo'] for c in body['jobCards']] == [2, 1]

    body = client.get('/api/job-cards?search=customer 4').get_json()
    assert [c['customerName'] for c in body['jobCards']] == ['Customer 4']

    body = client.get('/api/job-cards?search=REDMI&pageSize=oops').get_json()
    assert body['pageSize'] == 10
    assert body['totalCount'] == 7

    # past the last page falls back to the first
    body = client.get('/api/job-cards?page=40&pageSize=5').get_json()
    assert body['page'] == 1
    assert [c['billNo'] for c in body['jobCards']] == [7, 6, 5, 4, 3]

    assert client.get('/api/job-cards?status=archived').status_code == 400


def test_limit_returns_bulk_set():
    app = setup_app()
    client = login(app)
    for i in range(12):
        client.post('/api/job-cards', json=payload(mobileNumber=f'800000{i:04d}'))
    body = client.get('/api/job-cards?pageSize=5&limit=50&page=2').get_json()
    assert len(body['jobCards']) == 12
    assert body['page'] == 1
    assert body['pageSize'] == 12
    assert body['totalPages'] == 1

    body = client.get('/api/job-cards?pageSize=5&limit=8').get_json()
    assert len(body['jobCards']) == 8
    assert body['pageSize'] == 8
    assert body['totalPages'] == 2


def test_search_by_bill_number():
    app = setup_app()
    client = login(app)
    for i in range(12):
        client.post('/api/job-cards', json=payload(mobileNumber=f'M-{chr(65 + i)}'))
    body = client.get('/api/job-cards?search=11&pageSize=50').get_json()
    assert [c['billNo'] for c in body['jobCards']] == [11]


def test_search_wildcards_match_literally():
    app = setup_app()
    client = login(app)
    client.post('/api/job-cards', json=payload())
    client.post('/api/job-cards', json=payload(mobileNumber='9123456780'))
    assert client.get('/api/job-cards?search=_').get_json()['totalCount'] == 0
    assert client.get('/api/job-cards?search=%25').get_json()['totalCount'] == 0

    odd = client.post('/api/job-cards', json=payload(model='Moto_G 100%')).get_json()
    for term in ('_', '%25', 'o_G'):
        body = client.get(f'/api/job-cards?search={term}').get_json()
        assert [c['billNo'] for c in body['jobCards']] == [odd['billNo']]


def test_unauthenticated_api_is_401():
    app = setup_app()
    client = app.test_client()
    resp = client.get('/api/job-cards')
    assert resp.status_code == 401
    assert resp.get_json() == {'error': 'Unauthorized'}
    assert client.post('/api/job-cards', json=payload()).status_code == 401
