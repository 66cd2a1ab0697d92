import os
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from repairdesk import create_app, db
from repairdesk.cli import upsert_user
from repairdesk.models import User


def setup_app():
    app = create_app('testing')
    with app.app_context():
        db.drop_all()
        db.create_all()
        upsert_user('admin', 'admin123', 'Administrator')
    return app


def test_password_is_hashed():
    app = setup_app()
    with app.app_context():
        user = User.query.filter_by(username='admin').first()
        assert user.password_hash != 'admin123'
        assert user.check_password('admin123')
        assert not user.check_password('nope')


def test_login_session_logout():
    app = setup_app()
    client = app.test_client()
    resp = client.post('/api/auth/login', json={'username': 'admin', 'password': 'admin123'})
    assert resp.status_code == 200
    assert resp.get_json()['user']['username'] == 'admin'
    assert 'password_hash' not in resp.get_json()['user']

    assert client.get('/api/auth/session').get_json()['user']['name'] == 'Administrator'
    assert client.get('/api/job-cards').status_code == 200

    assert client.post('/api/auth/logout').status_code == 200
    assert client.get('/api/auth/session').status_code == 401
    assert client.get('/api/job-cards').status_code == 401


def test_bad_credentials():
    app = setup_app()
    client = app.test_client()
    assert client.post('/api/auth/login', json={'username': 'admin', 'password': 'x'}).status_code == 401
    assert client.post('/api/auth/login', json={'username': 'ghost', 'password': 'x'}).status_code == 401
    assert client.post('/api/auth/login', json={'username': 'admin'}).status_code == 400


def test_form_login_redirects_to_next():
    app = setup_app()
    client = app.test_client()
    resp = client.post('/api/auth/login', data={
        'username': 'admin', 'password': 'admin123', 'next': '/api/customers',
    })
    assert resp.status_code == 302
    assert resp.headers['Location'].endswith('/api/customers')

    resp = client.post('/api/auth/login', data={
        'username': 'admin', 'password': 'admin123', 'next': '//evil.example',
    })
    assert resp.headers['Location'].endswith('/')


def test_ui_redirects_to_login():
    app = setup_app()
    client = app.test_client()
    resp = client.get('/')
    assert resp.status_code == 302
    assert '/login' in resp.headers['Location']

    page = client.get('/login')
    assert page.status_code == 200
    assert b'name="username"' in page.data


def test_dashboard_counts():
    app = setup_app()
    client = app.test_client()
    client.post('/api/auth/login', json={'username': 'admin', 'password': 'admin123'})
    for status in ('pending', 'completed', 'completed'):
        client.post('/api/job-cards', json={
            'customerName': 'C', 'mobileNumber': '1', 'complaint': 'c', 'model': 'm',
            'status': status,
        })
    body = client.get('/').get_json()
    assert body['jobCards'] == {'pending': 1, 'in-progress': 0, 'completed': 2}
    assert body['totalJobCards'] == 3
    assert body['customers'] == 0


def test_register():
    app = setup_app()
    client = app.test_client()
    resp = client.post('/api/auth/register', json={'username': 'tech', 'password': 'pw', 'name': 'Tech'})
    assert resp.status_code == 201
    assert resp.get_json()['username'] == 'tech'
    assert client.post('/api/auth/register', json={'username': 'tech', 'password': 'pw'}).status_code == 400
    assert client.post('/api/auth/login', json={'username': 'tech', 'password': 'pw'}).status_code == 200


def test_api_404_is_json():
    app = setup_app()
    client = app.test_client()
    resp = client.get('/api/nothing-here')
    assert resp.status_code == 404
    assert 'error' in resp.get_json()
