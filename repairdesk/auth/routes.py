# repairdesk/auth/routes.py

from flask import Blueprint, current_app, jsonify, redirect, render_template, request, url_for
from flask_login import current_user, login_required, login_user, logout_user

from repairdesk import db
from repairdesk.models import User

bp = Blueprint('auth', __name__)


def _credentials():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = request.form
    return data


def _safe_next(target):
    # Only same-site relative paths
    if target and target.startswith('/') and not target.startswith('//'):
        return target
    return url_for('index')


@bp.route('/login', methods=['GET'])
def login_page():
    if current_user.is_authenticated:
        return redirect(_safe_next(request.args.get('next')))
    return render_template('auth/login.html', next=request.args.get('next', ''))


@bp.route('/api/auth/login', methods=['POST'])
def login():
    data = _credentials()
    username = (data.get('username') or '').strip()
    password = data.get('password') or ''
    if not username or not password:
        return jsonify(error='Username and password are required'), 400

    user = User.query.filter_by(username=username).first()
    if user is None or not user.check_password(password):
        current_app.logger.warning('Failed login for %r', username)
        return jsonify(error='Invalid username or password'), 401

    login_user(user, remember=bool(data.get('remember')))
    current_app.logger.info('User %s logged in', user.username)
    if not request.is_json:
        return redirect(_safe_next(data.get('next')))
    return jsonify(user=user.to_dict())


@bp.route('/api/auth/logout', methods=['POST'])
@login_required
def logout():
    current_app.logger.info('User %s logged out', current_user.username)
    logout_user()
    return jsonify(success=True)


@bp.route('/api/auth/session', methods=['GET'])
@login_required
def session_info():
    return jsonify(user=current_user.to_dict())


@bp.route('/api/auth/register', methods=['POST'])
def register():
    data = _credentials()
    username = (data.get('username') or '').strip()
    password = data.get('password') or ''
    if not username or not password:
        return jsonify(error='Username and password are required'), 400
    if User.query.filter_by(username=username).first():
        return jsonify(error='Username already exists'), 400

    user = User(username=username, name=(data.get('name') or '').strip() or None)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    current_app.logger.info('Registered user %s', user.username)
    return jsonify(user.to_dict()), 201
