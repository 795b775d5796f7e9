"""Login/logout JSON endpoints."""
import logging

from flask import jsonify
from flask_login import login_user, logout_user, login_required, current_user

from . import auth_bp
from .models import User
from .repositories import UserRepository
from core.utils.api_helpers import get_json_or_error, error_response

logger = logging.getLogger('atlas.core.auth.routes')

_user_repo = UserRepository()


@auth_bp.route('/api/auth/login', methods=['POST'])
def api_login():
    data, error = get_json_or_error()
    if error:
        return error

    email = (data.get('email') or '').strip()
    password = data.get('password') or ''
    if not email or not password:
        return error_response('email and password are required', 400)

    user_data = _user_repo.authenticate(email, password)
    if not user_data:
        logger.info(f'Failed login for {email}')
        return error_response('Invalid email or password', 401)

    user = User(user_data)
    login_user(user, remember=bool(data.get('remember')))
    return jsonify({'success': True, 'user': user.to_dict()})


@auth_bp.route('/api/auth/logout', methods=['POST'])
@login_required
def api_logout():
    logout_user()
    return jsonify({'success': True})


@auth_bp.route('/api/auth/me', methods=['GET'])
@login_required
def api_me():
    return jsonify({'success': True, 'user': current_user.to_dict()})
