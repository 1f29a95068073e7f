"""
Authentication API Routes - registration, login, logout and the caller's
own account.
"""

from flask import Blueprint, g, jsonify

from trailtag.routes.decorators import (
    managers, token_required, result_response, error_response, json_body
)

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')


@auth_bp.route('/register', methods=['POST'])
def register():
    """Register a new account"""
    result = managers()['auth'].register_user(json_body())
    return result_response(result, 201)


@auth_bp.route('/login', methods=['POST'])
def login():
    """Exchange username and password for a bearer token"""
    data = json_body()
    result = managers()['auth'].authenticate_user(
        (data.get('username') or '').strip(),
        data.get('password') or ''
    )
    return result_response(result)


@auth_bp.route('/me', methods=['GET'])
@token_required
def me():
    return jsonify({'success': True, 'user': g.current_user})


@auth_bp.route('/logout', methods=['POST'])
@token_required
def logout():
    """Revoke the caller's token"""
    managers()['auth'].logout(g.token)
    return jsonify({'success': True, 'message': 'Logout successful'})


@auth_bp.route('/change-password', methods=['POST'])
@token_required
def change_password():
    data = json_body()
    result = managers()['auth'].change_password(
        g.current_user['id'],
        data.get('currentPassword') or data.get('current_password'),
        data.get('newPassword') or data.get('new_password')
    )
    return result_response(result)


@auth_bp.route('/profile', methods=['PUT'])
@token_required
def update_profile():
    data = json_body()
    if not data:
        return error_response('No valid fields to update', 400, 'validation_error')
    result = managers()['auth'].update_profile(g.current_user['id'], data)
    return result_response(result)
