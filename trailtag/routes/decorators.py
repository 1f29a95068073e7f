"""
Request helpers shared by the TrailTag blueprints: bearer-token and role
checks, manager lookup and result-to-response conversion.
"""

from functools import wraps
from typing import Dict, Any
import logging

from flask import current_app, g, jsonify, request

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    'validation_error': 400,
    'unauthorized': 401,
    'forbidden': 403,
    'not_found': 404,
    'conflict': 409,
    'system_error': 500
}


def managers():
    """Managers built by create_app for the current application."""
    return current_app.extensions['trailtag']


def error_response(message: str, status: int, error_type: str = None):
    body = {'success': False, 'message': message}
    if error_type:
        body['error_type'] = error_type
    return jsonify(body), status


def result_response(result: Dict[str, Any], success_status: int = 200):
    """
    Turn a manager result dict into a JSON response.

    Args:
        result (Dict[str, Any]): Manager result with 'success' and either
            payload keys or 'error' / 'error_type'
        success_status (int): HTTP status for a successful result

    Returns:
        tuple: Flask response and status code
    """
    if result.get('success'):
        return jsonify(result), success_status

    error_type = result.get('error_type', 'system_error')
    return error_response(result.get('error', 'Request failed'), ERROR_STATUS.get(error_type, 400), error_type)


def _bearer_token():
    header = request.headers.get('Authorization', '')
    scheme, _, token = header.partition(' ')
    if scheme.lower() != 'bearer' or not token.strip():
        return None
    return token.strip()


def token_required(f):
    """Decorator to require a valid bearer token; sets g.current_user"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return error_response('Access token required', 401, 'unauthorized')

        user = managers()['auth'].verify_token(token)
        if not user:
            return error_response('Invalid or expired token', 403, 'forbidden')

        g.current_user = user
        g.token = token
        return f(*args, **kwargs)
    return decorated_function


def role_required(*roles):
    """Decorator to require a valid bearer token held by one of the given roles"""
    def decorator(f):
        @wraps(f)
        @token_required
        def decorated_function(*args, **kwargs):
            if g.current_user['user_type'] not in roles:
                logger.warning(
                    f"User {g.current_user['username']} ({g.current_user['user_type']}) "
                    f"denied access to {request.path}"
                )
                return error_response('Insufficient permissions', 403, 'forbidden')
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def json_body() -> Dict[str, Any]:
    return request.get_json(silent=True) or {}


def int_arg(name: str, default: int) -> int:
    """Read a positive integer query parameter, falling back to the default."""
    value = request.args.get(name, type=int)
    if value is None or value < 1:
        return default
    return value
