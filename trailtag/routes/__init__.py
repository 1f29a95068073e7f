"""
TrailTag REST API blueprints.
"""

from flask import Blueprint, jsonify

from trailtag.routes.auth import auth_bp
from trailtag.routes.programs import programs_bp
from trailtag.routes.qrcodes import qrcodes_bp
from trailtag.routes.checkins import checkins_bp
from trailtag.routes.users import users_bp
from trailtag.routes.dashboard import dashboard_bp

health_bp = Blueprint('health', __name__, url_prefix='/api')


@health_bp.route('/health', methods=['GET'])
def health():
    """Unauthenticated liveness probe"""
    return jsonify({'success': True, 'status': 'ok', 'service': 'trailtag'})


BLUEPRINTS = [health_bp, auth_bp, programs_bp, qrcodes_bp, checkins_bp, users_bp, dashboard_bp]


def init_routes(app):
    """Register every API blueprint with the Flask app"""
    for blueprint in BLUEPRINTS:
        app.register_blueprint(blueprint)
    app.logger.debug(f"Registered {len(BLUEPRINTS)} blueprints")
