# TrailTag - App Package
"""
Main application package for TrailTag, a QR-code check-in service for
learning programs with admin, parent and student roles.
"""

import logging

from flask import Flask, g, jsonify, request
from werkzeug.exceptions import HTTPException

from config import init_config

from trailtag.modules.database_manager import DatabaseManager
from trailtag.modules.qr_generator import QRGenerator
from trailtag.modules.checkin_manager import CheckInManager
from trailtag.modules.program_manager import ProgramManager
from trailtag.modules.qrcode_manager import QRCodeManager
from trailtag.modules.auth_manager import AuthManager
from trailtag.modules.user_manager import UserManager
from trailtag.modules.dashboard_manager import DashboardManager
from trailtag.modules.report_generator import ReportGenerator
from trailtag.modules.errors import CheckInError, MalformedCodeError, UnknownCodeError, DuplicateCheckInError
from trailtag.routes import init_routes

__version__ = "1.0.0"
__description__ = "QR-code check-in tracking for learning programs"

SUPPORTED_LANGUAGES = ['en', 'ko']

logger = logging.getLogger(__name__)


def init_managers(app, clock=None):
    """
    Build the managers from the app configuration and store them in
    app.extensions['trailtag'].

    Args:
        app (Flask): Configured application
        clock (Callable): Optional clock shared by time-dependent managers
    """
    cfg = app.config

    db_manager = DatabaseManager(cfg['DATABASE_PATH'], admin_account={
        'username': cfg['DEFAULT_ADMIN_USERNAME'],
        'password': cfg['DEFAULT_ADMIN_PASSWORD'],
        'email': cfg['DEFAULT_ADMIN_EMAIL']
    })
    qr_generator = QRGenerator(
        scheme=cfg['QR_CODE_SCHEME'],
        box_size=cfg['QR_CODE_BOX_SIZE'],
        border=cfg['QR_CODE_BORDER']
    )
    auth_manager = AuthManager(
        db_manager,
        cfg['JWT_SECRET_KEY'],
        algorithm=cfg['JWT_ALGORITHM'],
        expires_hours=cfg['JWT_EXPIRES_HOURS']
    )
    checkin_manager = CheckInManager(
        db_manager,
        qr_generator,
        duplicate_window_minutes=cfg['CHECKIN_DUPLICATE_WINDOW_MINUTES'],
        clock=clock
    )

    app.extensions['trailtag'] = {
        'db': db_manager,
        'qr_generator': qr_generator,
        'auth': auth_manager,
        'users': UserManager(db_manager, auth_manager),
        'programs': ProgramManager(db_manager),
        'qrcodes': QRCodeManager(db_manager, qr_generator),
        'checkins': checkin_manager,
        'dashboard': DashboardManager(db_manager, clock=clock),
        'reports': ReportGenerator(
            checkin_manager,
            output_dir=str(cfg['EXPORTS_FOLDER']),
            max_records=cfg['EXPORT_MAX_RECORDS'],
            retention_days=cfg['EXPORT_RETENTION_DAYS']
        )
    }
    return app.extensions['trailtag']


def _request_language(default):
    """Language of the current user, else the best Accept-Language match"""
    user = g.get('current_user')
    if user and user.get('language') in SUPPORTED_LANGUAGES:
        return user['language']
    return request.accept_languages.best_match(SUPPORTED_LANGUAGES) or default


def init_error_handlers(app):
    """Answer errors with the JSON envelope"""

    @app.errorhandler(CheckInError)
    def handle_check_in_error(error):
        language = _request_language(app.config['DEFAULT_LANGUAGE'])
        app.logger.info(f"Check-in rejected ({error.error_type}): {error}")
        return jsonify(error.to_dict(language)), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({'success': False, 'message': error.description}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        app.logger.error(f"Unhandled error on {request.method} {request.path}: {str(error)}", exc_info=error)
        return jsonify({'success': False, 'message': 'Internal server error'}), 500


def create_app(config_name=None, overrides=None, clock=None):
    """
    Application factory.

    Args:
        config_name (str): Key into config.config, defaults to FLASK_ENV
        overrides (dict): Settings applied after the configuration class
        clock (Callable): Optional server clock for the check-in and dashboard managers

    Returns:
        Flask: Configured application
    """
    app = Flask(__name__)
    init_config(app, config_name)
    if overrides:
        app.config.update(overrides)

    init_managers(app, clock=clock)
    init_error_handlers(app)
    init_routes(app)

    @app.teardown_appcontext
    def close_connection(exception=None):
        app.extensions['trailtag']['db'].close_all_connections()

    logger.info(f"TrailTag {__version__} initialized ({config_name or 'default'} configuration)")
    return app


__all__ = [
    'create_app',
    'CheckInError',
    'MalformedCodeError',
    'UnknownCodeError',
    'DuplicateCheckInError'
]
