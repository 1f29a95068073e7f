# TrailTag Configuration

import os
from pathlib import Path

# Base directory
BASE_DIR = Path(__file__).parent.absolute()

class Config:
    """Base configuration class"""

    # Flask Configuration
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'trailtag-secret-key-change-in-production'
    JSON_SORT_KEYS = False
    MAX_CONTENT_LENGTH = 10 * 1024 * 1024  # 10MB request body

    # Database Configuration
    DATABASE_PATH = Path(os.environ.get('DATABASE_PATH') or BASE_DIR / 'data' / 'trailtag.db')

    # Bearer token configuration
    JWT_SECRET_KEY = os.environ.get('JWT_SECRET_KEY') or 'trailtag-jwt-secret-change-in-production'
    JWT_ALGORITHM = 'HS256'
    JWT_EXPIRES_HOURS = int(os.environ.get('JWT_EXPIRES_HOURS') or 24)

    # Default accounts
    DEFAULT_ADMIN_USERNAME = 'admin'
    DEFAULT_ADMIN_PASSWORD = os.environ.get('DEFAULT_ADMIN_PASSWORD') or 'admin123'
    DEFAULT_ADMIN_EMAIL = 'admin@trailtag.com'

    # QR Code Configuration
    QR_CODE_SCHEME = 'trailtag'
    QR_CODE_BOX_SIZE = 10
    QR_CODE_BORDER = 4

    # Check-in Configuration
    CHECKIN_DUPLICATE_WINDOW_MINUTES = int(os.environ.get('CHECKIN_DUPLICATE_WINDOW_MINUTES') or 5)
    CHECKIN_HISTORY_DEFAULT_LIMIT = 50

    # Export Configuration
    EXPORTS_FOLDER = BASE_DIR / 'exports'
    EXPORT_MAX_RECORDS = 10000
    EXPORT_RETENTION_DAYS = int(os.environ.get('EXPORT_RETENTION_DAYS', '7'))

    # Localization
    DEFAULT_LANGUAGE = 'ko'
    DEFAULT_TIMEZONE = 'Asia/Seoul'

    # Logging Configuration
    LOG_LEVEL = os.environ.get('LOG_LEVEL') or 'INFO'
    LOG_FILE = BASE_DIR / 'logs' / 'trailtag.log'
    LOG_MAX_BYTES = 10 * 1024 * 1024  # 10MB
    LOG_BACKUP_COUNT = 5

    # Development Configuration
    DEBUG = os.environ.get('DEBUG', 'False').lower() in ['true', 'on', '1']
    TESTING = False

    @classmethod
    def init_app(cls, app):
        """Initialize application configuration"""
        # Create necessary directories
        directories = [
            cls.EXPORTS_FOLDER,
            Path(cls.DATABASE_PATH).parent,
            cls.LOG_FILE.parent
        ]

        for directory in directories:
            directory.mkdir(parents=True, exist_ok=True)

        app.config.from_object(cls)


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    TESTING = False

    DATABASE_PATH = BASE_DIR / 'data' / 'trailtag_dev.db'

    # More verbose logging
    LOG_LEVEL = 'DEBUG'


class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    DEBUG = True

    # Tests override this with a per-test file
    DATABASE_PATH = BASE_DIR / 'data' / 'trailtag_test.db'

    JWT_SECRET_KEY = 'trailtag-test-jwt-secret'
    DEFAULT_ADMIN_PASSWORD = 'admin123'


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    TESTING = False

    DATABASE_PATH = Path(os.environ.get('DATABASE_PATH') or BASE_DIR / 'data' / 'trailtag_prod.db')

    # Production logging
    LOG_LEVEL = 'WARNING'

    @classmethod
    def init_app(cls, app):
        super().init_app(app)

        # Production-specific initialization
        import logging
        from logging.handlers import RotatingFileHandler

        # Setup file logging
        if not app.debug:
            file_handler = RotatingFileHandler(
                cls.LOG_FILE,
                maxBytes=cls.LOG_MAX_BYTES,
                backupCount=cls.LOG_BACKUP_COUNT
            )
            file_handler.setFormatter(logging.Formatter(
                '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
            ))
            file_handler.setLevel(logging.INFO)
            app.logger.addHandler(file_handler)

            app.logger.setLevel(logging.INFO)
            app.logger.info('TrailTag startup')


# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': DevelopmentConfig
}


def get_config():
    """Get configuration based on environment variable"""
    return config.get(os.environ.get('FLASK_ENV', 'default'), DevelopmentConfig)


def validate_config(config_class):
    """Validate configuration settings"""
    errors = []

    if config_class.CHECKIN_DUPLICATE_WINDOW_MINUTES < 0:
        errors.append("CHECKIN_DUPLICATE_WINDOW_MINUTES must not be negative")

    if not config_class.QR_CODE_SCHEME or not config_class.QR_CODE_SCHEME.isalpha():
        errors.append(f"QR_CODE_SCHEME must be alphabetic: {config_class.QR_CODE_SCHEME!r}")

    if config_class.JWT_EXPIRES_HOURS <= 0:
        errors.append("JWT_EXPIRES_HOURS must be positive")

    if not Path(config_class.DATABASE_PATH).parent.exists():
        errors.append(f"Database directory does not exist: {Path(config_class.DATABASE_PATH).parent}")

    return errors


def init_config(app, config_name=None):
    """Initialize application with configuration"""
    if config_name is None:
        config_class = get_config()
    else:
        config_class = config.get(config_name, DevelopmentConfig)
    config_class.init_app(app)

    errors = validate_config(config_class)
    if errors:
        for error in errors:
            app.logger.error(f"Configuration error: {error}")
        raise RuntimeError("Configuration validation failed")

    return config_class
