import os


def _env_int(name, default):
    value = os.environ.get(name)
    if value is None:
        return default
    try:
        return int(value.strip())
    except ValueError:
        return default


def _env_bool(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY', 'secret-key-goes-here')
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL', 'sqlite:///dojo.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # Create tables and seed ranks/admin on the first request
    SEED_ON_STARTUP = _env_bool('SEED_ON_STARTUP', True)
    ADMIN_USERNAME = os.environ.get('ADMIN_USERNAME', 'SuperAdmin')
    ADMIN_PASSWORD = os.environ.get('ADMIN_PASSWORD', 'Password123')

    BACKUP_FOLDER = os.path.join(os.getcwd(), 'backups')

    # Mail
    MAIL_BACKEND = os.environ.get('MAIL_BACKEND', 'smtp')
    MAIL_SERVER = os.environ.get('MAIL_SERVER', 'localhost')
    MAIL_PORT = _env_int('MAIL_PORT', 587)
    MAIL_USERNAME = os.environ.get('MAIL_USERNAME')
    MAIL_PASSWORD = os.environ.get('MAIL_PASSWORD')
    MAIL_USE_TLS = _env_bool('MAIL_USE_TLS', True)
    MAIL_USE_SSL = _env_bool('MAIL_USE_SSL', False)
    MAIL_DEFAULT_SENDER = os.environ.get('MAIL_DEFAULT_SENDER', 'Dojo <no-reply@dojo.local>')
    SEND_PROMOTION_EMAILS = _env_bool('SEND_PROMOTION_EMAILS', True)

    # Promotion policy
    YOUTH_AGE_LIMIT = _env_int('YOUTH_AGE_LIMIT', 16)
    YOUTH_MAX_RANK_ORDER = _env_int('YOUTH_MAX_RANK_ORDER', 13)
    DEFAULT_REQUIRED_ATTENDANCE = _env_int('DEFAULT_REQUIRED_ATTENDANCE', 30)
    NEAR_PROMOTION_MARGIN = _env_int('NEAR_PROMOTION_MARGIN', 5)
    MAX_DEGREE = _env_int('MAX_DEGREE', 4)


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret'
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SEED_ON_STARTUP = False
    MAIL_BACKEND = 'locmem'
    LOG_LEVEL = 'WARNING'
