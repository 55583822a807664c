import os
from datetime import timedelta


class Config:

    SECRET_KEY = os.environ.get('SECRET_KEY', 'tracker-dev-key-change-in-production')

    # Database configuration
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL', 'sqlite:///tracker.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Session configuration
    PERMANENT_SESSION_LIFETIME = timedelta(days=5)

    # Werkzeug hash method for stored passwords
    PASSWORD_HASH_METHOD = 'pbkdf2:sha256'

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # Default filter for /api/tasks/creator-prefix
    CREATOR_NAME_PREFIX = os.environ.get('CREATOR_NAME_PREFIX', 'Nguyễn')


class TestingConfig(Config):

    TESTING = True
    SECRET_KEY = 'tracker-test-key'
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    LOG_LEVEL = 'WARNING'
    PASSWORD_HASH_METHOD = 'pbkdf2:sha256:1000'
