import os

from constants import DEFAULT_CLAIM_TIMEOUT


class Config:
    # Every key can be overridden with a MAHJONG_ prefixed environment variable,
    # e.g. MAHJONG_PORT=8000 or MAHJONG_CLAIM_TIMEOUT_SECONDS=15
    SECRET_KEY = os.environ.get('SECRET_KEY', 'secret!')
    HOST = '0.0.0.0'
    PORT = 5000
    ASYNC_MODE = 'eventlet'
    CLAIM_TIMEOUT_SECONDS = DEFAULT_CLAIM_TIMEOUT
    LOG_LEVEL = 'INFO'
    CORS_ALLOWED_ORIGINS = '*'
    TESTING = False


class TestingConfig(Config):
    TESTING = True
    ASYNC_MODE = 'threading'
    LOG_LEVEL = 'DEBUG'
