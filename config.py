"""Configuration module for the NataPOS Flask application."""
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Config:
    """Base configuration class."""

    # Flask
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    DEBUG = os.getenv('FLASK_DEBUG', '1') == '1'
    ENV = os.getenv('FLASK_ENV', 'development')
    TESTING = False

    # Session Configuration (Production-safe defaults)
    SESSION_COOKIE_SECURE = os.getenv('SESSION_COOKIE_SECURE', 'false').lower() == 'true'
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = os.getenv('SESSION_COOKIE_SAMESITE', 'Lax')
    PERMANENT_SESSION_LIFETIME = 86400  # 24 hours

    # Database - Support multiple environment variable naming conventions
    # Priority: DATABASE_URL > DB_* > POSTGRES_*
    DATABASE_URL = os.getenv('DATABASE_URL')

    if not DATABASE_URL:
        # Try DB_* variables (Docker style)
        DB_HOST = os.getenv('DB_HOST') or os.getenv('POSTGRES_HOST', 'localhost')
        DB_PORT = os.getenv('DB_PORT') or os.getenv('POSTGRES_PORT', '5432')
        DB_NAME = os.getenv('DB_NAME') or os.getenv('POSTGRES_DB', 'natapos')
        DB_USER = os.getenv('DB_USER') or os.getenv('POSTGRES_USER', 'natapos')
        DB_PASSWORD = os.getenv('DB_PASSWORD') or os.getenv('POSTGRES_PASSWORD', 'natapos')

        DATABASE_URL = (
            f"postgresql://{DB_USER}:{DB_PASSWORD}"
            f"@{DB_HOST}:{DB_PORT}/{DB_NAME}"
        )

    # SQLAlchemy
    SQLALCHEMY_DATABASE_URI = DATABASE_URL
    SQLALCHEMY_ECHO = os.getenv('SQLALCHEMY_ECHO', 'false').lower() == 'true'

    # Backend calls never hang forever: connect + statement timeout (seconds)
    BACKEND_TIMEOUT_SECONDS = int(os.getenv('BACKEND_TIMEOUT_SECONDS', '10'))

    # Store Information
    STORE_NAME = os.getenv('STORE_NAME', 'NataFood')

    # Pricing
    # POS_TAX_RATE is the order pricing rate; checkout dialogs charge
    # POS_CHECKOUT_TAX_RATE. See DESIGN.md before changing either.
    POS_TAX_RATE = os.getenv('POS_TAX_RATE', '0.08')
    POS_CHECKOUT_TAX_RATE = os.getenv('POS_CHECKOUT_TAX_RATE', '0.10')

    # Orders
    ORDER_NUMBER_PREFIX = os.getenv('ORDER_NUMBER_PREFIX', 'NF')
    ORDER_FETCH_LIMIT = int(os.getenv('ORDER_FETCH_LIMIT', '100'))

    # Kitchen board urgency thresholds (minutes)
    KITCHEN_WARNING_MINUTES = int(os.getenv('KITCHEN_WARNING_MINUTES', '5'))
    KITCHEN_CRITICAL_MINUTES = int(os.getenv('KITCHEN_CRITICAL_MINUTES', '10'))

    # Redis: summary cache + realtime fan-out between terminal processes
    REDIS_URL = os.getenv('REDIS_URL', 'redis://redis:6379/0')
    CACHE_ENABLED = os.getenv('CACHE_ENABLED', 'true').lower() == 'true'
    CACHE_SUMMARY_TTL = int(os.getenv('CACHE_SUMMARY_TTL', '30'))
    CACHE_KEY_PREFIX = os.getenv('CACHE_KEY_PREFIX', 'natapos')
    REALTIME_ENABLED = os.getenv('REALTIME_ENABLED', 'true').lower() == 'true'
    REALTIME_CHANNEL_PREFIX = os.getenv('REALTIME_CHANNEL_PREFIX', 'natapos:realtime')


class TestConfig(Config):
    """Configuration used by the test-suite: in-memory SQLite, no Redis."""

    TESTING = True
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_ECHO = False
    CACHE_ENABLED = False
    REALTIME_ENABLED = False
