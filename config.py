"""Configuration module for Flask application."""
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

    # Session Configuration (Production-safe defaults)
    SESSION_COOKIE_SECURE = os.getenv('SESSION_COOKIE_SECURE', 'false').lower() == 'true'
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = os.getenv('SESSION_COOKIE_SAMESITE', 'Lax')
    PERMANENT_SESSION_LIFETIME = 86400  # 24 hours

    # Database - Support multiple environment variable naming conventions
    # Priority: DATABASE_URL > DB_* > POSTGRES_*
    DATABASE_URL = os.getenv('DATABASE_URL')

    if not DATABASE_URL:
        DB_HOST = os.getenv('DB_HOST') or os.getenv('POSTGRES_HOST', 'localhost')
        DB_PORT = os.getenv('DB_PORT') or os.getenv('POSTGRES_PORT', '5432')
        DB_NAME = os.getenv('DB_NAME') or os.getenv('POSTGRES_DB', 'estimator')
        DB_USER = os.getenv('DB_USER') or os.getenv('POSTGRES_USER', 'estimator')
        DB_PASSWORD = os.getenv('DB_PASSWORD') or os.getenv('POSTGRES_PASSWORD', 'estimator')

        DATABASE_URL = (
            f"postgresql://{DB_USER}:{DB_PASSWORD}"
            f"@{DB_HOST}:{DB_PORT}/{DB_NAME}"
        )

    # SQLAlchemy
    SQLALCHEMY_DATABASE_URI = DATABASE_URL
    SQLALCHEMY_ECHO = os.getenv('SQLALCHEMY_ECHO', 'false').lower() == 'true'
    DB_CREATE_ALL = os.getenv('DB_CREATE_ALL', 'true').lower() == 'true'

    # Business Information (for exported estimations)
    BUSINESS_NAME = os.getenv('BUSINESS_NAME', 'My Workshop')
    BUSINESS_EMAIL = os.getenv('BUSINESS_EMAIL', '')
    CURRENCY_LABEL = os.getenv('CURRENCY_LABEL', 'DT HT')

    # Object Storage Configuration (product images)
    # Compatible with AWS S3, DigitalOcean Spaces, MinIO
    S3_ENDPOINT = os.getenv('S3_ENDPOINT', 'http://minio:9000')
    S3_ACCESS_KEY = os.getenv('S3_ACCESS_KEY', 'minioadmin')
    S3_SECRET_KEY = os.getenv('S3_SECRET_KEY', 'minioadmin')
    S3_BUCKET = os.getenv('S3_BUCKET', 'uploads')
    S3_REGION = os.getenv('S3_REGION', 'us-east-1')
    S3_PUBLIC_URL = os.getenv('S3_PUBLIC_URL', 'http://localhost:9000')

    # Upload constraints
    MAX_UPLOAD_SIZE = int(os.getenv('MAX_UPLOAD_SIZE', 2 * 1024 * 1024))  # 2MB
    ALLOWED_MIME_TYPES = {
        'image/jpeg',
        'image/png',
        'image/gif',
        'image/webp'
    }

    # Redis Cache Configuration
    # Catalog lists and the last-known-good estimation list per owner
    REDIS_URL = os.getenv('REDIS_URL', 'redis://redis:6379/0')
    CACHE_ENABLED = os.getenv('CACHE_ENABLED', 'true').lower() == 'true'
    CACHE_DEFAULT_TTL = int(os.getenv('CACHE_DEFAULT_TTL', '60'))  # seconds
    CACHE_CATALOG_TTL = int(os.getenv('CACHE_CATALOG_TTL', '300'))
    CACHE_HISTORY_TTL = int(os.getenv('CACHE_HISTORY_TTL', '3600'))
    CACHE_KEY_PREFIX = os.getenv('CACHE_KEY_PREFIX', 'estimator')

    # Error tracking
    SENTRY_DSN = os.getenv('SENTRY_DSN')


class TestConfig(Config):
    """Configuration used by the test suite (in-memory SQLite, no Redis)."""

    TESTING = True
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_ECHO = False
    DB_CREATE_ALL = True
    CACHE_ENABLED = False
    S3_ENDPOINT = 'http://localhost:9000'
