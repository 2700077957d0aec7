import os
import secrets
from datetime import timedelta
from urllib.parse import urlparse

from dotenv import load_dotenv

# Load environment variables from .env file if it exists
load_dotenv()


def database_uri():
    """DATABASE_URL when the host provides one, else a local Postgres from the DB_* parts."""
    url = os.environ.get('DATABASE_URL')
    if url:
        # Supabase/Render hand out postgres:// but SQLAlchemy needs postgresql://
        if url.startswith('postgres://'):
            url = 'postgresql://' + url[len('postgres://'):]
        return url

    user = os.environ.get('DB_USER', os.environ.get('USER', ''))
    password = os.environ.get('DB_PASSWORD', '')
    host = os.environ.get('DB_HOST', 'localhost')
    port = os.environ.get('DB_PORT', '5432')
    name = os.environ.get('DB_NAME', 'howisyourday_dev')
    return f"postgresql://{user}:{password}@{host}:{port}/{name}"


def site_url():
    """Public base URL used in confirmation links, without a trailing slash."""
    return os.environ.get('SITE_URL', 'http://localhost:5005').rstrip('/')


def engine_options(require_ssl=True, pool_recycle=300, connect_timeout=10, pooled=True):
    connect_args = {'connect_timeout': connect_timeout}
    if require_ssl:
        # SSL goes in connect_args, never in the URL
        connect_args['sslmode'] = 'require'

    options = {'pool_pre_ping': True, 'pool_recycle': pool_recycle, 'connect_args': connect_args}
    if pooled:
        options.update(pool_size=10, max_overflow=20)
    return options


def safe_database_uri(uri):
    """The database URI with the credentials left out, for logging."""
    parsed = urlparse(uri)
    return f"{parsed.scheme}://{parsed.hostname or ''}:{parsed.port or 'default'}{parsed.path}"


class Config:
    """Base configuration."""
    # Flask
    SECRET_KEY = os.environ.get('FLASK_SECRET_KEY') or secrets.token_hex(32)

    # Bearer tokens for the JSON API
    JWT_SECRET = os.environ.get('JWT_SECRET') or SECRET_KEY
    JWT_EXPIRES = timedelta(days=7)

    # Public base URL, used in confirmation links
    SITE_URL = site_url()
    SITE_NAME = 'How Is Your Day'

    # Database
    DATABASE_URL = os.environ.get('DATABASE_URL')
    SQLALCHEMY_DATABASE_URI = database_uri()
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = engine_options()

    # Bootstrap admin account (db.py and first start)
    ADMIN_EMAIL = os.environ.get('ADMIN_EMAIL')
    ADMIN_PASSWORD = os.environ.get('ADMIN_PASSWORD')

    # SendGrid
    SENDGRID_API_KEY = os.environ.get('SENDGRID_API_KEY')
    SENDGRID_FROM_EMAIL = os.environ.get('SENDGRID_FROM_EMAIL', 'noreply@howisyourday.com')

    # Cloudinary
    CLOUDINARY_CLOUD_NAME = os.environ.get('CLOUDINARY_CLOUD_NAME')
    CLOUDINARY_API_KEY = os.environ.get('CLOUDINARY_API_KEY')
    CLOUDINARY_API_SECRET = os.environ.get('CLOUDINARY_API_SECRET')
    CLOUDINARY_FOLDER = os.environ.get('CLOUDINARY_FOLDER', 'blog-posts')

    # Expo push service (access token is optional)
    EXPO_ACCESS_TOKEN = os.environ.get('EXPO_ACCESS_TOKEN')

    # Outbound provider requests
    HTTP_TIMEOUT_SECONDS = int(os.environ.get('HTTP_TIMEOUT_SECONDS', 10))

    @classmethod
    def init_app(cls, app):
        """Initialize application configuration."""
        app.config.from_object(cls)

        if not os.environ.get('JWT_SECRET'):
            app.logger.warning("JWT_SECRET not set, falling back to the Flask secret key!")

        if not cls.SENDGRID_API_KEY:
            app.logger.warning("SendGrid API key not set! Emails will fail.")

        if not (cls.CLOUDINARY_CLOUD_NAME and cls.CLOUDINARY_API_KEY and cls.CLOUDINARY_API_SECRET):
            app.logger.warning("Cloudinary credentials not set! Image uploads will fail.")


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    SQLALCHEMY_ENGINE_OPTIONS = engine_options(require_ssl=False, pool_recycle=3600,
                                               connect_timeout=5, pooled=False)


class TestingConfig(Config):
    """Testing configuration."""
    TESTING = True
    SECRET_KEY = 'testing-secret-key'
    JWT_SECRET = 'testing-jwt-secret'
    SITE_URL = 'http://testserver'
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SQLALCHEMY_ENGINE_OPTIONS = {}
    ADMIN_EMAIL = None
    ADMIN_PASSWORD = None

    @classmethod
    def init_app(cls, app):
        app.config.from_object(cls)


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False
    TESTING = False

    @classmethod
    def init_app(cls, app):
        super().init_app(app)

        if not os.environ.get('FLASK_SECRET_KEY'):
            app.logger.error("FLASK_SECRET_KEY not set!")

        if not os.environ.get('JWT_SECRET'):
            app.logger.error("JWT_SECRET not set! Tokens will not survive a restart.")

        if cls.DATABASE_URL:
            try:
                app.logger.info(f"Production database: {safe_database_uri(cls.SQLALCHEMY_DATABASE_URI)}")
            except ValueError as e:
                app.logger.warning(f"Could not parse database URI: {e}")


# Configuration mapping
config = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': DevelopmentConfig
}
