# -*- coding: utf-8 -*-
import os
import logging
from datetime import timedelta

import markdown as markdown_lib
from flask import Flask, render_template, request
from flask_login import LoginManager
from markupsafe import Markup
from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

# Import models and routes
from howisyourday import repository
from howisyourday.config import config, safe_database_uri
from howisyourday.integrations.email import SendGridMailer
from howisyourday.integrations.images import CloudinaryImageHost
from howisyourday.integrations.push import ExpoPushGateway
from howisyourday.models.user import db, User
from howisyourday.models.post import Post, PostTag, Comment  # noqa: F401 (tables for create_all)
from howisyourday.models.subscriber import Subscriber  # noqa: F401
from howisyourday.models.push_token import PushToken  # noqa: F401
from howisyourday.responses import error_response
from howisyourday.routes.admin import admin_bp
from howisyourday.routes.admin_api import admin_api_bp
from howisyourday.routes.api import api_bp
from howisyourday.routes.auth import auth_bp
from howisyourday.routes.site import site_bp
from howisyourday.shared_data import parse_timestamp, utcnow

# Set up logging
logging.basicConfig(level=logging.INFO,
                    format='[%(asctime)s] %(levelname)s in %(module)s: %(message)s')

MARKDOWN_EXTENSIONS = ['fenced_code', 'tables']

# Relative date units, largest first
TIME_UNITS = (
    ('year', 365 * 24 * 3600),
    ('month', 30 * 24 * 3600),
    ('week', 7 * 24 * 3600),
    ('day', 24 * 3600),
    ('hour', 3600),
    ('minute', 60),
)


def format_date(value, style='short'):
    """Render a datetime (or ISO string) as "Jan 05, 2025", "January 5, 2025" or "3 days ago"."""
    if not value:
        return ''
    try:
        dt = parse_timestamp(value) if isinstance(value, str) else value
    except ValueError:
        return '(Date unavailable)'

    if style == 'long':
        return f"{dt.strftime('%B')} {dt.day}, {dt.year}"

    if style == 'relative':
        seconds = int((utcnow() - dt).total_seconds())
        for unit, size in TIME_UNITS:
            if seconds >= size:
                count = seconds // size
                return f"{count} {unit}{'s' if count > 1 else ''} ago"
        return 'just now'

    return dt.strftime('%b %d, %Y')


def render_markdown(text):
    if not text:
        return Markup('')
    return Markup(markdown_lib.markdown(text, extensions=MARKDOWN_EXTENSIONS))


def create_app(config_name=None, mailer=None, image_host=None, push_gateway=None):
    """Create and configure the Flask application.

    Provider clients may be passed in; otherwise they are built from the
    loaded configuration.
    """
    app = Flask(
        __name__,
        static_folder=os.path.join(os.path.dirname(__file__), "static"),
        template_folder=os.path.join(os.path.dirname(__file__), "templates")
    )

    # Load configuration from config class
    env = config_name or os.environ.get('FLASK_ENV', 'production')
    app_config = config.get(env, config['default'])
    app_config.init_app(app)

    # Admin console session lifetime
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(hours=24)

    # Log configuration info (sanitized)
    logging.info(f"Starting application in {env} mode")
    logging.info(f"Debug mode: {app.config.get('DEBUG', False)}")

    # Log database info without exposing credentials
    db_uri = app.config.get('SQLALCHEMY_DATABASE_URI', '')
    if db_uri:
        try:
            logging.info(f"Database: {safe_database_uri(db_uri)}")
        except ValueError as e:
            logging.warning(f"Could not parse database URI: {e}")
    else:
        logging.warning("No database URI configured!")

    initialize_app(app, mailer=mailer, image_host=image_host, push_gateway=push_gateway)

    return app


def initialize_app(app, mailer=None, image_host=None, push_gateway=None):
    """Initialize Flask application with database, providers and routes"""
    # Provider clients
    app.extensions['mailer'] = mailer or SendGridMailer.from_config(app.config)
    app.extensions['image_host'] = image_host or CloudinaryImageHost.from_config(app.config)
    app.extensions['push_gateway'] = push_gateway or ExpoPushGateway.from_config(app.config)

    # Initialize Flask-Login
    login_manager = LoginManager()
    login_manager.init_app(app)
    login_manager.login_view = 'admin.login'
    login_manager.login_message_category = 'info'

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    # Initialize database
    db.init_app(app)

    with app.app_context():
        try:
            logging.info("Attempting to connect to database...")
            db.create_all()

            table_names = inspect(db.engine).get_table_names()
            logging.info(f"Database initialized with {len(table_names)} tables: {', '.join(table_names)}")

            if app.config.get('ADMIN_EMAIL') and app.config.get('ADMIN_PASSWORD'):
                if repository.ensure_admin_user(app.config['ADMIN_EMAIL'], app.config['ADMIN_PASSWORD']):
                    logging.info("Bootstrap admin user created")

        except SQLAlchemyError as e:
            logging.error(f"Error initializing database: {e}")

    # Register blueprints
    app.register_blueprint(site_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(api_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(admin_api_bp)

    # Register template filters
    app.add_template_filter(format_date, 'format_date')
    app.add_template_filter(render_markdown, 'markdown')

    @app.context_processor
    def inject_globals():
        return {"now": utcnow(), "site_name": app.config.get('SITE_NAME')}

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        # Unmatched /api/... URLs and methods never reach a blueprint handler
        if request.path.startswith('/api/'):
            return error_response(error.name, error.code)
        if error.code == 404:
            return render_template('404.html'), 404
        return error

    return app


if __name__ == "__main__":
    # Create and initialize app
    app = create_app()

    # Get environment and port
    env = os.environ.get('FLASK_ENV', 'production')
    port = int(os.environ.get("PORT", 5005))

    logging.info(f"How Is Your Day starting on port {port} ({env})")

    app.run(
        host="0.0.0.0",
        port=port,
        debug=(env == 'development')
    )
