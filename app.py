import logging

import click
from flask import Flask, request, jsonify
from flask_cors import CORS
from flask_migrate import Migrate

from config import Config, ParkSettings
from models import db
from routes import (
    health_bp, auth_bp, passes_bp, bookings_bp, functions_bp, admin_bp,
    FUNCTION_PATHS, CORS_ALLOW_HEADERS,
)
from security.csrf import csrf_protect
from services.mailer import ResendMailer
from services.notifications import format_inr
from services.razorpay_gateway import RazorpayGateway
from services.tasks import celery_init_app, enqueue_confirmation_email
from utils.auth_context import load_current_user
from utils.errors import ParkError
from utils.seed import seed_roles, seed_passes, seed_settings

CSRF_EXEMPT_PATHS = {
    "/auth/login", "/auth/register", "/auth/password-reset", "/auth/password-reset/confirm",
    "/health", *FUNCTION_PATHS,
}


def create_app(config_object=Config, *, gateway=None, mailer=None, email_dispatcher=None, clock=None):
    """
    Build the application.

    Integration clients are constructed here once and shared by every
    request; tests pass fakes through the keyword arguments.
    """
    app = Flask(__name__)
    app.config.from_object(config_object)

    logging.basicConfig(level=app.config.get("LOG_LEVEL", "INFO"))
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # validated once; bad values stop the process here
    settings = ParkSettings.from_mapping(app.config)
    app.extensions["park_settings"] = settings

    if gateway is None and settings.gateway_configured:
        gateway = RazorpayGateway(settings.razorpay_key_id, settings.razorpay_key_secret)
    if mailer is None and settings.email_configured:
        mailer = ResendMailer(
            settings.resend_api_key,
            settings.resend_api_url,
            f"{settings.app_name} <{settings.from_email}>",
        )
    if gateway is None:
        app.logger.warning("Razorpay credentials missing; payment endpoints will refuse requests")
    if mailer is None:
        app.logger.warning("Resend API key missing; confirmation emails are disabled")

    app.extensions["payment_gateway"] = gateway
    app.extensions["mailer"] = mailer
    app.extensions["email_dispatcher"] = email_dispatcher or enqueue_confirmation_email
    app.extensions["clock"] = clock

    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(passes_bp)
    app.register_blueprint(bookings_bp)
    app.register_blueprint(functions_bp)
    app.register_blueprint(admin_bp)

    CORS(
        app,
        resources={path: {"origins": "*"} for path in FUNCTION_PATHS},
        allow_headers=CORS_ALLOW_HEADERS,
        send_wildcard=True,
    )

    db.init_app(app)
    Migrate(app, db)
    celery_init_app(app)

    app.jinja_env.filters["inr"] = format_inr

    @app.errorhandler(ParkError)
    def _park_error(exc):
        app.logger.info("%s %s -> %s: %s", request.method, request.path, exc.kind, exc.message)
        return jsonify(exc.to_dict()), exc.status

    @app.before_request
    def _load_user():
        load_current_user()

    @app.before_request
    def _csrf_protect():
        return csrf_protect(CSRF_EXEMPT_PATHS)

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp

    register_cli(app)

    return app

#-------------------------

def register_cli(app):
    @app.cli.command("init-db")
    def init_db():
        """Create tables (dev only) and seed roles, settings and passes."""
        db.create_all()
        seed_roles()
        seed_settings()
        click.echo(f"Seeded {seed_passes()} passes")

    @app.cli.command("seed-passes")
    def seed_passes_command():
        """Insert the default pass catalog if missing."""
        click.echo(f"Seeded {seed_passes()} passes")

    @app.cli.command("make-admin")
    @click.argument("email")
    def make_admin(email):
        """Grant ADMIN to an existing user by email."""
        from models.user import User, Role

        user = User.query.filter_by(email=email.strip().lower()).first()
        if not user:
            click.echo("User not found")
            return

        admin_role = Role.query.filter_by(name="ADMIN").first()
        if not admin_role:
            admin_role = Role(name="ADMIN")
            db.session.add(admin_role)

        if admin_role not in user.roles:
            user.roles.append(admin_role)
        db.session.commit()

        click.echo(f"{user.email} promoted to ADMIN")

#-------------------------


if __name__ == "__main__":
    app = create_app()
    app.run(host="127.0.0.1", port=5002)
