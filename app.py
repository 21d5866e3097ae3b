# backend/app.py
import logging

import click
from flask import Flask, redirect
from flask_cors import CORS
from flask_restx import Api
from sqlalchemy.exc import SQLAlchemyError

from config import Config
from extensions import bcrypt, db, limiter
from models import UserProfile
from routes import (
    announcements,
    auth,
    bundles,
    email,
    events,
    media,
    memorial,
    registrations,
    users,
    whatsapp,
)
from services.container import Collaborators
from services.email_service import build_mailer
from services.errors import DomainError
from services.identity import TokenIdentity
from services.notification_handlers import build_handlers
from services.notifications import NotificationDispatcher
from services.payment_service import StripePaymentClient
from services.sms_service import build_sms_client

NAMESPACES = (
    auth.ns,
    events.ns,
    registrations.ns,
    bundles.ns,
    users.ns,
    announcements.ns,
    whatsapp.ns,
    media.ns,
    memorial.ns,
    email.ns,
)


def build_collaborators(config, **overrides):
    """Build the external collaborators from config; tests pass fakes as overrides."""
    mailer = overrides.get("mailer") or build_mailer(config)
    sms = overrides.get("sms") or build_sms_client(config)
    dispatcher = overrides.get("dispatcher") or NotificationDispatcher(
        build_handlers(mailer, sms, config.get("ADMIN_SMS_TO")),
        max_attempts=config["NOTIFICATION_MAX_ATTEMPTS"],
        retry_delay=config["NOTIFICATION_RETRY_DELAY"],
        run_async=config["NOTIFICATION_ASYNC"],
    )
    return Collaborators(
        identity=overrides.get("identity")
        or TokenIdentity(config["SECRET_KEY"], config["TOKEN_MAX_AGE"]),
        mailer=mailer,
        payments=overrides.get("payments")
        or StripePaymentClient(config.get("STRIPE_SECRET_KEY"), config["STRIPE_API_URL"]),
        sms=sms,
        dispatcher=dispatcher,
    )


def create_app(config_object=Config, **overrides):
    app = Flask(__name__)
    app.config.from_object(config_object)

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    db.init_app(app)
    bcrypt.init_app(app)
    limiter.init_app(app)
    CORS(app, supports_credentials=True, origins=[app.config["FRONTEND_URL"]])

    app.extensions["collaborators"] = build_collaborators(app.config, **overrides)

    # API Swagger
    api = Api(
        app,
        version="1.0",
        title="Bishvilam API",
        description="Registration backend for the Bishvilam training center",
        doc="/api/docs",
        catch_all_404s=False,
    )
    for ns in NAMESPACES:
        api.add_namespace(ns)

    @api.errorhandler(DomainError)
    def handle_domain_error(error):
        if error.status_code >= 500:
            app.logger.error("%s: %s", error.code.value, error.message)
        return error.to_response(), error.status_code

    @api.errorhandler(SQLAlchemyError)
    def handle_database_error(error):
        db.session.rollback()
        app.logger.error("Unhandled database error: %s", error)
        return {"error": "Database operation failed", "details": str(error)}, 500

    # Root redirect, overriding the Flask-RESTX root endpoint
    def redirect_root():
        return redirect("/api/docs")

    app.view_functions["root"] = redirect_root

    register_commands(app)
    return app


def register_commands(app):
    @app.cli.command("init-db")
    def init_db():
        """Create all tables."""
        db.create_all()
        click.echo("Database initialized")

    @app.cli.command("set-admin")
    @click.argument("email")
    def set_admin(email):
        """Grant the admin role to an existing profile."""
        profile = UserProfile.query.filter(
            db.func.lower(UserProfile.email) == email.strip().lower()
        ).first()
        if not profile:
            raise click.ClickException(f"No profile with email {email}")
        profile.role = "admin"
        db.session.commit()
        click.echo(f"{profile.email} is now an admin")


if __name__ == "__main__":
    app = create_app()
    with app.app_context():
        db.create_all()
    app.run(debug=True, host="0.0.0.0", port=5000)
