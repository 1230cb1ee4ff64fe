import logging

import click
from flask import Flask
from flask_migrate import Migrate
from sqlalchemy import inspect

from config import Config
from models import db
from routes import ALL_BLUEPRINTS
from security.csrf import csrf_protect
from utils.auth_context import load_current_user
from utils.errors import register_error_handlers
from utils.seed import seed_roles


def create_app(config_object=None, payment_gateway=None, notifier=None):
    app = Flask(__name__)
    app.config.from_object(config_object or Config)

    logging.basicConfig(level=app.config.get("LOG_LEVEL", "INFO"))

    for bp in ALL_BLUEPRINTS:
        app.register_blueprint(bp)

    db.init_app(app)
    Migrate(app, db)
    register_error_handlers(app)

    # collaborators can be swapped in; otherwise built lazily from config on first use
    if payment_gateway is not None:
        app.extensions["payment_gateway"] = payment_gateway
    if notifier is not None:
        app.extensions["booking_notifier"] = notifier

    with app.app_context():
        if app.config.get("TESTING"):
            db.create_all()
        # roles table is absent until `flask db upgrade` has run
        if inspect(db.engine).has_table("roles"):
            seed_roles()

    @app.before_request
    def _load_user():
        load_current_user()

    app.before_request(csrf_protect)

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
from models.provider import Provider
from models.user import User, Role
from security.rbac import ADMIN
from services.booking_lifecycle import complete_past_bookings


def register_cli(app):
    @app.cli.command("make-admin")
    @click.argument("email")
    def make_admin(email):
        """Promote a user to ADMIN by email (bootstrap)."""
        user = User.query.filter_by(email=email.strip().lower()).first()
        if not user:
            click.echo("User not found")
            return

        admin_role = Role.query.filter_by(name=ADMIN).first()
        if not admin_role:
            admin_role = Role(name=ADMIN)
            db.session.add(admin_role)
            db.session.commit()

        if admin_role not in user.roles:
            user.roles.append(admin_role)
            db.session.commit()

        click.echo(f"{user.email} promoted to ADMIN")

    @app.cli.command("make-developer")
    @click.argument("provider_id", type=int)
    @click.option("--off", is_flag=True, help="Clear the developer flag instead of setting it.")
    def make_developer(provider_id, off):
        """Mark a barber as a developer account (bookings skip payment)."""
        provider = db.session.get(Provider, provider_id)
        if not provider:
            click.echo("Barber not found")
            return

        provider.is_developer = not off
        db.session.commit()
        click.echo(f"{provider.business_name}: developer={'on' if provider.is_developer else 'off'}")

    @app.cli.command("complete-past-bookings")
    @click.option("--hours", type=int, default=None, help="Age in hours after which a confirmed booking is completed.")
    def complete_past(hours):
        """Move confirmed bookings whose appointment is long over to completed."""
        if hours is None:
            hours = app.config.get("AUTO_COMPLETE_AFTER_HOURS", 24)
        count = complete_past_bookings(hours)
        click.echo(f"{count} booking(s) completed")

#-------------------------


if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
