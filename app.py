from datetime import datetime

from flask import Flask, jsonify
from sqlalchemy.exc import SQLAlchemyError
from config import Config
from routes import health_bp, company_bp, catalog_bp, schedule_bp, booking_bp

from models import db
from flask_migrate import Migrate
from scheduling.errors import BookingError, StoreUnavailable
from utils.auth_context import load_current_identity


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(company_bp)
    app.register_blueprint(catalog_bp)
    app.register_blueprint(schedule_bp)
    app.register_blueprint(booking_bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    @app.before_request
    def _load_identity():
        load_current_identity()

    @app.errorhandler(BookingError)
    def _booking_error(exc):
        resp = jsonify(exc.to_dict())
        if isinstance(exc, StoreUnavailable):
            resp.headers["Retry-After"] = str(app.config.get("STORE_RETRY_AFTER_SECONDS", 5))
        return resp, exc.status_code

    @app.errorhandler(SQLAlchemyError)
    def _store_error(exc):
        # anything that slipped past the service layer's guards
        db.session.rollback()
        app.logger.error("Unhandled record store error: %s", exc)
        return _booking_error(StoreUnavailable("Record store unavailable, please retry"))

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
import click
from services.booking_service import complete_past_bookings

def register_cli(app):
    @app.cli.command("complete-bookings")
    @click.option("--as-of", "as_of", default=None, help="ISO datetime to treat as now (default: now).")
    def complete_bookings(as_of):
        """Mark confirmed bookings that have already ended as completed."""
        now = datetime.fromisoformat(as_of) if as_of else datetime.now()
        count = complete_past_bookings(now)
        print(f"{count} booking(s) marked completed")

    @app.cli.command("init-db")
    def init_db():
        """Create tables directly (development only; use `flask db upgrade` elsewhere)."""
        db.create_all()
        print("Database tables created")

#-------------------------




if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
