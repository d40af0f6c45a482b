"""Flask application factory for the effluent compliance monitoring service."""
import os
from typing import Optional

import click
from flask import Flask, jsonify, render_template, request
from sqlalchemy.engine.url import make_url
from dotenv import load_dotenv
from utils.logger import init_logging
from utils.security import apply_security_headers
from utils.email_service import EmailNotifier
from extensions import csrf, db, migrate, login_manager


def _wants_json() -> bool:
    return request.path.startswith("/api/")


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(400)
    def bad_request(error):
        app.logger.warning("400 Bad Request", extra={"path": request.path, "method": request.method})
        if _wants_json():
            return jsonify({"error": "Bad request."}), 400
        return render_template("errors/400.html"), 400

    @app.errorhandler(403)
    def forbidden(error):
        app.logger.warning("403 Forbidden", extra={"path": request.path, "method": request.method})
        if _wants_json():
            return jsonify({"error": "Forbidden."}), 403
        return render_template("errors/403.html"), 403

    @app.errorhandler(404)
    def not_found_error(error):
        app.logger.warning("404 Not Found", extra={"path": request.path, "method": request.method})
        if _wants_json():
            return jsonify({"error": "Not found."}), 404
        return render_template("errors/404.html"), 404

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        app.logger.exception("500 Internal Server Error")
        if _wants_json():
            return jsonify({"error": "Internal server error."}), 500
        return render_template("errors/500.html"), 500


def ensure_default_roles_and_admin(app: Flask) -> None:
    """Seed the three roles, the configured sectors and a default admin account."""
    from models import Role, Sector, User  # Local import to avoid circular dependency
    from routes.auth import ROLE_DESCRIPTIONS

    role_cache: dict[str, Role] = {}
    for name, description in ROLE_DESCRIPTIONS.items():
        role_cache[name] = Role.get_or_create(name, description=description)

    for sector_name in app.config.get("DEFAULT_SECTORS", []):
        if not Sector.query.filter_by(sector_name=sector_name).first():
            db.session.add(Sector(sector_name=sector_name, count=0))
    db.session.commit()

    admin_email = (app.config.get("DEFAULT_ADMIN_EMAIL") or "").lower().strip()
    admin_password = app.config.get("DEFAULT_ADMIN_PASSWORD") or ""
    if not admin_email or not admin_password:
        return

    admin_role = role_cache["admin"]
    admin_user = User.query.filter_by(email=admin_email).first()

    if admin_user:
        updates = False
        if admin_user.role != admin_role:
            admin_user.role = admin_role
            updates = True
        if not admin_user.is_active or not admin_user.is_verified:
            admin_user.is_active = True
            admin_user.is_verified = True
            updates = True
        if updates:
            db.session.add(admin_user)
            db.session.commit()
        return

    admin_user = User(
        name="System Administrator",
        email=admin_email,
        role=admin_role,
        is_verified=True,
        is_active=True,
    )
    admin_user.set_password(admin_password)
    db.session.add(admin_user)
    db.session.commit()


def ensure_sqlite_directory(database_uri: str) -> None:
    url = make_url(database_uri)
    if url.drivername.startswith("sqlite") and url.database and url.database != ":memory:":
        os.makedirs(os.path.dirname(url.database) or ".", exist_ok=True)


def register_cli(app: Flask) -> None:
    @app.cli.command("monitor-alerts")
    @click.option("--once", is_flag=True, help="Run a single check and exit.")
    @click.option("--interval", type=float, default=None, help="Seconds between checks.")
    @click.option("--industry", "industry_ids", type=int, multiple=True, help="Limit checks to these industry ids.")
    def monitor_alerts(once, interval, industry_ids):
        """Check the latest sample of every industry for threshold breaches."""
        from utils.alert_poller import AlertPoller

        notifier = app.extensions["notifier"] if app.config.get("ALERT_NOTIFY_ON_BREACH") else None
        poller = AlertPoller(app, interval=interval, industry_ids=industry_ids, notifier=notifier)
        if once:
            click.echo(f"Inserted {poller.run_once()} alert(s).")
            return
        with poller:
            try:
                poller.wait()
            except KeyboardInterrupt:
                click.echo("Stopping alert monitor.")

    @app.cli.command("recount-sectors")
    def recount_sectors_command():
        """Rebuild sector industry counts from the industries table."""
        from utils.industry_service import recount_sectors

        for sector_name, count in recount_sectors(db.session).items():
            click.echo(f"{sector_name}: {count}")


def create_app(config_name: Optional[str] = None) -> Flask:
    """Application factory with environment-aware configuration."""
    load_dotenv()

    app = Flask(__name__, instance_relative_config=True)

    # Resolve configuration
    from config import DevelopmentConfig, ProductionConfig, TestingConfig

    config_key = (config_name or os.getenv("FLASK_CONFIG") or os.getenv("FLASK_ENV") or "production").lower()
    config_map = {
        "development": DevelopmentConfig,
        "dev": DevelopmentConfig,
        "production": ProductionConfig,
        "prod": ProductionConfig,
        "testing": TestingConfig,
        "test": TestingConfig,
    }
    config_class = config_map.get(config_key, ProductionConfig)
    app.config.from_object(config_class())

    # Optional instance-specific overrides
    if not app.config.get("TESTING"):
        app.config.from_pyfile("config.py", silent=True)
        os.makedirs(app.instance_path, exist_ok=True)
    ensure_sqlite_directory(app.config["SQLALCHEMY_DATABASE_URI"])

    # Initialize logging early
    logger = init_logging(app)
    app.logger = logger

    # Initialize extensions
    csrf.init_app(app)
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    login_manager.login_view = "auth.login"
    login_manager.session_protection = "strong"
    login_manager.login_message_category = "warning"
    app.extensions["notifier"] = EmailNotifier.from_config(app.config)

    @login_manager.user_loader
    def load_user(user_id):
        from models import User  # Local import to avoid circular dependency

        if not user_id:
            return None
        return db.session.get(User, str(user_id))

    # Blueprints
    from routes import main_bp, auth_bp, emails_bp, industries_bp

    app.register_blueprint(main_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(industries_bp)
    app.register_blueprint(emails_bp)

    register_cli(app)
    register_error_handlers(app)

    @app.after_request
    def _after_request(response):
        return apply_security_headers(response, force_https=app.config.get("PREFERRED_URL_SCHEME") == "https")

    # Ensure tables exist so first run creates the database structure automatically.
    with app.app_context():
        db.create_all()
        ensure_default_roles_and_admin(app)

    return app
