"""Blueprint registration, dashboards and the alert feed."""
from flask import Blueprint, current_app, jsonify, redirect, render_template, request, url_for
from flask_login import current_user, login_required

from extensions import db
from models import Industry
from utils.alert_engine import alerts_feed
from utils.decorators import roles_required
from utils.industry_service import sector_counts
from .auth import auth_bp
from .emails import emails_bp
from .industries import industries_bp

main_bp = Blueprint("main", __name__)


@main_bp.route("/")
def index():
    if current_user.is_authenticated:
        return redirect(url_for("main.dashboard"))
    return redirect(url_for("auth.login"))


@main_bp.route("/dashboard")
@login_required
def dashboard():
    if current_user.is_admin or current_user.is_pcb:
        return redirect(url_for("main.monitoring_dashboard"))
    if current_user.is_industry_owner:
        return redirect(url_for("main.industry_dashboard"))
    return redirect(url_for("auth.login"))


@main_bp.route("/dashboard/monitoring")
@roles_required("admin", "pcb")
def monitoring_dashboard():
    industries = db.session.query(Industry).order_by(Industry.industry_type, Industry.name).all()
    return render_template(
        "dashboard/monitoring.html",
        page_title="Monitoring Dashboard",
        industries=industries,
        counts=sector_counts(db.session),
        poll_interval=int(current_app.config.get("ALERT_POLL_INTERVAL_SECONDS", 60)),
    )


@main_bp.route("/dashboard/industry")
@roles_required("industry_owner")
def industry_dashboard():
    industry = current_user.industry or current_user.owned_industries.first()
    return render_template(
        "dashboard/industry.html",
        page_title="Industry Dashboard",
        industry=industry,
        poll_interval=int(current_app.config.get("ALERT_POLL_INTERVAL_SECONDS", 60)),
    )


@main_bp.route("/api/alerts", methods=["GET"])
@login_required
def alerts():
    feed = alerts_feed(
        db.session,
        sector=request.args.get("sector"),
        industry=request.args.get("industry"),
        limit=int(current_app.config.get("ALERT_FEED_LIMIT", 200)),
    )
    return jsonify(feed)


__all__ = ["main_bp", "auth_bp", "emails_bp", "industries_bp"]
