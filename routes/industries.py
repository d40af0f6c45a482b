"""Industry registry, kit samples, alert checks, warnings and report export."""
from datetime import datetime
from io import BytesIO

from flask import Blueprint, abort, current_app, jsonify, request, send_file
from flask_login import current_user, login_required
from flask_wtf import FlaskForm
from werkzeug.datastructures import MultiDict
from wtforms import DateField, FloatField, StringField, TextAreaField
from wtforms.validators import DataRequired, Length, Optional, ValidationError

from extensions import csrf, db
from models import Industry, Sector, WaterQualitySample
from utils.alert_engine import WARNING_FAILED, WARNING_SENT, check_latest_sample, send_manual_warning
from utils.decorators import can_manage_industry, roles_required
from utils.email_service import get_notifier
from utils.industry_service import (
    INDUSTRY_FIELDS,
    IndustryValidationError,
    add_industry,
    record_sample,
    sector_counts,
    update_industry,
)
from utils.pdf_generator import generate_pdf
from utils.report_service import ReportPeriodError, build_report_payload
from utils.series import CHART_VIEWS, chart_rows, parse_timestamp

industries_bp = Blueprint("industries", __name__)

WARNING_MESSAGES = {
    "SENT": "Warning email sent to the industry owner.",
    "FAILED": "Error sending email.",
    "NO_BREACH": "No parameter exceeded safe thresholds.",
    "NO_SAMPLES": "No water quality data available.",
    "MISSING_CONTACT": "Missing industry or owner details.",
}


class IndustryForm(FlaskForm):
    name = StringField("Industry Name", validators=[DataRequired(), Length(max=200)])
    industry_code = StringField("Industry Code", validators=[DataRequired(), Length(max=64)])
    industry_type = StringField("Industry Type", validators=[DataRequired(), Length(max=120)])
    owner_id = StringField("Owner", validators=[Optional(), Length(max=36)])
    location = StringField("Location", validators=[Optional(), Length(max=255)])
    phone_number = StringField("Phone Number", validators=[Optional(), Length(max=32)])
    description = TextAreaField("Description", validators=[Optional()])
    registration_number = StringField("Registration Number", validators=[Optional(), Length(max=120)])
    water_source = StringField("Water Source", validators=[Optional(), Length(max=255)])
    daily_water_consumption = FloatField("Daily Water Consumption", validators=[Optional()])
    wastewater_generation = FloatField("Wastewater Generation", validators=[Optional()])
    wastewater_treatment_methods = StringField("Treatment Methods", validators=[Optional(), Length(max=500)])
    treated_water_reuse = StringField("Treated Water Reuse", validators=[Optional(), Length(max=120)])
    discharge_points = StringField("Discharge Points", validators=[Optional(), Length(max=500)])
    environmental_clearance_certificate = StringField("Clearance Certificate", validators=[Optional(), Length(max=120)])
    pcb_approval_status = StringField("PCB Approval Status", validators=[Optional(), Length(max=120)])
    last_environmental_audit_date = DateField("Last Audit Date", validators=[Optional()])
    violations_reported = TextAreaField("Violations Reported", validators=[Optional()])
    fine_or_legal_actions_taken = TextAreaField("Fines or Legal Actions", validators=[Optional()])


class SampleForm(FlaskForm):
    kit_type = StringField("Kit Type", validators=[DataRequired(), Length(max=20)])
    measured_at = StringField("Measured At", validators=[DataRequired()])

    def validate_measured_at(self, field):
        try:
            self.measured_at_utc = parse_timestamp(field.data.strip())
        except (TypeError, ValueError):
            raise ValidationError("Not a valid ISO-8601 timestamp.")


def _form_payload(payload: dict) -> MultiDict:
    """Flatten a JSON body into form data WTForms can validate."""
    normalized = {}
    for key, value in (payload or {}).items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            value = ", ".join(str(v) for v in value)
        elif key == "last_environmental_audit_date":
            value = str(value).split("T", 1)[0]
        normalized[key] = str(value)
    return MultiDict(normalized)


def _first_error(form: FlaskForm) -> str:
    for field_name, errors in form.errors.items():
        if errors:
            return f"{field_name}: {errors[0]}"
    return "Invalid input."


def _industry_data(form: IndustryForm, keys) -> dict:
    data = {}
    for key in keys:
        value = form[key].data
        if isinstance(value, str):
            value = value.strip() or None
        data[key] = value
    return data


def _industry_or_404(industry_id: int) -> Industry:
    industry = db.session.get(Industry, industry_id)
    if industry is None:
        abort(404)
    return industry


@industries_bp.route("/api/industries", methods=["POST"])
@csrf.exempt
@roles_required("admin", "pcb")
def create_industry():
    payload = request.get_json(silent=True) or {}
    form = IndustryForm(formdata=_form_payload(payload), meta={"csrf": False})
    if not form.validate():
        return jsonify({"success": False, "error": _first_error(form)}), 400

    try:
        industry = add_industry(db.session, _industry_data(form, INDUSTRY_FIELDS))
    except IndustryValidationError as exc:
        return jsonify({"success": False, "error": str(exc)}), 400
    return jsonify({"success": True, "data": industry.to_dict()}), 201


@industries_bp.route("/api/industries", methods=["GET"])
@login_required
def list_industries():
    query = db.session.query(Industry)
    sector = request.args.get("sector")
    if sector and sector.lower() != "all":
        query = query.filter(Industry.industry_type == sector)
    if current_user.is_industry_owner:
        query = query.filter(Industry.owner_id == current_user.id)
    industries = query.order_by(Industry.name).all()
    return jsonify({"success": True, "industries": [i.to_dict() for i in industries]})


@industries_bp.route("/api/industries/<int:industry_id>", methods=["GET"])
@login_required
def get_industry(industry_id: int):
    industry = _industry_or_404(industry_id)
    payload = industry.to_dict()
    payload["owner"] = industry.owner.to_dict() if industry.owner else None
    return jsonify({"success": True, "data": payload})


@industries_bp.route("/api/industries/<int:industry_id>", methods=["PUT"])
@csrf.exempt
@roles_required("admin", "pcb")
def edit_industry(industry_id: int):
    industry = _industry_or_404(industry_id)
    payload = request.get_json(silent=True) or {}
    changed = [key for key in INDUSTRY_FIELDS if key in payload]
    if not changed:
        return jsonify({"success": False, "error": "No updatable fields supplied."}), 400

    merged = {**industry.to_dict(), **payload}
    form = IndustryForm(formdata=_form_payload(merged), meta={"csrf": False})
    if not form.validate():
        return jsonify({"success": False, "error": _first_error(form)}), 400

    try:
        update_industry(db.session, industry, _industry_data(form, changed))
    except IndustryValidationError as exc:
        return jsonify({"success": False, "error": str(exc)}), 400
    return jsonify({"success": True, "data": industry.to_dict()})


@industries_bp.route("/api/sectors/counts", methods=["GET"])
@login_required
def get_sector_counts():
    return jsonify({"success": True, "counts": sector_counts(db.session)})


@industries_bp.route("/api/sectors/<int:sector_id>/industries", methods=["GET"])
@login_required
def sector_industries(sector_id: int):
    sector = db.session.get(Sector, sector_id)
    if sector is None:
        abort(404)
    industries = (
        db.session.query(Industry)
        .filter(Industry.industry_type == sector.sector_name)
        .order_by(Industry.name)
        .all()
    )
    return jsonify({"success": True, "sector": sector.to_dict(), "industries": [i.to_dict() for i in industries]})


@industries_bp.route("/api/industries/<int:industry_id>/water-quality", methods=["GET"])
@login_required
def water_quality(industry_id: int):
    industry = _industry_or_404(industry_id)
    view = (request.args.get("view") or "combined").lower()
    if view not in CHART_VIEWS:
        return jsonify({"error": f"view must be one of: {', '.join(CHART_VIEWS)}"}), 400

    samples = (
        db.session.query(WaterQualitySample)
        .filter(WaterQualitySample.industry_id == industry.id)
        .order_by(WaterQualitySample.measured_at)
        .all()
    )
    return jsonify({"industry_id": industry.id, "view": view, "rows": chart_rows(samples, view)})


@industries_bp.route("/api/industries/<int:industry_id>/water-quality", methods=["POST"])
@csrf.exempt
@login_required
def add_water_quality(industry_id: int):
    industry = _industry_or_404(industry_id)
    if not can_manage_industry(current_user, industry):
        abort(403)

    payload = request.get_json(silent=True) or {}
    form = SampleForm(formdata=_form_payload(payload), meta={"csrf": False})
    if not form.validate():
        return jsonify({"success": False, "error": _first_error(form)}), 400

    try:
        sample = record_sample(db.session, industry, form.kit_type.data, form.measured_at_utc, payload)
    except IndustryValidationError as exc:
        return jsonify({"success": False, "error": str(exc)}), 400
    return jsonify({"success": True, "data": sample.to_dict()}), 201


@industries_bp.route("/api/industries/<int:industry_id>/alerts/check", methods=["POST"])
@csrf.exempt
@login_required
def check_alerts(industry_id: int):
    industry = _industry_or_404(industry_id)
    notifier = get_notifier() if current_app.config.get("ALERT_NOTIFY_ON_BREACH") else None
    inserted = check_latest_sample(db.session, industry, notifier=notifier)
    return jsonify({"inserted": len(inserted), "alerts": [a.to_dict() for a in inserted]})


@industries_bp.route("/api/industries/<int:industry_id>/warning", methods=["POST"])
@csrf.exempt
@roles_required("admin", "pcb")
def send_warning(industry_id: int):
    industry = _industry_or_404(industry_id)
    outcome = send_manual_warning(db.session, get_notifier(), industry)
    current_app.logger.info(
        "Manual warning processed",
        extra={"industry_id": industry.id, "outcome": outcome, "user_id": current_user.id},
    )
    status_code = 500 if outcome == WARNING_FAILED else 200
    return jsonify({"success": outcome == WARNING_SENT, "outcome": outcome, "message": WARNING_MESSAGES[outcome]}), status_code


@industries_bp.route("/industries/<int:industry_id>/report.pdf", methods=["GET"])
@login_required
def download_report(industry_id: int):
    industry = _industry_or_404(industry_id)
    period = request.args.get("period", "1-day")
    day = None
    if request.args.get("date"):
        try:
            day = datetime.strptime(request.args["date"], "%Y-%m-%d").date()
        except ValueError:
            abort(400)

    try:
        payload = build_report_payload(db.session, industry, period, day=day)
    except ReportPeriodError:
        abort(400)

    pdf_bytes = generate_pdf(payload)
    current_app.logger.info(
        "Report generated",
        extra={"industry_id": industry.id, "period": period, "sample_count": payload["sample_count"]},
    )
    return send_file(
        BytesIO(pdf_bytes),
        mimetype="application/pdf",
        as_attachment=True,
        download_name=f"{industry.industry_code}_{period}_report.pdf",
    )
