"""Threshold-breach alerting: de-duplicated alert recording and owner warnings."""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from models import Alert, Industry, Sector, WaterQualitySample
from utils.email_service import send_email
from utils.thresholds import Breach, evaluate, format_breach_line

WARNING_SENT = "SENT"
WARNING_FAILED = "FAILED"
WARNING_NO_BREACH = "NO_BREACH"
WARNING_NO_SAMPLES = "NO_SAMPLES"
WARNING_MISSING_CONTACT = "MISSING_CONTACT"


def latest_sample(session, industry: Industry) -> Optional[WaterQualitySample]:
    return (
        session.query(WaterQualitySample)
        .filter(WaterQualitySample.industry_id == industry.id)
        .order_by(WaterQualitySample.measured_at.desc(), WaterQualitySample.id.desc())
        .first()
    )


def _alert_exists(session, industry: Industry, alert_label: str, measured_at: datetime) -> bool:
    existing = (
        session.query(Alert.id)
        .filter(
            Alert.industry_code == industry.industry_code,
            Alert.parameter == alert_label,
            Alert.water_quality_measured_at == measured_at,
        )
        .first()
    )
    return existing is not None


def record_if_new(session, industry: Industry, breach: Breach, measured_at: datetime) -> bool:
    """Insert an alert for *breach* unless one exists for the same sample and parameter.

    Returns True when a row was inserted. A unique-constraint violation means a
    concurrent check recorded the same alert first and is reported as False.
    """
    if _alert_exists(session, industry, breach.alert_label, measured_at):
        return False

    alert = Alert(
        industry_id=industry.id,
        industry_code=industry.industry_code,
        industry_name=industry.name,
        industry_type=industry.industry_type,
        parameter=breach.alert_label,
        current_value=breach.detected_value,
        threshold_value=breach.threshold_value,
        threshold_label=breach.threshold_label,
        alert_datetime=datetime.utcnow(),
        water_quality_measured_at=measured_at,
    )
    session.add(alert)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        current_app.logger.info(
            "Alert already recorded",
            extra={"industry_code": industry.industry_code, "parameter": breach.alert_label},
        )
        return False

    current_app.logger.info(
        "Threshold alert recorded",
        extra={
            "industry_code": industry.industry_code,
            "parameter": breach.alert_label,
            "value": breach.detected_value,
        },
    )
    return True


def compose_warning(industry: Industry, breaches: List[Breach]) -> tuple[str, str]:
    subject = f"Urgent: Water Quality Alert for {industry.name}"
    lines = [format_breach_line(b) for b in breaches]
    body = (
        f"Dear {industry.name} Team,\n\n"
        "Our monitoring system, River AI, has detected the following water quality parameter(s) "
        "exceeding safe thresholds:\n\n"
        + "\n".join(lines)
        + "\n\n"
        "This may indicate potential contamination risks. Kindly review the details and take "
        "corrective actions as necessary.\n\n"
        "Best Regards,\n"
        "River AI Monitoring Team"
    )
    return subject, body


def _owner_email(industry: Optional[Industry]) -> Optional[str]:
    if not industry or not industry.owner:
        return None
    return (industry.owner.email or "").strip() or None


def _dispatch_warning(session, notifier, industry: Industry, recipient: str, breaches: List[Breach]) -> bool:
    subject, body = compose_warning(industry, breaches)
    return send_email(session, notifier, recipient, subject, body)


def check_latest_sample(session, industry: Industry, notifier=None) -> List[Alert]:
    """Run one poll tick for *industry* and return the alerts it inserted.

    Store failures are logged and yield an empty result; the next tick retries.
    """
    try:
        sample = latest_sample(session, industry)
        if sample is None:
            return []
        breaches = evaluate(sample)
        if not breaches:
            return []

        measured_at = sample.measured_at
        new_breaches = [b for b in breaches if record_if_new(session, industry, b, measured_at)]
        if not new_breaches:
            return []
        inserted = (
            session.query(Alert)
            .filter(
                Alert.industry_code == industry.industry_code,
                Alert.water_quality_measured_at == measured_at,
                Alert.parameter.in_([b.alert_label for b in new_breaches]),
            )
            .all()
        )
    except SQLAlchemyError:
        session.rollback()
        current_app.logger.exception("Alert check failed", extra={"industry_id": industry.id})
        return []

    if notifier is not None:
        recipient = _owner_email(industry)
        if recipient:
            _dispatch_warning(session, notifier, industry, recipient, new_breaches)
        else:
            current_app.logger.warning("No owner contact for breach warning", extra={"industry_id": industry.id})
    return inserted


def send_manual_warning(session, notifier, industry: Optional[Industry]) -> str:
    """Email the industry owner about the breaches in its most recent sample.

    Returns one of the ``WARNING_*`` outcomes; "nothing to warn about" is not an error.
    """
    recipient = _owner_email(industry)
    if industry is None or recipient is None:
        current_app.logger.warning("Missing industry or owner details", extra={"industry_id": getattr(industry, "id", None)})
        return WARNING_MISSING_CONTACT

    try:
        sample = latest_sample(session, industry)
    except SQLAlchemyError:
        session.rollback()
        current_app.logger.exception("Sample lookup failed", extra={"industry_id": industry.id})
        return WARNING_NO_SAMPLES
    if sample is None:
        current_app.logger.info("No water quality data available", extra={"industry_id": industry.id})
        return WARNING_NO_SAMPLES

    breaches = evaluate(sample)
    if not breaches:
        current_app.logger.info("No parameter exceeded safe thresholds", extra={"industry_id": industry.id})
        return WARNING_NO_BREACH

    if _dispatch_warning(session, notifier, industry, recipient, breaches):
        return WARNING_SENT
    return WARNING_FAILED


def alerts_feed(session, sector: Optional[str] = None, industry: Optional[str] = None, limit: int = 200) -> dict:
    """Alerts newest first plus all sectors, optionally narrowed by sector or industry name."""
    query = session.query(Alert)
    if sector and sector.lower() != "all":
        query = query.filter(Alert.industry_type == sector)
    if industry and industry.lower() != "all":
        query = query.filter(Alert.industry_name == industry)
    alerts = query.order_by(Alert.alert_datetime.desc(), Alert.id.desc()).limit(limit).all()
    sectors = session.query(Sector).order_by(Sector.sector_name).all()
    return {
        "alerts": [a.to_dict() for a in alerts],
        "sectors": [s.to_dict() for s in sectors],
    }
