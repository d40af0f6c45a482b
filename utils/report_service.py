"""Period reports for one industry: reading summaries and alerts within a window."""
from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Dict, List, Optional, Tuple

from models import Alert, WaterQualitySample
from utils.thresholds import THRESHOLD_RULES, format_value

REPORT_PERIODS: Dict[str, Tuple[str, Optional[timedelta], str]] = {
    "1-day": ("Daily Report", None, ""),
    "1-week": ("Weekly Report", timedelta(days=7), "Last 7 Days"),
    "1-month": ("Monthly Report", timedelta(days=30), "Last 30 Days"),
    "1-year": ("Annual Report", timedelta(days=365), "Last 12 Months"),
}


class ReportPeriodError(ValueError):
    """Raised for an unknown report period."""


def resolve_period(period: str, day: Optional[date] = None, now: Optional[datetime] = None):
    """Return (title, label, start, end) for *period*.

    ``1-day`` covers the given calendar *day* (today when omitted); the other
    periods are rolling windows ending at *now*.
    """
    if period not in REPORT_PERIODS:
        raise ReportPeriodError(f"Unknown report period: {period}")
    now = now or datetime.utcnow()
    title, window, label = REPORT_PERIODS[period]
    if window is None:
        day = day or now.date()
        start = datetime.combine(day, time.min)
        return title, day.strftime("%B %d, %Y"), start, start + timedelta(days=1)
    return title, label, now - window, now


def _summarize(samples: List[WaterQualitySample]) -> List[Dict]:
    summary: List[Dict] = []
    for rule in THRESHOLD_RULES:
        for kit_type in ("incoming", "outgoing"):
            values = [
                getattr(s, rule.parameter_key)
                for s in samples
                if (s.kit_type or "").lower() == kit_type and getattr(s, rule.parameter_key) is not None
            ]
            if not values:
                continue
            summary.append(
                {
                    "parameter": rule.parameter_key,
                    "display_name": rule.display_name,
                    "kit_type": kit_type,
                    "count": len(values),
                    "min": format_value(min(values)),
                    "max": format_value(max(values)),
                    "average": f"{sum(values) / len(values):.2f}",
                }
            )
    return summary


def build_report_payload(session, industry, period: str, day: Optional[date] = None, now: Optional[datetime] = None) -> Dict:
    title, label, start, end = resolve_period(period, day, now)
    samples = (
        session.query(WaterQualitySample)
        .filter(
            WaterQualitySample.industry_id == industry.id,
            WaterQualitySample.measured_at >= start,
            WaterQualitySample.measured_at < end,
        )
        .order_by(WaterQualitySample.measured_at)
        .all()
    )
    alerts = (
        session.query(Alert)
        .filter(
            Alert.industry_code == industry.industry_code,
            Alert.water_quality_measured_at >= start,
            Alert.water_quality_measured_at < end,
        )
        .order_by(Alert.alert_datetime)
        .all()
    )
    return {
        "title": title,
        "period": period,
        "period_label": label,
        "generated_at": (now or datetime.utcnow()).strftime("%Y-%m-%d %H:%M"),
        "industry": industry.to_dict(),
        "owner_email": industry.owner.email if industry.owner else None,
        "sample_count": len(samples),
        "summary": _summarize(samples),
        "alerts": [a.to_dict() for a in alerts],
    }
