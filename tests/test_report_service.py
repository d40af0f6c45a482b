from datetime import date, datetime, timedelta

import pytest

from extensions import db
from models import Industry
from utils.alert_engine import check_latest_sample
from utils.pdf_generator import generate_pdf
from utils.report_service import ReportPeriodError, build_report_payload, resolve_period

NOW = datetime(2024, 5, 10, 15, 30)


def test_daily_period_covers_one_calendar_day():
    title, label, start, end = resolve_period("1-day", date(2024, 5, 1), now=NOW)

    assert title == "Daily Report"
    assert label == "May 01, 2024"
    assert start == datetime(2024, 5, 1)
    assert end == datetime(2024, 5, 2)


def test_rolling_periods_end_now():
    title, label, start, end = resolve_period("1-week", now=NOW)

    assert (title, label) == ("Weekly Report", "Last 7 Days")
    assert end - start == timedelta(days=7)
    assert end == NOW


def test_unknown_period():
    with pytest.raises(ReportPeriodError):
        resolve_period("fortnight")


def test_payload_summarizes_samples_and_alerts(ctx, make_industry, add_sample):
    industry_id = make_industry("TX-1")
    add_sample(industry_id, datetime(2024, 5, 9, 8), kit_type="incoming", ph=7.0)
    add_sample(industry_id, datetime(2024, 5, 9, 9), kit_type="incoming", ph=8.0)
    add_sample(industry_id, datetime(2024, 5, 9, 10), kit_type="outgoing", ph=9.1)
    add_sample(industry_id, datetime(2024, 4, 1, 10), kit_type="outgoing", ph=1.0)
    industry = db.session.get(Industry, industry_id)
    check_latest_sample(db.session, industry)

    payload = build_report_payload(db.session, industry, "1-week", now=NOW)

    assert payload["sample_count"] == 3
    ph_incoming = next(s for s in payload["summary"] if s["parameter"] == "ph" and s["kit_type"] == "incoming")
    assert (ph_incoming["min"], ph_incoming["max"], ph_incoming["average"]) == ("7", "8", "7.50")
    assert [a["parameter"] for a in payload["alerts"]] == ["pH Threshold Crossed"]
    assert generate_pdf(payload).startswith(b"%PDF")
