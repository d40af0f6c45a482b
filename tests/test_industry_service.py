from datetime import datetime

import pytest

from extensions import db
from models import Industry, Sector, User, WaterQualitySample
from utils.industry_service import (
    IndustryValidationError,
    add_industry,
    record_sample,
    recount_sectors,
    sector_counts,
    update_industry,
)


def _payload(code="DS-001", industry_type="Distillery", **extra):
    data = {"name": f"Plant {code}", "industry_code": code, "industry_type": industry_type}
    data.update(extra)
    return data


def test_default_sectors_are_seeded(ctx):
    counts = sector_counts(db.session)
    assert counts["Textile"] == 0
    assert counts["Chemical"] == 0


def test_adding_industry_increments_sector_count(ctx):
    add_industry(db.session, _payload("TX-100", "Textile"))
    add_industry(db.session, _payload("TX-101", "Textile"))

    assert sector_counts(db.session)["Textile"] == 2


def test_new_industry_type_creates_sector(ctx):
    add_industry(db.session, _payload())
    sector = db.session.query(Sector).filter_by(sector_name="Distillery").one()
    assert sector.count == 1


def test_duplicate_code_is_rejected_without_counting(ctx):
    add_industry(db.session, _payload("TX-200", "Textile"))

    with pytest.raises(IndustryValidationError):
        add_industry(db.session, _payload("TX-200", "Textile"))

    assert sector_counts(db.session)["Textile"] == 1
    assert db.session.query(Industry).count() == 1


def test_unknown_owner_is_rejected(ctx):
    with pytest.raises(IndustryValidationError):
        add_industry(db.session, _payload(owner_id="no-such-user"))
    assert db.session.query(Industry).count() == 0


def test_owner_account_is_linked_to_first_industry(ctx, make_user):
    owner_id = make_user("owner@distillery.co.in")
    industry = add_industry(db.session, _payload(owner_id=owner_id))

    owner = db.session.get(User, owner_id)
    assert owner.industry_id == industry.id
    assert industry.owner.email == "owner@distillery.co.in"


def test_changing_type_moves_sector_count(ctx):
    industry = add_industry(db.session, _payload("TX-300", "Textile"))

    update_industry(db.session, industry, {"industry_type": "Chemical", "location": "Vapi"})

    counts = sector_counts(db.session)
    assert counts["Textile"] == 0
    assert counts["Chemical"] == 1
    assert industry.location == "Vapi"


def test_partial_update_leaves_other_fields(ctx):
    industry = add_industry(db.session, _payload("TX-301", "Textile", location="Surat"))

    update_industry(db.session, industry, {"phone_number": "+91 99999 00000"})

    assert industry.location == "Surat"
    assert sector_counts(db.session)["Textile"] == 1


def test_recount_repairs_drifted_counts(ctx):
    add_industry(db.session, _payload("TX-400", "Textile"))
    db.session.query(Sector).filter_by(sector_name="Textile").update({Sector.count: 9})
    db.session.commit()

    counts = recount_sectors(db.session)

    assert counts["Textile"] == 1
    assert counts["Chemical"] == 0


def test_record_sample_keeps_unparseable_readings_missing(ctx):
    industry = add_industry(db.session, _payload())

    sample = record_sample(
        db.session,
        industry,
        "Incoming",
        datetime(2024, 5, 2, 9, 30),
        {"ph": "7.4", "turbidity": "N/A", "dissolved_oxygen": 6},
    )

    stored = db.session.get(WaterQualitySample, sample.id)
    assert stored.kit_type == "incoming"
    assert stored.ph == 7.4
    assert stored.turbidity is None
    assert stored.dissolved_oxygen == 6.0


def test_record_sample_rejects_unknown_kit(ctx):
    industry = add_industry(db.session, _payload())
    with pytest.raises(IndustryValidationError):
        record_sample(db.session, industry, "calibration", datetime(2024, 5, 2), {"ph": 7})
