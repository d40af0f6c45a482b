"""Industry registration, sector membership counts and kit sample intake."""
from __future__ import annotations

from datetime import datetime
from typing import Dict, Mapping, Optional

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from models import KIT_TYPES, READING_FIELDS, Industry, Sector, User, WaterQualitySample
from utils.thresholds import parse_reading

INDUSTRY_FIELDS: tuple[str, ...] = (
    "name",
    "industry_code",
    "industry_type",
    "owner_id",
    "location",
    "phone_number",
    "description",
    "registration_number",
    "water_source",
    "daily_water_consumption",
    "wastewater_generation",
    "wastewater_treatment_methods",
    "treated_water_reuse",
    "discharge_points",
    "environmental_clearance_certificate",
    "pcb_approval_status",
    "last_environmental_audit_date",
    "violations_reported",
    "fine_or_legal_actions_taken",
)


class IndustryValidationError(Exception):
    """Raised when an industry or sample cannot be stored as submitted."""


def _sector_for(session, sector_name: str) -> Sector:
    sector = session.query(Sector).filter(Sector.sector_name == sector_name).first()
    if sector:
        return sector
    sector = Sector(sector_name=sector_name, count=0)
    session.add(sector)
    session.flush()
    return sector


def _shift_sector_count(session, sector_name: str, delta: int) -> None:
    sector = _sector_for(session, sector_name)
    if delta < 0:
        session.query(Sector).filter(Sector.id == sector.id, Sector.count > 0).update(
            {Sector.count: Sector.count + delta}, synchronize_session="fetch"
        )
    else:
        session.query(Sector).filter(Sector.id == sector.id).update(
            {Sector.count: Sector.count + delta}, synchronize_session="fetch"
        )


def _link_owner(session, industry: Industry) -> None:
    if not industry.owner_id:
        return
    owner = session.get(User, industry.owner_id)
    if owner is None:
        raise IndustryValidationError("Owner account not found.")
    if owner.is_industry_owner and owner.industry_id is None:
        owner.industry_id = industry.id


def add_industry(session, data: Mapping) -> Industry:
    """Insert an industry and bump its sector count in one transaction."""
    industry = Industry(**{key: data.get(key) for key in INDUSTRY_FIELDS if key in data})
    try:
        session.add(industry)
        session.flush()
        _shift_sector_count(session, industry.industry_type, 1)
        _link_owner(session, industry)
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        current_app.logger.warning("Industry insert rejected", extra={"industry_code": data.get("industry_code")})
        raise IndustryValidationError("An industry with this code already exists.") from exc
    except IndustryValidationError:
        session.rollback()
        raise

    current_app.logger.info(
        "Industry registered",
        extra={"industry_id": industry.id, "industry_code": industry.industry_code, "sector": industry.industry_type},
    )
    return industry


def update_industry(session, industry: Industry, data: Mapping) -> Industry:
    """Apply *data* to *industry*; a changed type moves it between sector counts."""
    previous_type = industry.industry_type
    for key in INDUSTRY_FIELDS:
        if key in data:
            setattr(industry, key, data[key])
    try:
        if industry.industry_type != previous_type:
            _shift_sector_count(session, previous_type, -1)
            _shift_sector_count(session, industry.industry_type, 1)
        _link_owner(session, industry)
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        raise IndustryValidationError("An industry with this code already exists.") from exc
    except IndustryValidationError:
        session.rollback()
        raise

    current_app.logger.info("Industry updated", extra={"industry_id": industry.id})
    return industry


def sector_counts(session) -> Dict[str, int]:
    return {s.sector_name: s.count for s in session.query(Sector).order_by(Sector.sector_name).all()}


def recount_sectors(session) -> Dict[str, int]:
    """Recompute every sector count from the industries table."""
    actual = dict(
        session.query(Industry.industry_type, func.count(Industry.id)).group_by(Industry.industry_type).all()
    )
    for sector in session.query(Sector).all():
        sector.count = actual.pop(sector.sector_name, 0)
    for sector_name, count in actual.items():
        session.add(Sector(sector_name=sector_name, count=count))
    session.commit()
    return sector_counts(session)


def record_sample(
    session,
    industry: Industry,
    kit_type: str,
    measured_at: datetime,
    readings: Mapping,
) -> WaterQualitySample:
    """Store one kit report. Readings that are not numeric are kept as missing."""
    kit = (kit_type or "").strip().lower()
    if kit not in KIT_TYPES:
        raise IndustryValidationError("kit_type must be 'incoming' or 'outgoing'.")
    if measured_at is None:
        raise IndustryValidationError("measured_at is required.")

    values: Dict[str, Optional[float]] = {}
    for field in READING_FIELDS:
        raw = readings.get(field)
        values[field] = parse_reading(raw)
        if raw not in (None, "") and values[field] is None:
            current_app.logger.warning(
                "Unparseable reading skipped",
                extra={"industry_id": industry.id, "field": field, "raw": str(raw)},
            )

    sample = WaterQualitySample(industry_id=industry.id, kit_type=kit, measured_at=measured_at, **values)
    session.add(sample)
    session.commit()
    return sample
