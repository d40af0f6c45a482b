"""Chart-ready views over incoming and outgoing kit samples."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Tuple

from models import READING_FIELDS

CHART_VIEWS: tuple[str, ...] = ("incoming", "outgoing", "combined")


def _field(sample: Any, key: str) -> Any:
    if isinstance(sample, Mapping):
        return sample.get(key)
    return getattr(sample, key, None)


def _as_row(sample: Any) -> Dict[str, Any]:
    if isinstance(sample, Mapping):
        return dict(sample)
    return sample.to_dict()


def parse_timestamp(value: Any) -> datetime:
    """Return *value* as a naive UTC datetime; ISO-8601 strings may carry an offset or `Z`."""
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if not isinstance(value, datetime):
        raise TypeError(f"Unsupported measured_at value: {value!r}")
    # Naive timestamps are stored in UTC.
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def split_by_kit(samples: Iterable[Any]) -> Tuple[List[Any], List[Any]]:
    """Partition *samples* into (incoming, outgoing) by case-insensitive kit type."""
    incoming: List[Any] = []
    outgoing: List[Any] = []
    for sample in samples:
        kit_type = (_field(sample, "kit_type") or "").lower()
        if kit_type == "incoming":
            incoming.append(sample)
        elif kit_type == "outgoing":
            outgoing.append(sample)
    return incoming, outgoing


def merge_series(incoming: Iterable[Any], outgoing: Iterable[Any]) -> List[Dict[str, Any]]:
    """Join incoming and outgoing samples on their exact ``measured_at`` value.

    Each row holds ``<param>Incoming`` and/or ``<param>Outgoing`` keys. A
    timestamp seen on one side only keeps just that side's keys.
    """
    rows: Dict[Any, Dict[str, Any]] = {}
    for suffix, samples in (("Incoming", incoming), ("Outgoing", outgoing)):
        for sample in samples:
            key = _field(sample, "measured_at")
            row = rows.setdefault(key, {"measured_at": key})
            for param in READING_FIELDS:
                row[f"{param}{suffix}"] = _field(sample, param)
    return sorted(rows.values(), key=lambda r: parse_timestamp(r["measured_at"]))


def chart_rows(samples: Iterable[Any], view: str) -> List[Dict[str, Any]]:
    if view not in CHART_VIEWS:
        raise ValueError(f"Unknown chart view: {view}")
    incoming, outgoing = split_by_kit(samples)
    if view == "combined":
        rows = merge_series(incoming, outgoing)
        for row in rows:
            if isinstance(row["measured_at"], datetime):
                row["measured_at"] = row["measured_at"].isoformat()
        return rows
    selected = incoming if view == "incoming" else outgoing
    ordered = sorted(selected, key=lambda s: parse_timestamp(_field(s, "measured_at")))
    return [_as_row(s) for s in ordered]
