from datetime import datetime

import pytest

from utils.series import chart_rows, merge_series, split_by_kit


T1 = datetime(2024, 5, 1, 10, 0, 0)
T2 = datetime(2024, 5, 1, 11, 0, 0)


def _sample(kit_type, measured_at, **readings):
    return {"kit_type": kit_type, "measured_at": measured_at, **readings}


def test_matching_timestamps_merge_into_one_row():
    rows = merge_series([_sample("incoming", T1, ph=7.1)], [_sample("outgoing", T1, ph=7.4)])

    assert len(rows) == 1
    assert rows[0]["measured_at"] == T1
    assert rows[0]["phIncoming"] == 7.1
    assert rows[0]["phOutgoing"] == 7.4


def test_distinct_timestamps_stay_single_sided():
    rows = merge_series([_sample("incoming", T1, ph=7.1)], [_sample("outgoing", T2, ph=7.4)])

    assert len(rows) == 2
    first, second = rows
    assert first["phIncoming"] == 7.1 and "phOutgoing" not in first
    assert second["phOutgoing"] == 7.4 and "phIncoming" not in second


def test_rows_cover_every_reading_field():
    row = merge_series([_sample("incoming", T1, ph=7.0, turbidity=2.0)], [])[0]
    assert set(row) == {
        "measured_at",
        "phIncoming",
        "turbidityIncoming",
        "temperatureIncoming",
        "tdsIncoming",
        "dissolved_oxygenIncoming",
    }
    assert row["temperatureIncoming"] is None


def test_rows_are_sorted_by_timestamp():
    rows = merge_series([_sample("incoming", T2, ph=7.0)], [_sample("outgoing", T1, ph=7.2)])
    assert [r["measured_at"] for r in rows] == [T1, T2]


def test_iso_strings_sort_with_utc_suffix():
    rows = merge_series(
        [_sample("incoming", "2024-05-01T12:00:00Z", ph=7.0)],
        [_sample("outgoing", "2024-05-01T09:00:00Z", ph=7.2)],
    )
    assert [r["measured_at"] for r in rows] == ["2024-05-01T09:00:00Z", "2024-05-01T12:00:00Z"]


def test_split_by_kit_ignores_case_and_unknown_kits():
    samples = [
        _sample("Incoming", T1),
        _sample("OUTGOING", T1),
        _sample("outgoing", T2),
        _sample("calibration", T2),
    ]
    incoming, outgoing = split_by_kit(samples)
    assert len(incoming) == 1
    assert len(outgoing) == 2


def test_combined_view_serializes_timestamps():
    rows = chart_rows([_sample("incoming", T1, ph=7.1), _sample("outgoing", T1, ph=7.4)], "combined")
    assert rows[0]["measured_at"] == "2024-05-01T10:00:00"
    assert rows[0]["phOutgoing"] == 7.4


def test_single_kit_view_returns_sorted_rows():
    rows = chart_rows([_sample("incoming", T2, ph=7.0), _sample("incoming", T1, ph=6.9), _sample("outgoing", T1)], "incoming")
    assert [r["ph"] for r in rows] == [6.9, 7.0]


def test_unknown_view_is_rejected():
    with pytest.raises(ValueError):
        chart_rows([], "weekly")
