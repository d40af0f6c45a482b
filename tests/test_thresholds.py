from types import SimpleNamespace

import pytest

from utils.thresholds import THRESHOLD_RULES, evaluate, format_breach_line, parse_reading


def test_safe_sample_has_no_breaches():
    assert evaluate({"ph": 7.0, "turbidity": 4.9, "dissolved_oxygen": 5.0}) == []


def test_high_ph_is_reported_against_safe_range():
    breaches = evaluate({"ph": 9.2})

    assert len(breaches) == 1
    breach = breaches[0]
    assert breach.parameter_key == "ph"
    assert breach.threshold_label == "Safe Range 6.5–8.5"
    assert breach.detected_value == 9.2
    assert breach.threshold_value == 8.5
    assert breach.alert_label == "pH Threshold Crossed"


@pytest.mark.parametrize(
    "ph, breached",
    [(6.0, True), (6.4999, True), (6.5, False), (7.0, False), (8.5, False), (8.51, True)],
)
def test_ph_range_is_inclusive(ph, breached):
    assert bool(evaluate({"ph": ph})) is breached


def test_low_ph_uses_lower_bound():
    assert evaluate({"ph": 6.0})[0].threshold_value == 6.5


@pytest.mark.parametrize(
    "reading, breached",
    [
        ({"turbidity": 4.99}, False),
        ({"turbidity": 5}, True),
        ({"dissolved_oxygen": 5}, False),
        ({"dissolved_oxygen": 4.99}, True),
    ],
)
def test_turbidity_and_dissolved_oxygen_limits(reading, breached):
    assert bool(evaluate(reading)) is breached


def test_temperature_and_tds_never_breach():
    assert evaluate({"temperature": 95, "tds": 12000}) == []


def test_breaches_follow_rule_table_order():
    breaches = evaluate({"dissolved_oxygen": 2.1, "turbidity": 30, "ph": 10})

    assert [b.parameter_key for b in breaches] == ["ph", "turbidity", "dissolved_oxygen"]
    assert [r.parameter_key for r in THRESHOLD_RULES] == ["ph", "turbidity", "temperature", "tds", "dissolved_oxygen"]


def test_non_numeric_readings_are_skipped():
    assert evaluate({"ph": "N/A", "turbidity": "cloudy", "dissolved_oxygen": None}) == []


def test_numeric_strings_are_evaluated():
    breaches = evaluate({"ph": " 9.2 ", "turbidity": "12"})
    assert [b.detected_value for b in breaches] == [9.2, 12.0]


def test_object_samples_are_read_by_attribute():
    sample = SimpleNamespace(ph=5.5, turbidity=None, temperature=None, tds=None, dissolved_oxygen=6.0)
    assert [b.parameter_key for b in evaluate(sample)] == ["ph"]


def test_missing_sample_yields_nothing():
    assert evaluate(None) == []


@pytest.mark.parametrize("raw", [None, "", "N/A", "abc", True, float("nan"), float("inf")])
def test_parse_reading_rejects_unusable_values(raw):
    assert parse_reading(raw) is None


def test_parse_reading_accepts_numbers():
    assert parse_reading("7.25") == 7.25
    assert parse_reading(3) == 3.0


def test_breach_line_for_ph():
    line = format_breach_line(evaluate({"ph": 9.2})[0])
    assert line == "• pH Level – Safe Range: 6.5–8.5, Detected: 9.2"


def test_breach_line_for_turbidity_drops_trailing_zero():
    line = format_breach_line(evaluate({"turbidity": 12.0})[0])
    assert line == "• Turbidity – Safe Limit: <5 NTU, Detected: 12"


@pytest.mark.parametrize(
    "reading, detected",
    [
        ({"ph": 8.5123456}, "Detected: 8.5123456"),
        ({"turbidity": 1234567}, "Detected: 1234567"),
        ({"dissolved_oxygen": 0.000125}, "Detected: 0.000125"),
    ],
)
def test_breach_line_keeps_full_precision(reading, detected):
    assert format_breach_line(evaluate(reading)[0]).endswith(detected)
