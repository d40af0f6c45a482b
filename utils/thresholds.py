"""Safe-range rules for effluent readings and breach evaluation.

The rule table is fixed: each monitored parameter has a predicate that flags an
unsafe value and the wording used in alerts and warning emails. Temperature and
TDS are listed for display but carry no threshold, so they never breach.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, List, Mapping, Optional


@dataclass(frozen=True)
class ThresholdRule:
    parameter_key: str
    display_name: str
    label: str
    safe_range: str
    alert_label: Optional[str]
    check: Callable[[float], bool]
    bound: Callable[[float], Optional[float]]


@dataclass(frozen=True)
class Breach:
    parameter_key: str
    display_name: str
    detected_value: float
    threshold_label: str
    threshold_range: str
    threshold_value: Optional[float]
    alert_label: str


def _ph_bound(value: float) -> float:
    return 8.5 if value > 8.5 else 6.5


THRESHOLD_RULES: tuple[ThresholdRule, ...] = (
    ThresholdRule(
        parameter_key="ph",
        display_name="pH Level",
        label="Safe Range",
        safe_range="6.5–8.5",
        alert_label="pH Threshold Crossed",
        check=lambda value: value < 6.5 or value > 8.5,
        bound=_ph_bound,
    ),
    ThresholdRule(
        parameter_key="turbidity",
        display_name="Turbidity",
        label="Safe Limit",
        safe_range="<5 NTU",
        alert_label="Turbidity Threshold Crossed",
        check=lambda value: value >= 5,
        bound=lambda _value: 5.0,
    ),
    ThresholdRule(
        parameter_key="temperature",
        display_name="Temperature",
        label="Safe Range",
        safe_range="Not specified",
        alert_label=None,
        check=lambda _value: False,
        bound=lambda _value: None,
    ),
    ThresholdRule(
        parameter_key="tds",
        display_name="TDS",
        label="Safe Limit",
        safe_range="Not specified",
        alert_label=None,
        check=lambda _value: False,
        bound=lambda _value: None,
    ),
    ThresholdRule(
        parameter_key="dissolved_oxygen",
        display_name="Dissolved Oxygen",
        label="Safe Minimum",
        safe_range="5 mg/L",
        alert_label="Dissolved Oxygen Threshold Crossed",
        check=lambda value: value < 5,
        bound=lambda _value: 5.0,
    ),
)


def parse_reading(raw: Any) -> Optional[float]:
    """Return *raw* as a float, or None when it is missing or not numeric."""
    if raw is None or isinstance(raw, bool):
        return None
    try:
        value = float(str(raw).strip())
    except (TypeError, ValueError):
        return None
    if value != value or value in (float("inf"), float("-inf")):
        return None
    return value


def _reading(sample: Any, key: str) -> Any:
    if isinstance(sample, Mapping):
        return sample.get(key)
    return getattr(sample, key, None)


def evaluate(sample: Any) -> List[Breach]:
    """Return the breaches found in *sample*, in rule-table order.

    *sample* may be a ``WaterQualitySample`` or any mapping of parameter keys to
    stored values. Missing and unparseable values are skipped silently.
    """
    breaches: List[Breach] = []
    if sample is None:
        return breaches
    for rule in THRESHOLD_RULES:
        value = parse_reading(_reading(sample, rule.parameter_key))
        if value is None:
            continue
        if not rule.check(value):
            continue
        breaches.append(
            Breach(
                parameter_key=rule.parameter_key,
                display_name=rule.display_name,
                detected_value=value,
                threshold_label=f"{rule.label} {rule.safe_range}",
                threshold_range=rule.safe_range,
                threshold_value=rule.bound(value),
                alert_label=rule.alert_label or f"{rule.display_name} Threshold Crossed",
            )
        )
    return breaches


def format_value(value: float) -> str:
    """Render a reading at full precision, without a trailing ``.0`` for whole numbers."""
    value = float(value)
    return str(int(value)) if value.is_integer() else repr(value)


def format_breach_line(breach: Breach) -> str:
    label = breach.threshold_label[: -len(breach.threshold_range)].strip()
    return f"• {breach.display_name} – {label}: {breach.threshold_range}, Detected: {format_value(breach.detected_value)}"
