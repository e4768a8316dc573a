"""
Instance size normalization.

AWS expresses the compute power of an instance as a normalization factor that
depends only on its size suffix (``large`` is 4 units, ``2xlarge`` is 16, ...).
Reservations of one family can be compared or converted through these units.
"""

import re
from typing import Dict, Tuple

UNKNOWN = "unknown"

NORMALIZATION_FACTORS: Dict[str, float] = {
    "nano": 0.25,
    "micro": 0.5,
    "small": 1,
    "medium": 2,
    "large": 4,
    "xlarge": 8,
    "2xlarge": 16,
    "4xlarge": 32,
    "8xlarge": 64,
    "9xlarge": 72,
    "10xlarge": 80,
    "12xlarge": 96,
    "16xlarge": 128,
    "18xlarge": 144,
    "24xlarge": 192,
    "32xlarge": 256,
}

FACTOR_EPSILON = 1e-3

# family is everything before the last dot, size is the trailing token
_INSTANCE_TYPE_RE = re.compile(r"^(.+)\.([0-9]*x?[a-z]+)$")


def split_instance_type(instance_type: str) -> Tuple[str, str]:
    """Split ``family.size`` into its parts, ``("", "")`` when malformed"""
    if not isinstance(instance_type, str):
        return "", ""
    match = _INSTANCE_TYPE_RE.match(instance_type.strip())
    if not match:
        return "", ""
    return match.group(1), match.group(2)


def normalization_factor(instance_type: str) -> Tuple[str, float]:
    """Return ``(family, factor)`` for an instance type or DB instance class

    Unknown sizes and malformed strings give ``("unknown", 0.0)``.

    >>> normalization_factor("m5.2xlarge")
    ('m5', 16)
    >>> normalization_factor("db.r5.large")
    ('db.r5', 4)
    """
    family, size = split_instance_type(instance_type)
    if not family or size not in NORMALIZATION_FACTORS:
        return UNKNOWN, 0.0
    return family, NORMALIZATION_FACTORS[size]


def inverse_factor(factor: float) -> str:
    """Return the size token whose factor matches ``factor``, or ``"unknown"``"""
    for size, value in NORMALIZATION_FACTORS.items():
        if abs(value - factor) < FACTOR_EPSILON:
            return size
    return UNKNOWN


def resolve_instance_type(family: str, factor: float) -> str:
    """Rebuild an instance type from a family and a normalization factor"""
    return f"{family}.{inverse_factor(factor)}"
