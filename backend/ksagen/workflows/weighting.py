"""
Weight arithmetic for generated rubrics.

All functions are pure; attribute lists are copied, never mutated in place.
Weights are percentages rounded half-up to one decimal place.
"""
import math
from typing import List, Sequence

from ..spec.output_models import RubricAttribute

KSA_CATEGORIES = ("KNOWLEDGE", "SKILL", "ABILITY")
KSA_TARGET_WITH_VALUES = 4
KSA_TARGET_WITHOUT_VALUES = 6
VALUE_WEIGHT_PER_VALUE = 4
VALUE_WEIGHT_MIN = 15
VALUE_WEIGHT_MAX = 25
TOTAL_WEIGHT = 100.0
WEIGHT_TOLERANCE = 0.5


def round_tenth(value: float) -> float:
    # Half-up, so 24.25 -> 24.3 rather than banker's rounding
    return math.floor(value * 10 + 0.5) / 10


def ksa_target(value_count: int) -> int:
    return KSA_TARGET_WITH_VALUES if value_count > 0 else KSA_TARGET_WITHOUT_VALUES


def category_slots(target: int) -> List[str]:
    """
    Distribute `target` slots over K/S/A in generation order.

    Every category gets one slot; the rest are handed out K, S, A in turn,
    never exceeding ceil(target / 3) per category.
    """
    if target < len(KSA_CATEGORIES):
        raise ValueError(f"Need at least {len(KSA_CATEGORIES)} slots, got {target}")

    cap = math.ceil(target / len(KSA_CATEGORIES))
    counts = {category: 1 for category in KSA_CATEGORIES}
    remaining = target - len(KSA_CATEGORIES)
    while remaining > 0:
        for category in KSA_CATEGORIES:
            if remaining == 0:
                break
            if counts[category] < cap:
                counts[category] += 1
                remaining -= 1

    return [category for category in KSA_CATEGORIES for _ in range(counts[category])]


def value_weight_total(value_count: int) -> float:
    if value_count <= 0:
        return 0.0
    return float(min(max(value_count * VALUE_WEIGHT_PER_VALUE, VALUE_WEIGHT_MIN), VALUE_WEIGHT_MAX))


def weight_per_value(value_count: int) -> float:
    if value_count <= 0:
        return 0.0
    return round_tenth(value_weight_total(value_count) / value_count)


def total_weight(attributes: Sequence[RubricAttribute]) -> float:
    return round(sum(a.weight for a in attributes), 1)


def rescale(attributes: Sequence[RubricAttribute], target: float) -> List[RubricAttribute]:
    current = sum(a.weight for a in attributes)
    if current <= 0:
        raise ValueError("Cannot rescale attributes with a non-positive weight total")
    return [
        a.model_copy(update={"weight": round_tenth(a.weight * target / current)})
        for a in attributes
    ]


def within_tolerance(total: float, target: float = TOTAL_WEIGHT) -> bool:
    return abs(total - target) <= WEIGHT_TOLERANCE


def normalize(attributes: Sequence[RubricAttribute]) -> List[RubricAttribute]:
    """Rescale to 100 when outside tolerance; the heaviest attribute absorbs any rounding residual."""
    normalized = list(attributes)
    if not normalized or within_tolerance(total_weight(normalized)):
        return normalized

    normalized = rescale(normalized, TOTAL_WEIGHT)
    residual = round(TOTAL_WEIGHT - total_weight(normalized), 1)
    if not within_tolerance(TOTAL_WEIGHT - residual):
        heaviest = max(range(len(normalized)), key=lambda i: normalized[i].weight)
        adjusted = round_tenth(normalized[heaviest].weight + residual)
        normalized[heaviest] = normalized[heaviest].model_copy(update={"weight": adjusted})
    return normalized
