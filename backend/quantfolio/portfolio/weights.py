"""Per-strategy portfolio weights."""
from __future__ import annotations

from enum import Enum
from typing import Sequence

from quantfolio.data.reconciliation import StrategyRecord

MIN_DRAWDOWN = 0.01


class WeightMethod(str, Enum):
    EQUAL = "EQUAL"
    INVERSE_DD = "INVERSE_DD"
    SHARPE = "SHARPE"


def _equal(records: Sequence[StrategyRecord]) -> dict[int, float]:
    weight = 1.0 / len(records)
    return {record.magic_number: weight for record in records}


def calculate_weights(
    records: Sequence[StrategyRecord],
    method: WeightMethod | str = WeightMethod.EQUAL,
) -> dict[int, float]:
    """
    Weights keyed by magic number that sum to 1.

    INVERSE_DD favours strategies with smaller drawdowns; SHARPE ignores
    negative ratios and falls back to equal weights when none is positive.
    """
    if not records:
        return {}
    method = WeightMethod(method)

    if method == WeightMethod.INVERSE_DD:
        inverse = {r.magic_number: 1.0 / max(abs(r.max_drawdown), MIN_DRAWDOWN) for r in records}
        total = sum(inverse.values())
        return {magic: value / total for magic, value in inverse.items()}

    if method == WeightMethod.SHARPE:
        positive = {r.magic_number: max(r.sharpe_ratio, 0.0) for r in records}
        total = sum(positive.values())
        if total <= 0:
            return _equal(records)
        return {magic: value / total for magic, value in positive.items()}

    return _equal(records)
