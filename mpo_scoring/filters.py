from __future__ import annotations

import logging
import math
from enum import Enum
from typing import Any, Iterable, Iterator

import numpy as np
import pandas as pd

from mpo_scoring.molecules import MoleculeRecord

LOG = logging.getLogger(__name__)


class FilterMode(str, Enum):
    NONE = "none"
    PASS = "pass"
    FAIL = "fail"

    @classmethod
    def parse(cls, value: "FilterMode | str | None") -> "FilterMode":
        if value is None:
            return cls.NONE
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            raise ValueError(f"Unknown filter mode {value!r}. Expected one of: none, pass, fail") from exc


def _bound(value: Any, name: str) -> float | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        bound = float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{name} must be numeric, got {value!r}") from exc
    if math.isnan(bound):
        raise ValueError(f"{name} must not be NaN")
    return bound


def validate_bounds(min_value: Any = None, max_value: Any = None) -> tuple[float | None, float | None]:
    low = _bound(min_value, "min_value")
    high = _bound(max_value, "max_value")
    if low is not None and high is not None and low > high:
        raise ValueError(f"min_value {low} is greater than max_value {high}")
    return low, high


def _score(value: Any) -> float | None:
    if value is None:
        return None
    try:
        score = float(value)
    except (TypeError, ValueError):
        return None
    return score if math.isfinite(score) else None


def passes_filter(
    score: Any,
    mode: FilterMode | str,
    min_value: float | None = None,
    max_value: float | None = None,
) -> bool:
    """Decide whether a molecule with ``score`` is retained.

    An absent score is dropped in pass mode and kept in fail mode.
    """
    mode = FilterMode.parse(mode)
    if mode is FilterMode.NONE:
        return True
    value = _score(score)
    if mode is FilterMode.PASS:
        if value is None:
            return False
        return (min_value is None or value >= min_value) and (max_value is None or value <= max_value)
    if value is None:
        return True
    return (min_value is not None and value < min_value) or (max_value is not None and value > max_value)


def apply_filter(
    stream: Iterable[MoleculeRecord],
    mode: FilterMode | str,
    field_name: str,
    min_value: Any = None,
    max_value: Any = None,
) -> Iterator[MoleculeRecord]:
    """Lazily filter a molecule stream on ``field_name``. Bounds are validated immediately."""
    mode = FilterMode.parse(mode)
    low, high = validate_bounds(min_value, max_value)
    if mode is FilterMode.NONE:
        return iter(stream)
    LOG.info("Adding %s filters of %s and %s", mode.value, low, high)
    return (m for m in stream if passes_filter(m.get_property(field_name), mode, low, high))


def filter_frame(
    df: pd.DataFrame,
    mode: FilterMode | str,
    field_name: str,
    min_value: Any = None,
    max_value: Any = None,
) -> pd.DataFrame:
    mode = FilterMode.parse(mode)
    low, high = validate_bounds(min_value, max_value)
    if mode is FilterMode.NONE:
        return df.copy()
    if field_name not in df.columns:
        raise ValueError(f"Missing score column {field_name!r}")

    scores = pd.to_numeric(df[field_name], errors="coerce").replace([np.inf, -np.inf], np.nan)
    present = scores.notna()
    above_min = scores >= low if low is not None else pd.Series(True, index=df.index)
    below_max = scores <= high if high is not None else pd.Series(True, index=df.index)

    if mode is FilterMode.PASS:
        keep = present & above_min & below_max
    else:
        keep = ~present | ~(above_min & below_max)
    return df.loc[keep].copy()
