from __future__ import annotations

import math
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Sequence


def round_to_significant_figures(value: float, figures: int = 4) -> float:
    """Round half-up to ``figures`` significant figures.

    The decimal representation of ``value`` is rounded, not its binary
    expansion, so 2.0625 becomes 2.063 and repeated application is stable.
    """
    if figures < 1:
        raise ValueError(f"figures must be >= 1, got {figures}")
    value = float(value)
    if value == 0.0 or not math.isfinite(value):
        return value
    exact = Decimal(repr(value))
    quantum = Decimal(1).scaleb(exact.adjusted() - figures + 1)
    return float(exact.quantize(quantum, rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class PiecewiseLinearTransform:
    """Continuous piecewise-linear map defined by ordered knots.

    Below the first knot the first y-value is returned, above the last knot
    the last y-value. Between knots the containing segment is found by
    ordered comparison, lower bound inclusive, so zero-width segments
    (repeated knots) are never selected.
    """

    xs: tuple[float, ...]
    ys: tuple[float, ...]
    _slopes: tuple[float, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if len(self.xs) != len(self.ys):
            raise ValueError(f"Knot count mismatch: {len(self.xs)} x-values, {len(self.ys)} y-values")
        if not self.xs:
            raise ValueError("At least one knot is required")
        for left, right in zip(self.xs, self.xs[1:]):
            if right < left:
                raise ValueError(f"Knots must be non-decreasing, got {list(self.xs)}")
        slopes = []
        for i in range(len(self.xs) - 1):
            width = self.xs[i + 1] - self.xs[i]
            slopes.append(0.0 if width == 0 else (self.ys[i + 1] - self.ys[i]) / width)
        object.__setattr__(self, "_slopes", tuple(slopes))

    def __call__(self, value: float) -> float:
        return self.transform(value)

    def transform(self, value: float) -> float:
        x = float(value)
        if x <= self.xs[0]:
            return self.ys[0]
        if x >= self.xs[-1]:
            return self.ys[-1]
        for i, slope in enumerate(self._slopes):
            if self.xs[i] <= x < self.xs[i + 1]:
                return self.ys[i] + slope * (x - self.xs[i])
        return self.ys[-1]

    def knots(self) -> list[tuple[float, float]]:
        return list(zip(self.xs, self.ys))


def _build(xs: Sequence[float], ys: Sequence[float]) -> PiecewiseLinearTransform:
    return PiecewiseLinearTransform(tuple(float(x) for x in xs), tuple(float(y) for y in ys))


def ramp(high_value: float, low_value: float, x1: float, x2: float) -> PiecewiseLinearTransform:
    """``high_value`` up to x1, ``low_value`` from x2, linear in between."""
    return _build([x1, x2], [high_value, low_value])


def hump1(
    floor: float,
    peak: float,
    tail_floor: float,
    x0: float,
    x1: float,
    x2: float,
    x3: float,
) -> PiecewiseLinearTransform:
    """Single plateau: ``floor`` up to x0, ``peak`` on [x1, x2], ``tail_floor`` from x3."""
    return _build([x0, x1, x2, x3], [floor, peak, peak, tail_floor])


def hump2(
    floor: float,
    peak: float,
    secondary_peak: float,
    tail_floor: float,
    x0: float,
    x1: float,
    x2: float,
    x3: float,
    x4: float,
    x5: float,
) -> PiecewiseLinearTransform:
    """Two plateaus: ``peak`` on [x1, x2] then ``secondary_peak`` on [x3, x4].

    ``floor`` up to x0 and ``tail_floor`` from x5. Together with the two
    open ends this is the eight-knot envelope used for heteroatom counts.
    """
    return _build(
        [x0, x1, x2, x3, x4, x5],
        [floor, peak, peak, secondary_peak, secondary_peak, tail_floor],
    )
