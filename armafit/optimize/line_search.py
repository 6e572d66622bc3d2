"""Strong Wolfe line search following Nocedal & Wright, Algorithms 3.5 and 3.6."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

import numpy as np

from armafit.logging import get_logger

from .core import Array, DifferentiableFunction, LineSearchError

logger = get_logger(__name__)


@dataclass(frozen=True)
class LineSearchConfig:
    """Constants of the strong Wolfe search.

    Args:
        c1: Sufficient-decrease (Armijo) constant.
        c2: Curvature constant.
        alpha_max: Largest step length tried.
        alpha0: First trial step length.
        max_iter: Budget of the bracketing phase.
        max_zoom: Budget of the zoom phase.
    """

    c1: float = 1e-4
    c2: float = 0.9
    alpha_max: float = 100.0
    alpha0: float = 1.0
    max_iter: int = 50
    max_zoom: int = 50

    def __post_init__(self) -> None:
        if not (0 < self.c1 < self.c2 < 1):
            raise ValueError("Require 0 < c1 < c2 < 1 for Wolfe conditions.")
        if not (0 < self.alpha0 <= self.alpha_max):
            raise ValueError(
                f"Require 0 < alpha0 <= alpha_max, got alpha0={self.alpha0}, "
                f"alpha_max={self.alpha_max}"
            )
        if self.max_iter < 1 or self.max_zoom < 1:
            raise ValueError("max_iter and max_zoom must be >= 1")


@dataclass(frozen=True)
class LineSearchResult:
    """Accepted step with φ(α), φ′(α) and the number of φ evaluations."""

    alpha: float
    fun: float
    slope: float
    nfev: int


class LineFunction:
    """Restriction φ(α) = f(x + αd) of an objective to a search ray.

    Values and gradients are cached per α, so the gradient at the accepted
    step can be handed back to the optimizer without recomputation.
    """

    def __init__(
        self,
        objective: DifferentiableFunction,
        x: Array,
        direction: Array,
        value0: Optional[float] = None,
        gradient0: Optional[Array] = None,
    ) -> None:
        self.objective = objective
        self.x = np.asarray(x, dtype=float)
        self.direction = np.asarray(direction, dtype=float)
        self._values: dict[float, float] = {}
        self._grads: dict[float, Array] = {}
        self.nfev = 0
        self.njev = 0
        if value0 is not None:
            self.record(0.0, value0, gradient0)
        elif gradient0 is not None:
            self._grads[0.0] = np.asarray(gradient0, dtype=float)

    def record(self, alpha: float, value: float, gradient: Optional[Array] = None) -> None:
        """Store known values at ``alpha`` without counting evaluations.

        Entries already cached are kept.
        """
        self._values.setdefault(alpha, float(value))
        if gradient is not None:
            self._grads.setdefault(alpha, np.asarray(gradient, dtype=float))

    def point(self, alpha: float) -> Array:
        return self.x + alpha * self.direction

    def value(self, alpha: float) -> float:
        if alpha not in self._values:
            self._values[alpha] = float(self.objective.evaluate(self.point(alpha)))
            self.nfev += 1
        return self._values[alpha]

    def gradient(self, alpha: float) -> Array:
        if alpha not in self._grads:
            self._grads[alpha] = np.asarray(
                self.objective.gradient_at(self.point(alpha), self.value(alpha)),
                dtype=float,
            )
            self.njev += 1
        return self._grads[alpha]

    def slope(self, alpha: float) -> float:
        return float(np.dot(self.gradient(alpha), self.direction))


def _sufficient_decrease(value: float, alpha: float, f0: float, slope0: float, c1: float) -> bool:
    return math.isfinite(value) and value <= f0 + c1 * alpha * slope0


def _interpolate(alo: float, f_lo: float, d_lo: float, ahi: float, f_hi: float) -> Optional[float]:
    """Minimizer of the quadratic matching φ(alo), φ′(alo) and φ(ahi)."""
    if not math.isfinite(f_hi):
        return None
    delta = ahi - alo
    curvature = (f_hi - f_lo - d_lo * delta) / (delta * delta)
    if curvature <= 0:
        return None
    return alo - d_lo / (2.0 * curvature)


def _zoom(
    line: LineFunction,
    alo: float,
    ahi: float,
    f0: float,
    slope0: float,
    config: LineSearchConfig,
) -> LineSearchResult:
    """Zoom stage: shrink the bracket until a strong Wolfe point is found.

    ``alo`` always satisfies sufficient decrease and has the lowest value
    seen so far; its slope is already known.
    """
    for _ in range(config.max_zoom):
        width = abs(ahi - alo)
        if width <= 1e-14 * max(1.0, abs(alo)):
            break
        f_lo = line.value(alo)
        alpha = _interpolate(alo, f_lo, line.slope(alo), ahi, line.value(ahi))
        lower, upper = min(alo, ahi), max(alo, ahi)
        # keep the trial well inside the bracket
        if alpha is None or not (lower + 0.1 * width <= alpha <= upper - 0.1 * width):
            alpha = 0.5 * (alo + ahi)

        f_alpha = line.value(alpha)
        if not _sufficient_decrease(f_alpha, alpha, f0, slope0, config.c1) or f_alpha >= f_lo:
            ahi = alpha
            continue
        slope = line.slope(alpha)
        if abs(slope) <= -config.c2 * slope0:
            return LineSearchResult(alpha, f_alpha, slope, line.nfev)
        if slope * (ahi - alo) >= 0:
            ahi = alo
        alo = alpha
    raise LineSearchError(
        f"Line search bracket collapsed at alpha={alo:.6g} without satisfying "
        "the strong Wolfe conditions."
    )


def strong_wolfe(
    line: LineFunction,
    f0: float,
    slope0: float,
    config: Optional[LineSearchConfig] = None,
) -> LineSearchResult:
    """Find a step length satisfying the strong Wolfe conditions.

    The returned α satisfies ``φ(α) <= f0 + c1 α slope0`` and
    ``|φ′(α)| <= c2 |slope0|``.

    Parameters
    ----------
    line:
        The objective restricted to the search ray.
    f0:
        Function value at the current point, φ(0).
    slope0:
        Directional derivative at the current point, φ′(0). Must be negative.
    config:
        Line-search constants; defaults to ``LineSearchConfig()``.

    Raises
    ------
    LineSearchError
        If the direction is not a descent direction, the zoom bracket
        collapses, or a budget is exhausted.
    """
    if config is None:
        config = LineSearchConfig()
    if not slope0 < 0:
        raise LineSearchError(f"Search direction must be a descent direction, got slope {slope0}")

    line.record(0.0, f0)
    alpha_prev = 0.0
    f_prev = f0
    alpha = config.alpha0
    for iteration in range(config.max_iter):
        f_alpha = line.value(alpha)
        if not _sufficient_decrease(f_alpha, alpha, f0, slope0, config.c1) or (
            iteration > 0 and f_alpha >= f_prev
        ):
            return _zoom(line, alpha_prev, alpha, f0, slope0, config)
        slope = line.slope(alpha)
        if abs(slope) <= -config.c2 * slope0:
            return LineSearchResult(alpha, f_alpha, slope, line.nfev)
        if slope >= 0:
            return _zoom(line, alpha, alpha_prev, f0, slope0, config)
        if alpha >= config.alpha_max:
            break
        alpha_prev, f_prev = alpha, f_alpha
        alpha = min(2.0 * alpha, config.alpha_max)
    logger.debug("Bracketing stopped at alpha=%g after %d evaluations", alpha, line.nfev)
    raise LineSearchError(
        f"No step up to alpha_max={config.alpha_max} satisfies the strong Wolfe conditions."
    )


__all__ = ["LineFunction", "LineSearchConfig", "LineSearchResult", "strong_wolfe"]
