"""Core interfaces shared by the line search and the BFGS optimizer."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, List, Optional, Protocol

import numpy as np

from .utils import approx_grad, forward_grad

Array = np.ndarray
Objective = Callable[[Array], float]
Gradient = Callable[[Array], Array]

RTOL = 1e-8
ATOL = 1e-10


class OptimizationError(RuntimeError):
    """Raised when an optimization run cannot continue from its current state."""


class LineSearchError(OptimizationError):
    """Raised when no step length satisfying the strong Wolfe conditions is found."""


class CurvatureError(OptimizationError):
    """Raised when the secant pair has (numerically) zero curvature, yᵗs ≈ 0."""


class DifferentiableFunction(Protocol):
    """Capability required of anything the optimizer minimizes.

    Any object exposing these two methods can be optimized; no base class is
    involved.
    """

    def evaluate(self, point: Array) -> float:
        """Return the scalar function value at ``point``."""
        ...

    def gradient_at(self, point: Array, value: float) -> Array:
        """Return the gradient at ``point``, where ``value`` is f(point)."""
        ...


@dataclass(frozen=True)
class FunctionObjective:
    """Adapter turning plain callables into a :class:`DifferentiableFunction`.

    When ``grad`` is None the gradient is approximated by finite differences:
    ``"forward"`` reuses the known function value (n extra evaluations),
    ``"central"`` is more accurate (2n extra evaluations).
    """

    fun: Objective
    grad: Optional[Gradient] = None
    method: str = "central"
    eps: float = 1e-6

    def __post_init__(self) -> None:
        if self.method not in ("central", "forward"):
            raise ValueError(f"method must be 'central' or 'forward', got {self.method!r}")
        if self.eps <= 0:
            raise ValueError(f"eps must be positive, got {self.eps}")

    def evaluate(self, point: Array) -> float:
        return float(self.fun(point))

    def gradient_at(self, point: Array, value: float) -> Array:
        if self.grad is not None:
            return np.asarray(self.grad(point), dtype=float)
        if self.method == "forward":
            return forward_grad(self.fun, point, value, eps=self.eps)
        return approx_grad(self.fun, point, eps=self.eps)


@dataclass
class OptimizeResult:
    """Result of a BFGS run."""

    x: Array
    fun: float
    inv_hessian: Array
    nit: int
    success: bool
    message: str
    grad_norm: float
    nfev: int
    njev: int
    history: List[Array] = field(default_factory=list)


__all__ = [
    "ATOL",
    "Array",
    "CurvatureError",
    "DifferentiableFunction",
    "FunctionObjective",
    "Gradient",
    "LineSearchError",
    "Objective",
    "OptimizationError",
    "OptimizeResult",
    "RTOL",
]
