"""BFGS quasi-Newton minimization with a strong Wolfe line search.

The iteration is written as an immutable-state recurrence: :func:`bfgs_step`
maps one :class:`BFGSState` to the next, :func:`bfgs_iterates` lazily drives
the recurrence, and :func:`bfgs` collects the final state into an
:class:`OptimizeResult`.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import Iterator, Optional

import numpy as np

from armafit.logging import get_logger

from .core import (
    RTOL,
    Array,
    CurvatureError,
    DifferentiableFunction,
    OptimizeResult,
)
from .line_search import LineFunction, LineSearchConfig, strong_wolfe

logger = get_logger(__name__)

# Secant pairs with y's below CURVATURE_TOL * |y| * |s| are rejected.
CURVATURE_TOL = 1e-12

_CRITERIA = ("any", "all")


@dataclass(frozen=True)
class BFGSConfig:
    """Termination and line-search settings for :func:`bfgs`.

    Three tests are evaluated after every step: gradient norm <=
    ``gradient_tolerance``, absolute function change <=
    ``function_change_tolerance`` and relative function change <=
    ``function_change_tolerance``.

    Args:
        gradient_tolerance: Tolerance on the gradient norm.
        function_change_tolerance: Tolerance on the absolute and the relative
            change of the function value over the last step.
        max_iterations: Iteration cap; reaching it ends the run unsuccessfully.
        criterion: ``"all"`` stops only once every test passes. ``"any"``
            stops as soon as one test passes, which ends early on flat
            stretches where the function barely moves; use it with
            ``function_change_tolerance=0`` for a gradient-only rule.
        line_search: Constants of the strong Wolfe search.
    """

    gradient_tolerance: float = RTOL
    function_change_tolerance: float = RTOL
    max_iterations: int = 1000
    criterion: str = "all"
    line_search: LineSearchConfig = field(default_factory=LineSearchConfig)

    def __post_init__(self) -> None:
        if self.gradient_tolerance < 0:
            raise ValueError(f"gradient_tolerance must be >= 0, got {self.gradient_tolerance}")
        if self.function_change_tolerance < 0:
            raise ValueError(
                f"function_change_tolerance must be >= 0, got {self.function_change_tolerance}"
            )
        if self.max_iterations < 0:
            raise ValueError(f"max_iterations must be >= 0, got {self.max_iterations}")
        if self.criterion not in _CRITERIA:
            raise ValueError(f"criterion must be one of {_CRITERIA}, got {self.criterion!r}")


@dataclass(frozen=True)
class BFGSState:
    """Snapshot of one BFGS iterate.

    ``s``, ``y`` and ``rho`` describe the secant pair that produced this
    state and are None for the starting state. The function changes of the
    starting state are infinite.
    """

    x: Array
    fun: float
    grad: Array
    inv_hessian: Array
    nit: int = 0
    alpha: float = 0.0
    s: Optional[Array] = None
    y: Optional[Array] = None
    rho: Optional[float] = None
    absolute_change: float = math.inf
    relative_change: float = math.inf
    nfev: int = 1
    njev: int = 1

    @property
    def grad_norm(self) -> float:
        return float(np.linalg.norm(self.grad))


def _frozen(array: Array) -> Array:
    array = np.array(array, dtype=float)
    array.setflags(write=False)
    return array


def has_converged(state: BFGSState, config: BFGSConfig) -> bool:
    """Apply the termination tests of ``config`` to ``state``."""
    tests = (
        state.grad_norm <= config.gradient_tolerance,
        state.absolute_change <= config.function_change_tolerance,
        state.relative_change <= config.function_change_tolerance,
    )
    if config.criterion == "all":
        return all(tests)
    return any(tests)


def bfgs_init(
    objective: DifferentiableFunction,
    x0: Array,
    initial_inverse_hessian: Optional[Array] = None,
) -> BFGSState:
    """Evaluate the objective at the starting point and build the initial state."""
    x = np.asarray(x0, dtype=float).ravel()
    n = x.size
    if initial_inverse_hessian is None:
        inv_hessian = np.eye(n)
    else:
        inv_hessian = np.asarray(initial_inverse_hessian, dtype=float)
        if inv_hessian.shape != (n, n):
            raise ValueError(
                f"initial_inverse_hessian must be shape ({n}, {n}), got {inv_hessian.shape}"
            )
    fx = float(objective.evaluate(x))
    grad = np.asarray(objective.gradient_at(x, fx), dtype=float)
    return BFGSState(
        x=_frozen(x), fun=fx, grad=_frozen(grad), inv_hessian=_frozen(inv_hessian)
    )


def _update_inverse_hessian(inv_hessian: Array, s: Array, y: Array, rho: float) -> Array:
    identity = np.eye(s.size)
    left = identity - rho * np.outer(s, y)
    right = identity - rho * np.outer(y, s)
    return left @ inv_hessian @ right + rho * np.outer(s, s)


def bfgs_step(
    objective: DifferentiableFunction, state: BFGSState, config: BFGSConfig
) -> BFGSState:
    """Advance the recurrence by one iteration.

    A state whose gradient is exactly zero is a stationary point; the step
    leaves x unchanged and records zero function change.

    Raises:
        LineSearchError: If no strong Wolfe step exists along -H g.
        CurvatureError: If the new secant pair has y's ≈ 0.
    """
    direction = -state.inv_hessian @ state.grad
    if not np.any(direction) and not np.any(state.grad):
        return replace(
            state,
            nit=state.nit + 1,
            alpha=0.0,
            s=None,
            y=None,
            rho=None,
            absolute_change=0.0,
            relative_change=0.0,
        )
    slope0 = float(np.dot(state.grad, direction))
    line = LineFunction(objective, state.x, direction, value0=state.fun, gradient0=state.grad)
    step = strong_wolfe(line, state.fun, slope0, config.line_search)

    x_new = line.point(step.alpha)
    grad_new = line.gradient(step.alpha)
    s = x_new - state.x
    y = grad_new - state.grad
    ys = float(np.dot(y, s))
    if not math.isfinite(ys) or ys <= CURVATURE_TOL * np.linalg.norm(y) * np.linalg.norm(s):
        raise CurvatureError(
            f"Secant pair has no usable curvature (y's = {ys:.3e}) at iteration {state.nit}."
        )
    rho = 1.0 / ys

    absolute_change = abs(state.fun - step.fun)
    if state.fun != 0:
        relative_change = abs(absolute_change / state.fun)
    else:
        # relative change is undefined; fall back to the absolute one
        relative_change = absolute_change

    return BFGSState(
        x=_frozen(x_new),
        fun=step.fun,
        grad=_frozen(grad_new),
        inv_hessian=_frozen(_update_inverse_hessian(state.inv_hessian, s, y, rho)),
        nit=state.nit + 1,
        alpha=step.alpha,
        s=_frozen(s),
        y=_frozen(y),
        rho=rho,
        absolute_change=absolute_change,
        relative_change=relative_change,
        nfev=state.nfev + line.nfev,
        njev=state.njev + line.njev,
    )


def bfgs_iterates(
    objective: DifferentiableFunction,
    x0: Array,
    config: Optional[BFGSConfig] = None,
    initial_inverse_hessian: Optional[Array] = None,
) -> Iterator[BFGSState]:
    """Yield the starting state and every subsequent iterate.

    The sequence ends after the first state that passes the termination
    tests, or once ``config.max_iterations`` steps have been taken.
    Zero-dimensional problems yield only the starting state.
    """
    if config is None:
        config = BFGSConfig()
    state = bfgs_init(objective, x0, initial_inverse_hessian)
    yield state
    if state.x.size == 0:
        return
    while not has_converged(state, config) and state.nit < config.max_iterations:
        state = bfgs_step(objective, state, config)
        logger.debug(
            "iter %d: f=%.10g |g|=%.3e alpha=%.3g df=%.3e",
            state.nit,
            state.fun,
            state.grad_norm,
            state.alpha,
            state.absolute_change,
        )
        yield state


def bfgs(
    objective: DifferentiableFunction,
    x0: Array,
    config: Optional[BFGSConfig] = None,
    initial_inverse_hessian: Optional[Array] = None,
    history: bool = False,
) -> OptimizeResult:
    """Full-memory BFGS with strong Wolfe line search.

    Example:
        >>> import numpy as np
        >>> from armafit.optimize import FunctionObjective, bfgs
        >>> f = FunctionObjective(lambda x: float((x[0] - 3.0) ** 2 + 2 * x[1] ** 2))
        >>> round(float(bfgs(f, np.zeros(2)).x[0]), 4)
        3.0
    """
    if config is None:
        config = BFGSConfig()
    hist: list[Array] = []
    state: Optional[BFGSState] = None
    for state in bfgs_iterates(objective, x0, config, initial_inverse_hessian):
        if history:
            hist.append(np.array(state.x))

    if state.x.size == 0:
        success, message = True, "Empty parameter vector; nothing to optimize."
    elif has_converged(state, config):
        success, message = True, "Convergence tolerance satisfied."
    else:
        success, message = False, "Maximum iterations reached."

    if success:
        logger.info("BFGS converged in %d iterations, f=%.10g", state.nit, state.fun)
    else:
        logger.warning(
            "BFGS stopped after %d iterations without converging (|g|=%.3e)",
            state.nit,
            state.grad_norm,
        )

    return OptimizeResult(
        x=np.array(state.x),
        fun=state.fun,
        inv_hessian=np.array(state.inv_hessian),
        nit=state.nit,
        success=success,
        message=message,
        grad_norm=state.grad_norm,
        nfev=state.nfev,
        njev=state.njev,
        history=hist,
    )


__all__ = [
    "BFGSConfig",
    "BFGSState",
    "CURVATURE_TOL",
    "bfgs",
    "bfgs_init",
    "bfgs_iterates",
    "bfgs_step",
    "has_converged",
]
