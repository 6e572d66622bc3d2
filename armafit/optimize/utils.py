"""Finite-difference derivatives and a definiteness check.

Used when an objective does not provide an analytic gradient, and for the
observed-information Hessian behind the ARIMA standard errors. Every
difference scheme perturbs coordinate i by ``eps * max(1, |x_i|)`` so the
step stays relative for large parameters.
"""

from __future__ import annotations

from typing import Callable

import numpy as np

Array = np.ndarray
Objective = Callable[[Array], float]


def _steps(x: Array, eps: float) -> Array:
    if eps <= 0:
        raise ValueError(f"eps must be positive, got {eps}")
    return eps * np.maximum(1.0, np.abs(x))


def approx_grad(fun: Objective, x: Array, eps: float = 1e-6) -> Array:
    """Central-difference gradient, two evaluations per coordinate."""
    x = np.asarray(x, dtype=float)
    steps = _steps(x, eps)
    grad = np.empty_like(x)
    for i, h in enumerate(steps):
        shift = np.zeros_like(x)
        shift[i] = h
        grad[i] = (fun(x + shift) - fun(x - shift)) / (2.0 * h)
    return grad


def forward_grad(fun: Objective, x: Array, fx: float, eps: float = 1e-6) -> Array:
    """Forward-difference gradient reusing the known value ``fx = fun(x)``."""
    x = np.asarray(x, dtype=float)
    steps = _steps(x, eps)
    grad = np.empty_like(x)
    for i, h in enumerate(steps):
        shift = np.zeros_like(x)
        shift[i] = h
        grad[i] = (fun(x + shift) - fx) / h
    return grad


def approx_hessian(fun: Objective, x: Array, eps: float = 1e-4) -> Array:
    """Symmetric Hessian from second-order central differences."""
    x = np.asarray(x, dtype=float)
    shifts = np.diag(_steps(x, eps))
    n = x.size
    hess = np.zeros((n, n), dtype=float)
    fx = fun(x)
    for i in range(n):
        hi = shifts[i]
        hess[i, i] = (fun(x + hi) - 2.0 * fx + fun(x - hi)) / hi[i] ** 2
        for j in range(i + 1, n):
            hj = shifts[j]
            cross = fun(x + hi + hj) - fun(x + hi - hj) - fun(x - hi + hj) + fun(x - hi - hj)
            hess[i, j] = hess[j, i] = cross / (4.0 * hi[i] * hj[j])
    return hess


def is_pos_def(mat: Array, tol: float = 1e-12) -> bool:
    """True if the symmetric part of ``mat`` minus ``tol * I`` has a Cholesky factor."""
    mat = np.asarray(mat, dtype=float)
    if not np.all(np.isfinite(mat)):
        return False
    sym = 0.5 * (mat + mat.T) - tol * np.eye(mat.shape[0])
    try:
        np.linalg.cholesky(sym)
    except np.linalg.LinAlgError:
        return False
    return True


__all__ = ["Array", "Objective", "approx_grad", "approx_hessian", "forward_grad", "is_pos_def"]
