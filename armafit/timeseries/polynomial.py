"""Lag-polynomial helpers.

A lag polynomial is stored by its coefficients in ascending powers of the
backshift operator B, so ``[1.0, -0.5]`` is ``1 - 0.5B``. AR coefficients
φ = [φ_1, ..., φ_p] correspond to the polynomial ``1 - φ_1 B - ... - φ_p B^p``.

References:
    - Box & Jenkins (1976): Time Series Analysis: Forecasting and Control
"""

from __future__ import annotations

import numpy as np
from numpy.polynomial import polynomial as P


def ar_polynomial(phi: np.ndarray) -> np.ndarray:
    """Return the lag polynomial ``1 - φ_1 B - ... - φ_p B^p``.

    Args:
        phi: AR coefficients, shape (p,).

    Returns:
        Polynomial coefficients, shape (p + 1,).
    """
    phi = np.asarray(phi, dtype=float).ravel()
    return np.concatenate([[1.0], -phi])


def ar_coefficients(poly: np.ndarray) -> np.ndarray:
    """Inverse of :func:`ar_polynomial`: read φ back from a monic lag polynomial.

    Raises:
        ValueError: If the constant term is not 1.
    """
    poly = np.asarray(poly, dtype=float).ravel()
    if poly.size == 0 or not np.isclose(poly[0], 1.0):
        raise ValueError(f"Lag polynomial must have constant term 1, got {poly[:1]}")
    return -poly[1:]


def multiply(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Product of two lag polynomials."""
    return P.polymul(np.asarray(a, dtype=float), np.asarray(b, dtype=float))


def difference_polynomial(d: int) -> np.ndarray:
    """Coefficients of ``(1 - B)^d``.

    Example:
        >>> difference_polynomial(2)
        array([ 1., -2.,  1.])
    """
    if d < 0:
        raise ValueError(f"d must be >= 0, got {d}")
    return P.polypow([1.0, -1.0], d)


def fold_differencing(phi: np.ndarray, d: int) -> np.ndarray:
    """Absorb d-th order differencing into the AR coefficients.

    Computes the AR form of ``(1 - φ_1 B - ... - φ_p B^p)(1 - B)^d``, which
    has p + d coefficients.

    Example:
        >>> fold_differencing(np.array([0.5]), 1)
        array([ 1.5, -0.5])
    """
    phi = np.asarray(phi, dtype=float).ravel()
    if d == 0:
        return phi.copy()
    folded = ar_coefficients(multiply(ar_polynomial(phi), difference_polynomial(d)))
    # polymul trims trailing zeros; keep the full p + d length
    out = np.zeros(phi.size + d)
    out[: folded.size] = folded
    return out
