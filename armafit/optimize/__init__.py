"""Quasi-Newton minimization for armafit.

Example
-------
>>> import numpy as np
>>> from armafit.optimize import FunctionObjective, bfgs
>>> def rosen(x):
...     return (1 - x[0])**2 + 100 * (x[1] - x[0]**2)**2
>>> def rosen_grad(x):
...     return np.array([
...         -2 * (1 - x[0]) - 400 * x[0] * (x[1] - x[0] ** 2),
...         200 * (x[1] - x[0] ** 2),
...     ])
>>> res = bfgs(FunctionObjective(rosen, rosen_grad), np.array([-1.2, 1.0]))
>>> bool(np.allclose(res.x, [1.0, 1.0], atol=1e-4))
True
"""

from .autograd import TorchObjective
from .core import (
    ATOL,
    RTOL,
    CurvatureError,
    DifferentiableFunction,
    FunctionObjective,
    LineSearchError,
    OptimizationError,
    OptimizeResult,
)
from .line_search import LineFunction, LineSearchConfig, LineSearchResult, strong_wolfe
from .quasi_newton import (
    BFGSConfig,
    BFGSState,
    bfgs,
    bfgs_init,
    bfgs_iterates,
    bfgs_step,
    has_converged,
)
from .utils import approx_grad, approx_hessian, forward_grad, is_pos_def

__all__ = [
    "ATOL",
    "BFGSConfig",
    "BFGSState",
    "CurvatureError",
    "DifferentiableFunction",
    "FunctionObjective",
    "LineFunction",
    "LineSearchConfig",
    "LineSearchError",
    "LineSearchResult",
    "OptimizationError",
    "OptimizeResult",
    "RTOL",
    "TorchObjective",
    "approx_grad",
    "approx_hessian",
    "bfgs",
    "bfgs_init",
    "bfgs_iterates",
    "bfgs_step",
    "forward_grad",
    "has_converged",
    "is_pos_def",
    "strong_wolfe",
]
