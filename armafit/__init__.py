"""armafit - exact maximum-likelihood ARMA estimation with a BFGS optimizer."""

__version__ = "0.1.0"

# Optimization
from .optimize import (
    BFGSConfig,
    CurvatureError,
    FunctionObjective,
    LineSearchConfig,
    LineSearchError,
    OptimizationError,
    OptimizeResult,
    TorchObjective,
    bfgs,
)

# Time series
from .timeseries import (
    ARIMA,
    ArmaLikelihood,
    FitResult,
    InvalidParameterizationError,
    build_state_space,
    initial_state_covariance,
    kalman_filter,
)

__all__ = [
    "__version__",
    "ARIMA",
    "ArmaLikelihood",
    "BFGSConfig",
    "CurvatureError",
    "FitResult",
    "FunctionObjective",
    "InvalidParameterizationError",
    "LineSearchConfig",
    "LineSearchError",
    "OptimizationError",
    "OptimizeResult",
    "TorchObjective",
    "bfgs",
    "build_state_space",
    "initial_state_covariance",
    "kalman_filter",
]
