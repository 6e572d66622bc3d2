"""Differentiable objectives backed by PyTorch autograd."""

from __future__ import annotations

from typing import Callable, Optional

import numpy as np
import torch

from .core import Array

TorchFunction = Callable[[torch.Tensor], torch.Tensor]


class TorchObjective:
    """Expose a scalar torch function through the optimizer's capability.

    ``fun`` receives a 1D float64 tensor and must return a scalar tensor built
    from differentiable torch operations; gradients come from
    ``torch.autograd.grad`` instead of finite differences.

    Parameters
    ----------
    fun:
        Scalar-valued torch function.
    device:
        Device the parameter tensor is created on. Defaults to CPU.

    Example
    -------
    >>> import torch
    >>> obj = TorchObjective(lambda x: torch.sum((x - 1.0) ** 2))
    >>> obj.gradient_at(np.zeros(2), obj.evaluate(np.zeros(2)))
    array([-2., -2.])
    """

    def __init__(self, fun: TorchFunction, device: Optional[torch.device] = None) -> None:
        self.fun = fun
        self.device = device if device is not None else torch.device("cpu")

    def _as_tensor(self, point: Array, requires_grad: bool = False) -> torch.Tensor:
        return torch.tensor(
            np.asarray(point, dtype=float),
            dtype=torch.float64,
            device=self.device,
            requires_grad=requires_grad,
        )

    def evaluate(self, point: Array) -> float:
        with torch.no_grad():
            value = self.fun(self._as_tensor(point))
        return float(value.item())

    def gradient_at(self, point: Array, value: float) -> Array:
        x = self._as_tensor(point, requires_grad=True)
        out = self.fun(x)
        if out.numel() != 1:
            raise ValueError(f"Objective must return a scalar, got shape {tuple(out.shape)}")
        if not out.requires_grad:
            return np.zeros(x.shape[0])
        (grad,) = torch.autograd.grad(out, x, allow_unused=True)
        if grad is None:
            return np.zeros(x.shape[0])
        return grad.detach().cpu().numpy().astype(float)


__all__ = ["TorchFunction", "TorchObjective"]
