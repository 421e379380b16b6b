"""Loss strategies and their registry."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Protocol

import numpy as np

from ..core.types import Array

logger = logging.getLogger(__name__)

DEFAULT_KEY = "_default"


class Loss(Protocol):
    """Cost of a single example plus its gradient w.r.t. the output."""

    name: str

    def base(self, actual: Array, expected: Array) -> float:
        """Scalar cost of one example (callers average over batches)."""

    def gradient(self, actual: Array, expected: Array, out: Array | None = None) -> Array:
        """dCost/dActual, element-wise."""


class HalfSquaredError:
    """``1/2 * sum((actual - expected)^2)``.

    Not averaged over output units or examples, so this is not a mean
    squared error.
    """

    name = "HalfSquaredError"

    def base(self, actual: Array, expected: Array) -> float:
        difference = self.gradient(actual, expected)
        return float(np.sum(difference * difference) / 2.0)

    def gradient(self, actual: Array, expected: Array, out: Array | None = None) -> Array:
        return np.subtract(actual, expected, out=out)

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class LossRegistry:
    """Central registry for loss functions, with a default fallback."""

    def __init__(self, default: Loss) -> None:
        self._registry: Dict[str, Loss] = {DEFAULT_KEY: default}
        self.register(default)

    def register(self, loss: Loss) -> bool:
        if loss is None or loss.name in self._registry:
            return False
        self._registry[loss.name] = loss
        return True

    def get(self, name: str) -> Loss:
        try:
            return self._registry[name]
        except KeyError as exc:
            raise KeyError(f"Unknown loss: {name}") from exc

    def resolve(self, name: str | None) -> Loss:
        if name in self._registry:
            return self._registry[name]
        default = self._registry[DEFAULT_KEY]
        logger.warning(f"Unknown loss {name!r}, falling back to {default.name}")
        return default

    @property
    def default(self) -> Loss:
        return self._registry[DEFAULT_KEY]

    def names(self) -> Iterable[str]:
        return sorted(name for name in self._registry if name != DEFAULT_KEY)


def default_losses() -> LossRegistry:
    """Return a fresh registry holding the built-in losses."""

    return LossRegistry(HalfSquaredError())


REGISTRY = default_losses()

__all__ = ["HalfSquaredError", "Loss", "LossRegistry", "REGISTRY", "default_losses"]
