"""Activation strategies and their registry."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Protocol

import numpy as np

from .errors import ShapeMismatchError
from .types import Array

logger = logging.getLogger(__name__)

DEFAULT_KEY = "_default"


class Activation(Protocol):
    """Element-wise function plus its derivative.

    Both methods operate element-wise, so the result always has the shape of
    ``z``.  When ``out`` is given the result is written there and returned.
    """

    name: str

    def base(self, z: Array, out: Array | None = None) -> Array:
        """Evaluate the function at the weighted sums ``z``."""

    def derivative(self, z: Array, out: Array | None = None) -> Array:
        """Evaluate the derivative at the weighted sums ``z``."""


class Sigmoid:
    name = "Sigmoid"

    def base(self, z: Array, out: Array | None = None) -> Array:
        out = np.negative(z, out=out)
        np.exp(out, out=out)
        np.add(out, 1.0, out=out)
        return np.reciprocal(out, out=out)

    def derivative(self, z: Array, out: Array | None = None) -> Array:
        # s' = s * (1 - s), with s re-evaluated from z
        s = self.base(z)
        out = np.subtract(1.0, s, out=out)
        return np.multiply(out, s, out=out)

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class Tanh:
    name = "Tanh"

    def base(self, z: Array, out: Array | None = None) -> Array:
        return np.tanh(z, out=out)

    def derivative(self, z: Array, out: Array | None = None) -> Array:
        t = np.tanh(z)
        out = np.multiply(t, t, out=out)
        return np.subtract(1.0, out, out=out)

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class ReLU:
    name = "ReLU"

    def base(self, z: Array, out: Array | None = None) -> Array:
        return np.maximum(z, 0.0, out=out)

    def derivative(self, z: Array, out: Array | None = None) -> Array:
        mask = np.greater(z, 0.0)
        if out is None:
            return mask.astype(np.float64)
        np.copyto(out, mask)
        return out

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class ActivationRegistry:
    """Name -> activation lookup with a default entry.

    :meth:`resolve` never fails: unknown names fall back to the default
    strategy (and log a warning).  Use :meth:`get` for a strict lookup.
    """

    def __init__(self, default: Activation) -> None:
        self._registry: Dict[str, Activation] = {DEFAULT_KEY: default}
        self.register(default)

    def register(self, activation: Activation) -> bool:
        if activation is None:
            return False
        name = activation.name
        if name in self._registry:
            return False
        self._registry[name] = activation
        return True

    def get(self, name: str) -> Activation:
        try:
            return self._registry[name]
        except KeyError as exc:
            raise KeyError(f"Unknown activation: {name}") from exc

    def resolve(self, name: str | None) -> Activation:
        if name in self._registry:
            return self._registry[name]
        default = self._registry[DEFAULT_KEY]
        logger.warning(f"Unknown activation {name!r}, falling back to {default.name}")
        return default

    @property
    def default(self) -> Activation:
        return self._registry[DEFAULT_KEY]

    def names(self) -> Iterable[str]:
        return sorted(name for name in self._registry if name != DEFAULT_KEY)

    def __contains__(self, name: object) -> bool:
        return name in self._registry


def _store(result: Array, out: Array, what: str) -> Array:
    if result is out:
        return out
    result = np.asarray(result)
    if result.shape != out.shape:
        raise ShapeMismatchError(what, out.shape, result.shape)
    np.copyto(out, result)
    return out


def base_into(activation: Activation, z: Array, out: Array) -> Array:
    """Evaluate ``activation.base(z)`` into ``out``.

    Strategies may ignore ``out`` and return a new array; the result is
    copied into ``out`` in that case.
    """

    return _store(activation.base(z, out=out), out, f"{activation.name} output")


def derivative_into(activation: Activation, z: Array, out: Array) -> Array:
    """Evaluate ``activation.derivative(z)`` into ``out``."""

    return _store(activation.derivative(z, out=out), out, f"{activation.name} derivative")


def default_activations() -> ActivationRegistry:
    """Return a fresh registry holding the built-in activations."""

    registry = ActivationRegistry(Sigmoid())
    registry.register(Tanh())
    registry.register(ReLU())
    return registry


REGISTRY = default_activations()

__all__ = [
    "Activation",
    "ActivationRegistry",
    "REGISTRY",
    "ReLU",
    "Sigmoid",
    "Tanh",
    "base_into",
    "default_activations",
    "derivative_into",
]
