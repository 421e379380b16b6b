"""Dense matrix helpers.

Every helper allocates and returns a fresh 2-D ``float64`` array; none of
them mutate their operands.  The training loop writes into preallocated
scratch buffers directly with numpy's ``out=`` arguments instead.
"""

from __future__ import annotations

from typing import Callable

import numpy as np

from .types import Array


def _as_matrix(a: Array) -> Array:
    a = np.asarray(a, dtype=np.float64)
    if a.ndim != 2:
        raise ValueError(f"expected a 2-D matrix, got {a.ndim} dimension(s)")
    return a


def _same_shape(a: Array, b: Array) -> tuple[Array, Array]:
    a, b = _as_matrix(a), _as_matrix(b)
    if a.shape != b.shape:
        raise ValueError(f"shape mismatch: {a.shape} vs {b.shape}")
    return a, b


def add(a: Array, b: Array) -> Array:
    a, b = _same_shape(a, b)
    return a + b


def sub(a: Array, b: Array) -> Array:
    a, b = _same_shape(a, b)
    return a - b


def mul(a: Array, b: Array) -> Array:
    """Element-wise (Hadamard) product."""

    a, b = _same_shape(a, b)
    return a * b


def scale(factor: float, a: Array) -> Array:
    return float(factor) * _as_matrix(a)


def product(a: Array, b: Array) -> Array:
    """Linear product ``a @ b``, ideal for ``Wx + b`` operations."""

    a, b = _as_matrix(a), _as_matrix(b)
    if a.shape[1] != b.shape[0]:
        raise ValueError(f"cannot multiply {a.shape} by {b.shape}")
    return a @ b


def apply(fn: Callable[[Array], Array], a: Array) -> Array:
    """Apply a vectorised element-wise ``fn`` and keep the shape."""

    a = _as_matrix(a)
    out = np.asarray(fn(a), dtype=np.float64)
    if out.shape != a.shape:
        raise ValueError("apply() requires an element-wise function")
    return out


def fill(rows: int, columns: int, value: float) -> Array:
    return np.full((rows, columns), float(value), dtype=np.float64)


def fill_row(columns: int, value: float) -> Array:
    return fill(1, columns, value)


def fill_column(rows: int, value: float) -> Array:
    return fill(rows, 1, value)


def noise(
    rows: int,
    columns: int,
    cap: float,
    rng: np.random.Generator | None = None,
) -> Array:
    """Uniform noise in ``[-|cap|, |cap|]``."""

    rng = rng if rng is not None else np.random.default_rng()
    cap = abs(float(cap))
    return rng.uniform(-cap, cap, size=(rows, columns))


def noise_row(columns: int, cap: float, rng: np.random.Generator | None = None) -> Array:
    return noise(1, columns, cap, rng)


def noise_column(rows: int, cap: float, rng: np.random.Generator | None = None) -> Array:
    return noise(rows, 1, cap, rng)


def column(values) -> Array:
    """Return ``values`` as a fresh ``(n, 1)`` column vector."""

    return np.array(values, dtype=np.float64).reshape(-1, 1)


__all__ = [
    "add",
    "sub",
    "mul",
    "scale",
    "product",
    "apply",
    "fill",
    "fill_row",
    "fill_column",
    "noise",
    "noise_row",
    "noise_column",
    "column",
]
