"""Core typing contracts for ffnn."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List

import numpy as np

Array = np.ndarray


@dataclass(frozen=True)
class Shape:
    """Input/output sizes of a single layer."""

    input_size: int
    output_size: int


def shape_chain(*sizes: int) -> List[Shape]:
    """Turn ``784, 200, 10`` into ``[Shape(784, 200), Shape(200, 10)]``."""

    if len(sizes) < 2:
        raise ValueError("at least 2 values must be given to make the shapes")
    if any(int(size) < 1 for size in sizes):
        raise ValueError("sizes must be strictly positive")
    return [Shape(int(a), int(b)) for a, b in zip(sizes[:-1], sizes[1:])]


@dataclass(frozen=True)
class MnistRecord:
    """A single labelled row of raw (0..255) MNIST pixels."""

    label: int
    pixels: Array


@dataclass(frozen=True)
class RunResult:
    """Summary returned by the pipeline actions."""

    action: str
    model_path: str
    metrics_path: str = ""
    manifest_path: str = ""
    metrics: dict | None = None
