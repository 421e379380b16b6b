"""MNIST rows read from CSV files.

Each row is ``label, p0, p1, ..., p783`` with raw 0..255 pixel values and no
header, which is the layout of the widely distributed ``mnist_train.csv`` /
``mnist_test.csv`` files.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator, Tuple

import numpy as np
import pandas as pd

from ..core.types import Array, MnistRecord

logger = logging.getLogger(__name__)

PIXELS = 784
NUM_CLASSES = 10
OFF_VALUE = 0.01
ON_VALUE = 0.99


def make_input(pixels) -> Array:
    """Scale raw pixels into a ``(784, 1)`` column in ``[0.01, 1.0]``."""

    values = np.asarray(pixels, dtype=np.float64).reshape(-1, 1)
    if values.shape[0] != PIXELS:
        raise ValueError(f"expected {PIXELS} pixels, got {values.shape[0]}")
    return values / 255.0 * 0.99 + 0.01


def make_target(label: int, num_classes: int = NUM_CLASSES) -> Array:
    """One-hot ``(num_classes, 1)`` column using 0.01/0.99 as off/on values."""

    label = int(label)
    if not 0 <= label < num_classes:
        raise ValueError(f"label {label} out of range 0..{num_classes - 1}")
    target = np.full((num_classes, 1), OFF_VALUE)
    target[label, 0] = ON_VALUE
    return target


def make_pair(record: MnistRecord) -> Tuple[Array, Array]:
    return make_input(record.pixels), make_target(record.label)


class MnistCsv:
    """Lazy, restartable sequence of :class:`MnistRecord` from a CSV file.

    Only one chunk of ``chunk_size`` rows is held in memory at a time, and
    every call to ``iter()`` starts again from the first row.
    """

    def __init__(self, path: str | Path, *, chunk_size: int = 1000) -> None:
        self.path = Path(path)
        self.chunk_size = int(chunk_size)

    def __iter__(self) -> Iterator[MnistRecord]:
        reader = pd.read_csv(
            self.path, header=None, chunksize=self.chunk_size, dtype=np.float64
        )
        row_number = 0
        with reader:
            for chunk in reader:
                if chunk.shape[1] != PIXELS + 1:
                    raise ValueError(
                        f"{self.path}: expected {PIXELS + 1} columns, got {chunk.shape[1]}"
                    )
                values = chunk.to_numpy()
                for row in values:
                    row_number += 1
                    label = row[0]
                    if not (label.is_integer() and 0 <= label < NUM_CLASSES):
                        raise ValueError(f"{self.path}: row {row_number} has label {label}")
                    yield MnistRecord(label=int(label), pixels=row[1:])
        logger.debug(f"Read {row_number} rows from {self.path}")

    def pairs(self) -> Iterator[Tuple[Array, Array]]:
        for record in self:
            yield make_pair(record)

    def __repr__(self) -> str:
        return f"MnistCsv({str(self.path)!r})"


def build_fixture(path: str | Path, n_rows: int = 100, *, seed: int = 0) -> Path:
    """Write a deterministic MNIST-like CSV.

    Digit ``k`` lights up a distinct horizontal band of the 28x28 image (rows
    ``2k+4`` and ``2k+5``) over low background noise, so a small network can
    separate the classes.
    """

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    rng = np.random.default_rng(seed)
    labels = np.arange(n_rows) % NUM_CLASSES
    images = rng.integers(0, 40, size=(n_rows, 28, 28))
    for index, label in enumerate(labels):
        top = 2 * label + 4
        images[index, top : top + 2, 4:24] = rng.integers(200, 256, size=(2, 20))
    frame = pd.DataFrame(np.column_stack([labels, images.reshape(n_rows, PIXELS)]))
    frame.to_csv(path, header=False, index=False)
    return path


__all__ = [
    "MnistCsv",
    "build_fixture",
    "make_input",
    "make_pair",
    "make_target",
]
