"""Online training and evaluation loops."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Iterable, List, Mapping, Protocol, Sequence, Tuple

import numpy as np

from ..core.network import Network
from ..core.types import Array
from .metrics import compute_metrics

logger = logging.getLogger(__name__)


class PairSource(Protocol):
    """Anything with a restartable ``pairs()`` iterator, e.g. ``MnistCsv``."""

    def pairs(self) -> Iterable[Tuple[Array, Array]]:
        """Yield ``(input, expected)`` column pairs, from the start each call."""


class ListSource:
    """In-memory ``(input, expected)`` pairs."""

    def __init__(self, pairs: Sequence[Tuple[Array, Array]]) -> None:
        self._pairs = list(pairs)

    def pairs(self) -> Iterable[Tuple[Array, Array]]:
        return iter(self._pairs)

    def __len__(self) -> int:
        return len(self._pairs)


@dataclass
class TrainingReport:
    epochs: int
    examples: int
    elapsed: float
    history: List[Mapping[str, float]] = field(default_factory=list)


class Trainer:
    """Present every example once per epoch and update after each one."""

    def __init__(self, network: Network, callbacks: Sequence[object] | None = None) -> None:
        self.network = network
        self.callbacks = list(callbacks or [])

    def fit(
        self,
        dataset: PairSource,
        epochs: int,
        *,
        learning_rate: float | None = None,
        split_loggers: Mapping[str, Sequence[object]] | None = None,
    ) -> TrainingReport:
        if epochs < 1:
            raise ValueError(f"epochs must be >= 1, got {epochs}")
        rate = self.network.default_learning_rate if learning_rate is None else learning_rate
        split_loggers = split_loggers or {}
        history: List[Mapping[str, float]] = []
        total = 0
        started = time.perf_counter()
        for epoch in range(1, epochs + 1):
            logger.info(f"Starting epoch {epoch}/{epochs}")
            metrics = self._run_phase(dataset, training=True, learning_rate=rate)
            total += int(metrics["examples"])
            history.append(metrics)
            self._emit_epoch("train", epoch, metrics, split_loggers)
            logger.info(
                f"Epoch {epoch} ended: loss={metrics['loss']:.6f} "
                f"accuracy={metrics['accuracy']:.4f}"
            )
        elapsed = time.perf_counter() - started
        logger.info(f"Training used {epochs} epochs and took {elapsed:.2f}s")
        return TrainingReport(epochs=epochs, examples=total, elapsed=elapsed, history=history)

    def evaluate(
        self,
        dataset: PairSource,
        *,
        split_loggers: Mapping[str, Sequence[object]] | None = None,
    ) -> Mapping[str, float]:
        started = time.perf_counter()
        metrics = self._run_phase(dataset, training=False)
        self._emit_epoch("test", 1, metrics, split_loggers or {})
        logger.info(
            f"Test ended in {time.perf_counter() - started:.2f}s: "
            f"score={int(metrics['score'])}/{int(metrics['examples'])} "
            f"macro_f1={metrics['macro_f1']:.4f}"
        )
        return metrics

    # ------------------------------------------------------------------
    # Internal helpers

    def _run_phase(
        self,
        dataset: PairSource,
        *,
        training: bool,
        learning_rate: float | None = None,
    ) -> dict[str, float]:
        losses: list[float] = []
        outputs: list[Array] = []
        targets: list[Array] = []
        for inputs, expected in dataset.pairs():
            if training:
                output, cost = self.network.train_with_rate(inputs, expected, learning_rate)
            else:
                output, cost = self.network.test(inputs, expected)
            losses.append(cost)
            outputs.append(output.reshape(-1))
            targets.append(np.asarray(expected).reshape(-1))
        if not losses:
            raise ValueError("dataset produced no examples")
        metrics = {"loss": float(np.mean(losses)), "examples": float(len(losses))}
        metrics.update(
            compute_metrics(
                ["accuracy", "macro_f1"],
                np.stack(outputs),
                np.stack(targets),
                num_classes=max(2, self.network.output_size),
            )
        )
        metrics["score"] = float(round(metrics["accuracy"] * len(losses)))
        return metrics

    def _emit_epoch(
        self,
        split: str,
        epoch: int,
        metrics: Mapping[str, float],
        loggers: Mapping[str, Sequence[object]],
    ) -> None:
        for callback in list(self.callbacks) + list(loggers.get(split, [])):
            if hasattr(callback, "on_epoch"):
                callback.on_epoch(epoch, metrics)  # type: ignore[attr-defined]
            elif callable(callback):
                callback(epoch, metrics)


__all__ = ["ListSource", "PairSource", "Trainer", "TrainingReport"]
