"""Classification metrics over network outputs."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Mapping

import numpy as np

from ..core.types import Array


@dataclass(frozen=True)
class MetricResult:
    name: str
    value: float


def predicted_label(output: Array) -> int:
    """Index of the highest activation of a ``(n, 1)`` output column."""

    return int(np.argmax(np.asarray(output).reshape(-1)))


def _labels(values: Array) -> Array:
    values = np.asarray(values)
    if values.ndim == 2 and values.shape[1] > 1:
        return np.argmax(values, axis=1)
    flat = values.reshape(-1)
    if np.issubdtype(flat.dtype, np.integer):
        return flat
    # single sigmoid output: threshold at the midpoint
    return (flat >= 0.5).astype(int)


def compute_metric(
    name: str,
    predictions: Array,
    targets: Array,
    *,
    num_classes: int | None = None,
) -> MetricResult:
    """``predictions``/``targets`` are stacked rows, one example per row."""

    key = name.lower()
    pred_idx = _labels(predictions)
    targ_idx = _labels(targets)
    if key == "accuracy":
        value = float(np.mean(pred_idx == targ_idx)) if pred_idx.size else 0.0
    elif key == "macro_f1":
        if num_classes is None:
            raise ValueError("macro_f1 requires num_classes")
        f1_scores = []
        for cls in range(num_classes):
            tp = np.sum((pred_idx == cls) & (targ_idx == cls))
            fp = np.sum((pred_idx == cls) & (targ_idx != cls))
            fn = np.sum((pred_idx != cls) & (targ_idx == cls))
            precision = tp / (tp + fp + 1e-9)
            recall = tp / (tp + fn + 1e-9)
            f1_scores.append(2 * precision * recall / (precision + recall + 1e-9))
        value = float(np.mean(f1_scores))
    else:
        raise KeyError(f"Unknown metric: {name}")
    return MetricResult(name=key, value=value)


def compute_metrics(
    names: Iterable[str],
    predictions: Array,
    targets: Array,
    *,
    num_classes: int | None = None,
) -> Mapping[str, float]:
    results: Dict[str, float] = {}
    for name in names:
        metric = compute_metric(name, predictions, targets, num_classes=num_classes)
        results[metric.name] = metric.value
    return results


__all__ = ["MetricResult", "compute_metric", "compute_metrics", "predicted_label"]
