from __future__ import annotations

from typing import Mapping

import numpy as np
import pytest

from ffnn.core.activations import Sigmoid
from ffnn.core.network import new
from ffnn.data.mnist import MnistCsv, build_fixture
from ffnn.training.losses import HalfSquaredError
from ffnn.training.metrics import compute_metric, predicted_label
from ffnn.training.trainer import ListSource, Trainer


class _Capture:
    def __init__(self) -> None:
        self.history: list[tuple[int, Mapping[str, float]]] = []

    def on_epoch(self, epoch: int, metrics: Mapping[str, float]) -> None:
        self.history.append((epoch, dict(metrics)))


def _separable_pairs():
    return [
        (np.array([[1.0], [0.0]]), np.array([[0.99], [0.01]])),
        (np.array([[0.0], [1.0]]), np.array([[0.01], [0.99]])),
    ]


def test_single_layer_learns_separable_pairs() -> None:
    network = new(1.0, 2, HalfSquaredError()).add_layer(2, Sigmoid()).build(np.random.default_rng(0))
    capture = _Capture()
    trainer = Trainer(network, callbacks=[capture])

    report = trainer.fit(ListSource(_separable_pairs()), 200)

    assert report.epochs == 200
    assert report.examples == 400
    assert len(capture.history) == 200
    assert capture.history[-1][1]["loss"] < capture.history[0][1]["loss"]
    metrics = trainer.evaluate(ListSource(_separable_pairs()))
    assert metrics["accuracy"] == 1.0
    assert metrics["macro_f1"] == pytest.approx(1.0, abs=1e-6)
    assert metrics["score"] == 2.0


def test_split_loggers_receive_their_split_only() -> None:
    network = new(0.5, 2, HalfSquaredError()).add_layer(2, Sigmoid()).build(np.random.default_rng(1))
    train_capture, test_capture = _Capture(), _Capture()
    calls: list[int] = []
    loggers = {"train": [train_capture, lambda epoch, metrics: calls.append(epoch)], "test": [test_capture]}
    trainer = Trainer(network)
    trainer.fit(ListSource(_separable_pairs()), 3, split_loggers=loggers)
    trainer.evaluate(ListSource(_separable_pairs()), split_loggers=loggers)
    assert [epoch for epoch, _ in train_capture.history] == [1, 2, 3]
    assert calls == [1, 2, 3]
    assert [epoch for epoch, _ in test_capture.history] == [1]


def test_fit_argument_validation() -> None:
    network = new(0.5, 2, HalfSquaredError()).add_layer(2, Sigmoid()).build()
    trainer = Trainer(network)
    with pytest.raises(ValueError):
        trainer.fit(ListSource(_separable_pairs()), 0)
    with pytest.raises(ValueError):
        trainer.fit(ListSource([]), 1)


def test_explicit_rate_overrides_default() -> None:
    def run(rate):
        network = new(0.5, 2, HalfSquaredError()).add_layer(2, Sigmoid()).build(np.random.default_rng(3))
        Trainer(network).fit(ListSource(_separable_pairs()), 1, learning_rate=rate)
        return np.array(network.layer(0).weights)

    assert not np.array_equal(run(0.5), run(0.01))
    assert np.array_equal(run(None), run(0.5))


def test_reference_topology_reduces_cost_on_fixture(tmp_path) -> None:
    dataset = MnistCsv(build_fixture(tmp_path / "train.csv", n_rows=30, seed=0))
    network = (
        new(0.01, 784, HalfSquaredError())
        .add_layer(200, Sigmoid())
        .add_layer(10, Sigmoid())
        .build(np.random.default_rng(0))
    )
    report = Trainer(network).fit(dataset, 3)
    assert report.history[-1]["loss"] < report.history[0]["loss"]
    assert report.history[-1]["examples"] == 30.0


def test_metrics_helpers() -> None:
    assert predicted_label(np.array([[0.1], [0.7], [0.2]])) == 1
    preds = np.array([[0.9, 0.1], [0.2, 0.8], [0.6, 0.4]])
    targets = np.array([[1.0, 0.0], [0.0, 1.0], [0.0, 1.0]])
    assert compute_metric("accuracy", preds, targets).value == pytest.approx(2 / 3)
    assert 0.0 < compute_metric("macro_f1", preds, targets, num_classes=2).value < 1.0
    with pytest.raises(KeyError):
        compute_metric("auc", preds, targets)


def test_single_output_accuracy_thresholds_at_midpoint() -> None:
    preds = np.array([[0.8], [0.3], [0.6]])
    targets = np.array([[0.99], [0.01], [0.01]])
    assert compute_metric("accuracy", preds, targets).value == pytest.approx(2 / 3)
    labels = np.array([1, 0, 0])
    assert compute_metric("accuracy", preds, labels).value == pytest.approx(2 / 3)


def test_reference_topology_beats_chance_on_seen_examples(tmp_path) -> None:
    dataset = MnistCsv(build_fixture(tmp_path / "train.csv", n_rows=3, seed=2))
    seen = ListSource(list(dataset.pairs()))
    network = (
        new(0.01, 784, HalfSquaredError())
        .add_layer(200, Sigmoid())
        .add_layer(10, Sigmoid())
        .build(np.random.default_rng(0))
    )
    trainer = Trainer(network)
    trainer.fit(seen, 300)
    assert trainer.evaluate(seen)["accuracy"] > 0.1
