"""The three user-facing actions: train new, train existing, test existing."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Mapping

import numpy as np

from .. import config as config_mod
from .. import storage
from ..core.network import Network
from ..core.types import RunResult
from ..data.mnist import MnistCsv
from ..reporting.artifacts import write_manifest
from ..reporting.metrics import CsvSink, JsonlSink
from ..reporting.plots import PlotAdapter
from .trainer import Trainer

logger = logging.getLogger(__name__)


def _rng(train_cfg: Mapping[str, Any]) -> np.random.Generator:
    seed = train_cfg.get("seed")
    return np.random.default_rng(None if seed is None else int(seed))


def _run_dir(config: Mapping[str, Any]) -> Path:
    run_dir = Path(str(config["train"].get("run_dir", "runs/default")))
    run_dir.mkdir(parents=True, exist_ok=True)
    return run_dir


def _provenance(dataset: MnistCsv) -> dict[str, Any]:
    return {"name": "mnist_csv", "path": str(dataset.path)}


def _fit(network: Network, config: Mapping[str, Any], action: str) -> RunResult:
    train_cfg = config["train"]
    dataset = MnistCsv(config["data"]["train_csv"])
    run_dir = _run_dir(config)

    jsonl = JsonlSink(run_dir / "metrics_train.jsonl", split="train")
    csv_sink = CsvSink(run_dir / "metrics_train.csv", split="train")
    plots = PlotAdapter(run_dir, enable_plots=bool(train_cfg.get("enable_plots", False)))
    trainer = Trainer(network)
    report = trainer.fit(
        dataset,
        int(train_cfg.get("epochs", 1)),
        learning_rate=train_cfg.get("learning_rate"),
        split_loggers={"train": [jsonl, csv_sink, plots]},
    )
    plots.close()

    model_path = storage.save(network, config["storage"]["model_path"])
    manifest = write_manifest(
        run_dir / "manifest.json",
        config=config,
        network=network,
        dataset_provenance=_provenance(dataset),
    )
    final = dict(report.history[-1]) if report.history else {}
    final["elapsed"] = report.elapsed
    return RunResult(
        action=action,
        model_path=str(model_path),
        metrics_path=str(jsonl.path),
        manifest_path=manifest,
        metrics=final,
    )


def train_new(config: Mapping[str, Any]) -> RunResult:
    """Build a fresh network from ``config["model"]``, train it and save it."""

    network = config_mod.build_network(config["model"], _rng(config["train"]))
    logger.info(f"Network created: {network!r}. Training...")
    return _fit(network, config, "new")


def train_existing(config: Mapping[str, Any]) -> RunResult:
    """Load the saved network, continue training it and save it again."""

    network = storage.load(config["storage"]["model_path"])
    logger.info(f"Network loaded: {network!r}. Training...")
    return _fit(network, config, "existing")


def test_existing(config: Mapping[str, Any]) -> RunResult:
    """Load the saved network and score it on the test CSV."""

    model_path = storage.with_extension(config["storage"]["model_path"])
    network = storage.load(model_path)
    logger.info(f"Network loaded: {network!r}. Testing...")
    dataset = MnistCsv(config["data"]["test_csv"])
    run_dir = _run_dir(config)
    jsonl = JsonlSink(run_dir / "metrics_test.jsonl", split="test")
    metrics = dict(Trainer(network).evaluate(dataset, split_loggers={"test": [jsonl]}))
    (run_dir / "metrics_test.json").write_text(json.dumps(metrics, indent=2))
    return RunResult(
        action="test",
        model_path=str(model_path),
        metrics_path=str(jsonl.path),
        metrics=metrics,
    )


# pytest would otherwise collect ``test_existing`` from modules importing it
test_existing.__test__ = False  # type: ignore[attr-defined]

ACTIONS = {"new": train_new, "existing": train_existing, "test": test_existing}


def run_action(action: str, config: Mapping[str, Any]) -> RunResult:
    try:
        handler = ACTIONS[action]
    except KeyError as exc:
        raise KeyError(f"Unknown action: {action}") from exc
    return handler(config)


__all__ = ["ACTIONS", "run_action", "test_existing", "train_existing", "train_new"]
