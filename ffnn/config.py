"""Run configuration: presets, file overrides and environment overrides.

A configuration is a plain mapping with four sections::

    {
        "data": {"train_csv": ..., "test_csv": ...},
        "model": {"input_size": 784, "loss": "HalfSquaredError",
                  "learning_rate": 0.01,
                  "layers": [{"output_size": 200, "activation": "Sigmoid"}, ...]},
        "train": {"epochs": 5, "seed": None, "run_dir": ..., "enable_plots": False},
        "storage": {"model_path": "./network"},
    }
"""

from __future__ import annotations

import json
import os
from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, Mapping

import numpy as np

from .core.activations import REGISTRY as ACTIVATIONS
from .core.network import Network, NetworkBuilder
from .training.losses import REGISTRY as LOSSES

_PRESETS: Dict[str, Mapping[str, Any]] = {
    "mnist": {
        "data": {"train_csv": "./mnist_train.csv", "test_csv": "./mnist_test.csv"},
        "model": {
            "input_size": 784,
            "loss": "HalfSquaredError",
            "learning_rate": 0.01,
            "layers": [
                {"output_size": 200, "activation": "Sigmoid"},
                {"output_size": 10, "activation": "Sigmoid"},
            ],
        },
        "train": {"epochs": 5, "seed": None, "run_dir": "runs/mnist", "enable_plots": False},
        "storage": {"model_path": "./network"},
    },
    "mnist-small": {
        "data": {"train_csv": "./mnist_train.csv", "test_csv": "./mnist_test.csv"},
        "model": {
            "input_size": 784,
            "loss": "HalfSquaredError",
            "learning_rate": 0.1,
            "layers": [
                {"output_size": 32, "activation": "Sigmoid"},
                {"output_size": 10, "activation": "Sigmoid"},
            ],
        },
        "train": {"epochs": 1, "seed": 0, "run_dir": "runs/mnist-small", "enable_plots": False},
        "storage": {"model_path": "./network-small"},
    },
}

REQUIRED_SECTIONS = ("data", "model", "train", "storage")

# environment variable -> (section, key)
ENV_OVERRIDES = {
    "FFNN_TRAIN_CSV": ("data", "train_csv"),
    "FFNN_TEST_CSV": ("data", "test_csv"),
    "FFNN_MODEL_PATH": ("storage", "model_path"),
    "FFNN_RUN_DIR": ("train", "run_dir"),
}


def presets() -> Mapping[str, Mapping[str, Any]]:
    return {name: deepcopy(cfg) for name, cfg in _PRESETS.items()}


def load_preset(name: str) -> Dict[str, Any]:
    try:
        return deepcopy(dict(_PRESETS[name]))
    except KeyError as exc:
        raise KeyError(f"Unknown preset: {name}") from exc


def load_override(path: str | Path) -> Dict[str, Any]:
    """Read a JSON or YAML override file."""

    path = Path(path)
    text = path.read_text()
    suffix = path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        try:
            import yaml  # type: ignore
        except ImportError as exc:  # pragma: no cover - optional dependency
            raise RuntimeError("PyYAML is required to load YAML configs") from exc
        data = yaml.safe_load(text) or {}
    elif suffix == ".json":
        data = json.loads(text or "{}")
    else:
        raise ValueError(f"Unsupported config file type: {path.suffix}")
    if not isinstance(data, Mapping):
        raise TypeError(f"Config {path.name} must decode to a mapping")
    return dict(data)


def merge(base: Dict[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(base.get(key), dict):
            base[key] = merge(dict(base[key]), value)
        else:
            base[key] = value
    return base


def apply_env(config: Dict[str, Any], environ: Mapping[str, str] | None = None) -> Dict[str, Any]:
    environ = os.environ if environ is None else environ
    for variable, (section, key) in ENV_OVERRIDES.items():
        value = environ.get(variable)
        if value:
            config.setdefault(section, {})[key] = value
    return config


def validate(config: Mapping[str, Any]) -> None:
    missing = [section for section in REQUIRED_SECTIONS if section not in config]
    if missing:
        raise KeyError(f"Config is missing required sections: {', '.join(missing)}")
    model = config["model"]
    if not model.get("layers"):
        raise ValueError("model.layers must list at least one layer")
    if int(config["train"].get("epochs", 1)) < 1:
        raise ValueError("train.epochs must be >= 1")


def resolve(
    preset: str = "mnist",
    *,
    override: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
) -> Dict[str, Any]:
    """Preset, then file/CLI overrides, then environment variables."""

    config = load_preset(preset)
    if override:
        config = merge(config, override)
    config = apply_env(config, environ)
    validate(config)
    return config


def build_network(model_cfg: Mapping[str, Any], rng: np.random.Generator | None = None) -> Network:
    builder = NetworkBuilder(
        float(model_cfg.get("learning_rate", 0.01)),
        int(model_cfg["input_size"]),
        LOSSES.resolve(model_cfg.get("loss")),
    )
    for layer in model_cfg.get("layers", []):
        builder.add_layer(int(layer["output_size"]), ACTIVATIONS.resolve(layer.get("activation")))
    return builder.build(rng)


__all__ = [
    "ENV_OVERRIDES",
    "apply_env",
    "build_network",
    "load_override",
    "load_preset",
    "merge",
    "presets",
    "resolve",
    "validate",
]
