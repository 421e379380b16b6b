"""Run artifact helpers."""

from __future__ import annotations

import json
import platform
import subprocess
import time
from pathlib import Path
from typing import Mapping

from ..core.network import Network


def git_sha() -> str:
    try:
        out = subprocess.check_output(["git", "rev-parse", "HEAD"], stderr=subprocess.DEVNULL)
        return out.decode().strip()
    except (OSError, subprocess.CalledProcessError):  # git may be unavailable
        return "unknown"


def write_manifest(
    path: str | Path,
    *,
    config: Mapping[str, object],
    network: Network,
    dataset_provenance: Mapping[str, object],
) -> str:
    """Write a manifest JSON file capturing what produced a model."""

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    manifest = {
        "git_sha": git_sha(),
        "generated_at": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        "config": config,
        "network": {
            "input_size": network.input_size,
            "layers": [
                {
                    "input_size": layer.input_size,
                    "output_size": layer.output_size,
                    "activation": layer.activation.name,
                }
                for layer in network.layers
            ],
            "loss": network.loss.name,
            "default_learning_rate": network.default_learning_rate,
        },
        "dataset": dict(dataset_provenance),
        "environment": {"python": platform.python_version()},
    }
    path.write_text(json.dumps(manifest, indent=2))
    return str(path)
