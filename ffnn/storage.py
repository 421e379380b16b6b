"""File persistence for networks.

A network saved as ``path/to/model`` produces two kinds of files:

``path/to/model.ffnn``
    JSON envelope with the loss name, default learning rate, input size and
    one ``{"activation", "output_size"}`` descriptor per layer, in forward
    order.

``path/to/model-<index>.fflayer``
    One per layer: a numpy ``.npz`` archive holding the ``weights`` and
    ``bias`` blobs (each a plain ``.npy`` payload; pickling is disabled).
"""

from __future__ import annotations

import io
import json
import logging
import zipfile
from pathlib import Path
from typing import Any, Mapping

import numpy as np

from .core.activations import REGISTRY as ACTIVATIONS
from .core.activations import ActivationRegistry
from .core.layer import Layer
from .core.network import Network
from .core.types import Array
from .training.losses import REGISTRY as LOSSES
from .training.losses import LossRegistry

logger = logging.getLogger(__name__)

ENVELOPE_EXTENSION = "ffnn"
LAYER_EXTENSION = "fflayer"


class ModelFormatError(ValueError):
    """A persisted model is malformed or does not match its declared sizes."""


def with_extension(filename: str | Path, extension: str = ENVELOPE_EXTENSION) -> Path:
    text = str(filename).strip()
    if not text:
        raise ValueError("a model filename is required")
    if not text.endswith("." + extension):
        text += "." + extension
    return Path(text)


def without_extension(filename: str | Path, extension: str = ENVELOPE_EXTENSION) -> Path:
    text = str(filename).strip()
    if not text:
        raise ValueError("a model filename is required")
    suffix = "." + extension
    if text.endswith(suffix):
        text = text[: -len(suffix)]
    return Path(text)


def layer_path(filename: str | Path, index: int) -> Path:
    base = without_extension(filename)
    return base.with_name(f"{base.name}-{index}.{LAYER_EXTENSION}")


# ----------------------------------------------------------------------
# Blob codec


def encode_matrix(array: Array) -> bytes:
    buffer = io.BytesIO()
    np.save(buffer, np.asarray(array, dtype=np.float64), allow_pickle=False)
    return buffer.getvalue()


def decode_matrix(blob: bytes, rows: int, columns: int, element: str) -> Array:
    try:
        matrix = np.load(io.BytesIO(blob), allow_pickle=False)
    except (ValueError, EOFError) as exc:
        raise ModelFormatError(f"layer {element} blob could not be decoded: {exc}") from exc
    if not isinstance(matrix, np.ndarray):
        raise ModelFormatError(f"layer {element} blob is not a single matrix")
    if matrix.dtype.kind not in "fiu":
        raise ModelFormatError(f"layer {element} blob has non-numeric dtype {matrix.dtype}")
    if matrix.shape != (rows, columns):
        raise ModelFormatError(
            f"layer {element} size mismatch between requested {(rows, columns)} "
            f"and unmarshaled {matrix.shape}"
        )
    return matrix.astype(np.float64)


def encode_layer(layer: Layer) -> dict[str, bytes]:
    return {"weights": encode_matrix(layer.weights), "bias": encode_matrix(layer.bias)}


def decode_layer(
    input_size: int,
    output_size: int,
    activation,
    blobs: Mapping[str, bytes],
) -> Layer:
    for key in ("weights", "bias"):
        if key not in blobs:
            raise ModelFormatError(f"layer {key} blob is missing")
    weights = decode_matrix(blobs["weights"], output_size, input_size, "weights")
    bias = decode_matrix(blobs["bias"], output_size, 1, "biases")
    return Layer(input_size, output_size, activation, weights, bias)


def _write_layer(path: Path, blobs: Mapping[str, bytes]) -> None:
    with zipfile.ZipFile(path, "w") as archive:
        for key, blob in blobs.items():
            archive.writestr(f"{key}.npy", blob)


def _read_layer(path: Path) -> dict[str, bytes]:
    try:
        with zipfile.ZipFile(path) as archive:
            return {
                name[: -len(".npy")]: archive.read(name)
                for name in archive.namelist()
                if name.endswith(".npy")
            }
    except zipfile.BadZipFile as exc:
        raise ModelFormatError(f"{path} is not a layer archive") from exc


# ----------------------------------------------------------------------
# Envelope


def _envelope(network: Network) -> dict[str, Any]:
    return {
        "loss": network.loss.name,
        "default_learning_rate": network.default_learning_rate,
        "input_size": network.input_size,
        "layers": [
            {"activation": layer.activation.name, "output_size": layer.output_size}
            for layer in network.layers
        ],
    }


def _is_count(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _validate_envelope(data: Any) -> None:
    if not isinstance(data, Mapping):
        raise ModelFormatError("model envelope must be a JSON object")
    missing = {"loss", "default_learning_rate", "input_size", "layers"} - set(data)
    if missing:
        raise ModelFormatError(f"model envelope is missing: {', '.join(sorted(missing))}")
    if not _is_count(data["input_size"]) or data["input_size"] < 1:
        raise ModelFormatError("input size must be >= 1")
    if not isinstance(data["layers"], list) or len(data["layers"]) == 0:
        raise ModelFormatError("at least one layer must be present")
    rate = data["default_learning_rate"]
    if isinstance(rate, bool) or not isinstance(rate, (int, float)) or not rate > 0:
        raise ModelFormatError("learning rate must be positive (and, preferably, small)")
    for index, layer in enumerate(data["layers"]):
        if not isinstance(layer, Mapping) or "output_size" not in layer:
            raise ModelFormatError(f"layer {index} descriptor is malformed")
        size = layer["output_size"]
        if not _is_count(size) or size < 1:
            raise ModelFormatError(f"layer {index}: output size must be >= 1")


def save(network: Network, filename: str | Path) -> Path:
    """Persist ``network``; returns the path of the envelope file."""

    path = with_extension(filename)
    path.parent.mkdir(parents=True, exist_ok=True)
    for index, layer in enumerate(network.layers):
        _write_layer(layer_path(path, index), encode_layer(layer))
    path.write_text(json.dumps(_envelope(network), indent=2))
    logger.info(f"Saved {network!r} to {path}")
    return path


def load(
    filename: str | Path,
    *,
    activations: ActivationRegistry | None = None,
    losses: LossRegistry | None = None,
) -> Network:
    """Restore a network written by :func:`save`.

    Raises :class:`ModelFormatError` for malformed or inconsistent files;
    I/O errors such as a missing file propagate unchanged.
    """

    activations = activations or ACTIVATIONS
    losses = losses or LOSSES
    path = with_extension(filename)
    try:
        data = json.loads(path.read_text())
    except json.JSONDecodeError as exc:
        raise ModelFormatError(f"{path} is not a valid model envelope: {exc}") from exc
    _validate_envelope(data)

    layers = []
    input_size = data["input_size"]
    for index, descriptor in enumerate(data["layers"]):
        output_size = descriptor["output_size"]
        activation = activations.resolve(descriptor.get("activation"))
        blobs = _read_layer(layer_path(path, index))
        try:
            layers.append(decode_layer(input_size, output_size, activation, blobs))
        except ModelFormatError as exc:
            raise ModelFormatError(f"layer {index}: {exc}") from exc
        input_size = output_size

    network = Network(layers, losses.resolve(data["loss"]), data["default_learning_rate"])
    logger.info(f"Loaded {network!r} from {path}")
    return network


__all__ = [
    "ModelFormatError",
    "decode_layer",
    "decode_matrix",
    "encode_layer",
    "encode_matrix",
    "layer_path",
    "load",
    "save",
    "with_extension",
    "without_extension",
]
