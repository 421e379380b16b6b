"""ffnn public API."""

from .core import activations, matrices, types  # noqa: F401
from .core.activations import ReLU, Sigmoid, Tanh, default_activations
from .core.errors import ShapeMismatchError
from .core.layer import Layer
from .core.network import Network, NetworkBuilder, new
from .storage import ModelFormatError, load, save
from .training.losses import HalfSquaredError, default_losses

__version__ = "0.1.0"

__all__ = [
    "HalfSquaredError",
    "Layer",
    "ModelFormatError",
    "Network",
    "NetworkBuilder",
    "ReLU",
    "ShapeMismatchError",
    "Sigmoid",
    "Tanh",
    "activations",
    "default_activations",
    "default_losses",
    "load",
    "matrices",
    "new",
    "save",
    "types",
]
