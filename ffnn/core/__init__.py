"""Core numerical primitives for ffnn."""

from . import types, errors, matrices, activations, layer, network

__all__ = ["activations", "errors", "layer", "matrices", "network", "types"]
