"""A single fully connected layer."""

from __future__ import annotations

import math

import numpy as np

from . import matrices
from .activations import Activation, base_into
from .errors import ShapeMismatchError
from .types import Array, Shape


def _read_only(array: Array) -> Array:
    view = array.view()
    view.flags.writeable = False
    return view


class Layer:
    """Weights, bias and the scratch state of the last forward pass.

    ``inputs``, ``weighted_sums`` and ``activations`` are overwritten by every
    call to :meth:`forward`; the backward pass of a network relies on them
    describing the example that was forwarded last.
    """

    def __init__(
        self,
        input_size: int,
        output_size: int,
        activation: Activation,
        weights: Array | None = None,
        bias: Array | None = None,
        *,
        rng: np.random.Generator | None = None,
    ) -> None:
        input_size, output_size = int(input_size), int(output_size)
        if input_size < 1:
            raise ValueError(f"input size must be >= 1, got {input_size}")
        if output_size < 1:
            raise ValueError(f"output size must be >= 1, got {output_size}")
        self._input_size = input_size
        self._output_size = output_size
        self._activation = activation

        bound = 1.0 / math.sqrt(input_size)
        if weights is None:
            weights = matrices.noise(output_size, input_size, bound, rng)
        if bias is None:
            bias = matrices.noise_column(output_size, bound, rng)
        self._weights = self._checked(weights, (output_size, input_size), "weights")
        self._bias = self._checked(bias, (output_size, 1), "bias")

        self._inputs = np.zeros((input_size, 1))
        self._weighted_sums = np.zeros((output_size, 1))
        self._activations = np.zeros((output_size, 1))

    @staticmethod
    def _checked(array: Array, shape: tuple[int, int], what: str) -> Array:
        array = np.array(array, dtype=np.float64)
        if array.shape != shape:
            raise ShapeMismatchError(f"layer {what}", shape, array.shape)
        return array

    @property
    def input_size(self) -> int:
        return self._input_size

    @property
    def output_size(self) -> int:
        return self._output_size

    @property
    def shape(self) -> Shape:
        return Shape(self._input_size, self._output_size)

    @property
    def activation(self) -> Activation:
        return self._activation

    @property
    def weights(self) -> Array:
        return _read_only(self._weights)

    @property
    def bias(self) -> Array:
        return _read_only(self._bias)

    @property
    def inputs(self) -> Array:
        return _read_only(self._inputs)

    @property
    def weighted_sums(self) -> Array:
        return _read_only(self._weighted_sums)

    @property
    def activations(self) -> Array:
        return _read_only(self._activations)

    def forward(self, inputs: Array) -> Array:
        """Compute ``f(W @ inputs + b)`` into the layer's scratch buffers."""

        inputs = np.asarray(inputs)
        if inputs.shape != self._inputs.shape:
            raise ShapeMismatchError("layer inputs", self._inputs.shape, inputs.shape)
        np.copyto(self._inputs, inputs)
        np.matmul(self._weights, self._inputs, out=self._weighted_sums)
        np.add(self._weighted_sums, self._bias, out=self._weighted_sums)
        base_into(self._activation, self._weighted_sums, self._activations)
        return self.activations

    def adjust(self, weight_step: Array, bias_step: Array) -> None:
        """Subtract ``weight_step``/``bias_step`` from the parameters in place."""

        if weight_step.shape != self._weights.shape:
            raise ShapeMismatchError("weight step", self._weights.shape, weight_step.shape)
        if bias_step.shape != self._bias.shape:
            raise ShapeMismatchError("bias step", self._bias.shape, bias_step.shape)
        self._weights -= weight_step
        self._bias -= bias_step

    def __repr__(self) -> str:
        return (
            f"Layer(input_size={self._input_size}, output_size={self._output_size}, "
            f"activation={self._activation.name})"
        )


__all__ = ["Layer"]
