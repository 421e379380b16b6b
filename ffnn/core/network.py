"""Feedforward network with online backpropagation."""

from __future__ import annotations

import logging
from typing import List, Sequence, Tuple

import numpy as np

from ..training.losses import Loss
from .activations import Activation, derivative_into
from .errors import ShapeMismatchError
from .layer import Layer
from .types import Array, Shape

logger = logging.getLogger(__name__)


class Network:
    """An ordered chain of layers plus the buffers used to train it.

    The per-layer training buffers (``errors``, activation derivatives and
    cost gradients) are allocated once and reused by every call, as are the
    layers' own forward buffers.  A network instance is therefore *not*
    reentrant: concurrent ``forward``/``test``/``train`` calls on the same
    instance corrupt each other.  Use one instance per worker or guard calls
    with a lock.
    """

    def __init__(
        self,
        layers: Sequence[Layer],
        loss: Loss,
        default_learning_rate: float,
    ) -> None:
        layers = tuple(layers)
        if not layers:
            raise ValueError("at least one layer must be present")
        for index in range(1, len(layers)):
            previous, current = layers[index - 1], layers[index]
            if previous.output_size != current.input_size:
                raise ValueError(
                    f"layer {index} expects {current.input_size} inputs but layer "
                    f"{index - 1} produces {previous.output_size}"
                )
        if not default_learning_rate > 0:
            raise ValueError("learning rate must be positive (and, preferably, small)")

        self._layers = layers
        self._loss = loss
        self._default_learning_rate = float(default_learning_rate)
        # errors[i] = dCost/dWeightedSums of layer i
        self._errors: List[Array] = [np.zeros((layer.output_size, 1)) for layer in layers]
        self._activation_derivatives: List[Array] = [
            np.zeros((layer.output_size, 1)) for layer in layers
        ]
        self._cost_gradients: List[Array] = [
            np.zeros((layer.output_size, 1)) for layer in layers
        ]

    # ------------------------------------------------------------------
    # Accessors

    @property
    def layers(self) -> Tuple[Layer, ...]:
        return self._layers

    def layer(self, index: int) -> Layer:
        return self._layers[index]

    def __len__(self) -> int:
        return len(self._layers)

    @property
    def input_size(self) -> int:
        return self._layers[0].input_size

    @property
    def output_size(self) -> int:
        return self._layers[-1].output_size

    @property
    def shapes(self) -> List[Shape]:
        return [layer.shape for layer in self._layers]

    @property
    def loss(self) -> Loss:
        return self._loss

    @property
    def default_learning_rate(self) -> float:
        return self._default_learning_rate

    # ------------------------------------------------------------------
    # Inference

    def forward(self, inputs: Array) -> Array:
        """Run every layer in order and return a copy of the final activations."""

        activations = inputs
        for layer in self._layers:
            activations = layer.forward(activations)
        return activations.copy()

    def test(self, inputs: Array, expected: Array) -> Tuple[Array, float]:
        """Forward and cost, without touching the parameters."""

        expected = self._checked_expected(expected)
        output = self.forward(inputs)
        return output, self._loss.base(output, expected)

    # ------------------------------------------------------------------
    # Training

    def train(self, inputs: Array, expected: Array) -> Tuple[Array, float]:
        return self.train_with_rate(inputs, expected, self._default_learning_rate)

    def train_with_rate(
        self, inputs: Array, expected: Array, learning_rate: float
    ) -> Tuple[Array, float]:
        """One step of online gradient descent on ``(inputs, expected)``.

        Returns the output and the cost computed *before* the update.
        """

        if not learning_rate > 0:
            raise ValueError(f"learning rate must be positive, got {learning_rate}")
        output, cost = self.test(inputs, expected)

        last = len(self._layers) - 1
        self._output_errors(last, expected)
        for index in range(last - 1, -1, -1):
            self._propagated_errors(index)
        # All errors are known; only now may the weights change.
        for index in range(len(self._layers)):
            self._fix_layer(index, learning_rate)
        return output, cost

    def _checked_expected(self, expected: Array) -> Array:
        expected = np.asarray(expected)
        shape = (self.output_size, 1)
        if expected.shape != shape:
            raise ShapeMismatchError("expected output", shape, expected.shape)
        return expected

    def _activation_derivative(self, index: int) -> Array:
        layer = self._layers[index]
        out = self._activation_derivatives[index]
        return derivative_into(layer.activation, layer.weighted_sums, out)

    def _output_errors(self, index: int, expected: Array) -> Array:
        layer = self._layers[index]
        gradient = self._loss.gradient(
            layer.activations, expected, out=self._cost_gradients[index]
        )
        derivative = self._activation_derivative(index)
        return np.multiply(gradient, derivative, out=self._errors[index])

    def _propagated_errors(self, index: int) -> Array:
        following = self._layers[index + 1]
        gradient = np.matmul(
            following.weights.T, self._errors[index + 1], out=self._cost_gradients[index]
        )
        derivative = self._activation_derivative(index)
        return np.multiply(gradient, derivative, out=self._errors[index])

    def _fix_layer(self, index: int, learning_rate: float) -> None:
        layer = self._layers[index]
        errors = self._errors[index]
        weight_step = errors @ layer.inputs.T
        weight_step *= learning_rate
        layer.adjust(weight_step, learning_rate * errors)

    def __repr__(self) -> str:
        chain = " -> ".join(
            [str(self.input_size)]
            + [f"{layer.output_size}({layer.activation.name})" for layer in self._layers]
        )
        return f"Network({chain}, loss={self._loss.name})"


class NetworkBuilder:
    """Accumulate ``(output_size, activation)`` pairs and build a network."""

    def __init__(self, default_learning_rate: float, input_size: int, loss: Loss) -> None:
        if int(input_size) < 1:
            raise ValueError(f"input size must be >= 1, got {input_size}")
        self.default_learning_rate = default_learning_rate
        self.input_size = int(input_size)
        self.loss = loss
        self._layers: List[Tuple[int, Activation]] = []

    def add_layer(self, output_size: int, activation: Activation) -> "NetworkBuilder":
        if int(output_size) < 1:
            raise ValueError(f"output size must be >= 1, got {output_size}")
        self._layers.append((int(output_size), activation))
        return self

    def build(self, rng: np.random.Generator | None = None) -> Network:
        if not self._layers:
            raise ValueError("at least one layer must be added before building")
        rng = rng if rng is not None else np.random.default_rng()
        layers: List[Layer] = []
        input_size = self.input_size
        for output_size, activation in self._layers:
            layers.append(Layer(input_size, output_size, activation, rng=rng))
            input_size = output_size
        network = Network(layers, self.loss, self.default_learning_rate)
        logger.debug(f"Built {network!r}")
        return network


def new(default_learning_rate: float, input_size: int, loss: Loss) -> NetworkBuilder:
    """Start building a network, e.g. ``new(0.01, 784, HalfSquaredError())``."""

    return NetworkBuilder(default_learning_rate, input_size, loss)


__all__ = ["Network", "NetworkBuilder", "new"]
