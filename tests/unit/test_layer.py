import math

import numpy as np
import pytest

from ffnn.core.activations import Sigmoid
from ffnn.core.errors import ShapeMismatchError
from ffnn.core.layer import Layer


@pytest.mark.parametrize("input_size,output_size", [(1, 1), (2, 3), (784, 200), (200, 10)])
def test_new_layer_shapes_and_bounds(input_size, output_size):
    layer = Layer(input_size, output_size, Sigmoid(), rng=np.random.default_rng(0))
    bound = 1.0 / math.sqrt(input_size)
    assert layer.weights.shape == (output_size, input_size)
    assert layer.bias.shape == (output_size, 1)
    assert np.all(np.abs(layer.weights) <= bound)
    assert np.all(np.abs(layer.bias) <= bound)
    assert layer.inputs.shape == (input_size, 1)
    assert layer.weighted_sums.shape == (output_size, 1)
    assert layer.activations.shape == (output_size, 1)


@pytest.mark.parametrize("input_size,output_size", [(0, 3), (3, 0), (-1, 2)])
def test_invalid_sizes_fail_at_construction(input_size, output_size):
    with pytest.raises(ValueError):
        Layer(input_size, output_size, Sigmoid())


def test_explicit_parameters_must_match_declared_shape():
    with pytest.raises(ShapeMismatchError):
        Layer(2, 3, Sigmoid(), weights=np.zeros((2, 3)), bias=np.zeros((3, 1)))
    with pytest.raises(ShapeMismatchError):
        Layer(2, 3, Sigmoid(), weights=np.zeros((3, 2)), bias=np.zeros((3,)))


def test_forward_computes_weighted_sum_and_activation():
    weights = np.array([[1.0, -1.0], [0.5, 0.5]])
    bias = np.array([[0.0], [1.0]])
    layer = Layer(2, 2, Sigmoid(), weights=weights, bias=bias)
    x = np.array([[2.0], [1.0]])

    output = layer.forward(x)

    assert np.array_equal(layer.inputs, x)
    assert np.allclose(layer.weighted_sums, [[1.0], [2.5]])
    assert np.allclose(output, 1.0 / (1.0 + np.exp(-np.array([[1.0], [2.5]]))))
    # the cached input is a copy, not the caller's array
    x[0, 0] = 100.0
    assert layer.inputs[0, 0] == 2.0


def test_forward_is_deterministic():
    layer = Layer(5, 4, Sigmoid(), rng=np.random.default_rng(1))
    x = np.random.default_rng(2).uniform(size=(5, 1))
    first = np.array(layer.forward(x))
    second = np.array(layer.forward(x))
    assert np.array_equal(first, second)


def test_forward_rejects_wrong_shape_without_touching_scratch():
    layer = Layer(3, 2, Sigmoid(), rng=np.random.default_rng(0))
    good = np.ones((3, 1))
    layer.forward(good)
    snapshot = np.array(layer.weighted_sums)
    for bad in (np.ones((4, 1)), np.ones(3), np.ones((1, 3))):
        with pytest.raises(ShapeMismatchError):
            layer.forward(bad)
    assert np.array_equal(layer.weighted_sums, snapshot)
    assert np.array_equal(layer.inputs, good)


def test_accessors_are_read_only_and_adjust_updates_in_place():
    layer = Layer(2, 1, Sigmoid(), weights=np.ones((1, 2)), bias=np.zeros((1, 1)))
    with pytest.raises(ValueError):
        layer.weights[0, 0] = 5.0
    layer.adjust(np.full((1, 2), 0.25), np.full((1, 1), -0.5))
    assert np.array_equal(layer.weights, [[0.75, 0.75]])
    assert np.array_equal(layer.bias, [[0.5]])
    with pytest.raises(ShapeMismatchError):
        layer.adjust(np.zeros((2, 1)), np.zeros((1, 1)))


class _FreshArrayIdentity:
    """Ignores ``out`` and returns new arrays."""

    name = "Identity"

    def base(self, z, out=None):
        return np.array(z, copy=True)

    def derivative(self, z, out=None):
        return np.ones_like(z)


def test_forward_copies_result_of_activation_ignoring_out():
    layer = Layer(
        2, 1, _FreshArrayIdentity(), weights=np.array([[1.0, 2.0]]), bias=np.array([[0.5]])
    )
    output = layer.forward(np.array([[1.0], [1.0]]))
    assert output[0, 0] == 3.5
    assert layer.activations[0, 0] == 3.5


def test_activation_returning_wrong_shape_is_rejected():
    class Flattening(_FreshArrayIdentity):
        def base(self, z, out=None):
            return np.ravel(z).copy()

    layer = Layer(2, 2, Flattening(), rng=np.random.default_rng(0))
    with pytest.raises(ShapeMismatchError):
        layer.forward(np.ones((2, 1)))
