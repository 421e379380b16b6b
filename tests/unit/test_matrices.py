import numpy as np
import pytest

from ffnn.core import matrices


def test_elementwise_helpers_allocate_new_arrays():
    a = np.array([[1.0, 2.0], [3.0, 4.0]])
    b = np.array([[0.5, -1.0], [2.0, 0.0]])
    before = a.copy()

    assert np.array_equal(matrices.add(a, b), [[1.5, 1.0], [5.0, 4.0]])
    assert np.array_equal(matrices.sub(a, b), [[0.5, 3.0], [1.0, 4.0]])
    assert np.array_equal(matrices.mul(a, b), [[0.5, -2.0], [6.0, 0.0]])
    assert np.array_equal(matrices.scale(2.0, a), [[2.0, 4.0], [6.0, 8.0]])
    assert np.array_equal(a, before)
    assert matrices.add(a, b) is not a


def test_product_and_shape_checks():
    w = np.arange(6, dtype=float).reshape(2, 3)
    x = matrices.column([1.0, 0.0, -1.0])
    assert matrices.product(w, x).shape == (2, 1)
    assert np.array_equal(matrices.product(w, x), [[-2.0], [-2.0]])
    with pytest.raises(ValueError):
        matrices.product(x, w)
    with pytest.raises(ValueError):
        matrices.add(w, x)


def test_fill_and_noise_bounds():
    assert np.array_equal(matrices.fill(2, 3, 0.25), np.full((2, 3), 0.25))
    assert matrices.fill_row(4, 1.0).shape == (1, 4)
    assert matrices.fill_column(4, 1.0).shape == (4, 1)

    rng = np.random.default_rng(0)
    noisy = matrices.noise(50, 40, -0.2, rng)
    assert noisy.shape == (50, 40)
    assert np.all(np.abs(noisy) <= 0.2)
    assert matrices.noise_column(7, 1.0, rng).shape == (7, 1)
    assert matrices.noise_row(7, 1.0, rng).shape == (1, 7)


def test_apply_requires_elementwise_function():
    a = np.array([[1.0, -2.0]])
    assert np.array_equal(matrices.apply(np.abs, a), [[1.0, 2.0]])
    with pytest.raises(ValueError):
        matrices.apply(np.sum, a)
