"""
Functional Update Tests
=======================

Checks the stateless ``init`` / ``update`` pair against hand-computed values
of the Nesterov recurrence:

    v_new = mu * v - lr * dX
    X_new = X - mu * v + (1 + mu) * v_new

Run with:
    pytest tests/test_functional.py -v
"""

import numpy as np
import pytest
import torch

from nesterov_sgd import ShapeMismatchError, init, update


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _reference_step(x: float, dx: float, lr: float, mu: float, v: float):
    """Scalar version of the recurrence, written out term by term."""
    v_new = mu * v - lr * dx
    x_new = x - mu * v + (1 + mu) * v_new
    return x_new, v_new


def _random_problem(rows: int = 4, cols: int = 3, seed: int = 0):
    rng = np.random.default_rng(seed)
    X = rng.standard_normal((rows, cols))
    dX = rng.standard_normal((rows, cols))
    v = rng.standard_normal((rows, cols))
    return X, dX, v


# ---------------------------------------------------------------------------
# init
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("shape", [(1, 1), (3, 5), (0, 4), (4, 0), (0, 0)])
def test_init_preserves_shape_and_is_zero(shape):
    X = np.full(shape, 7.5)
    v = init(X)
    assert v.shape == shape
    assert v.dtype == np.float64
    assert np.all(v == 0.0)


def test_init_ignores_values():
    a = init(np.array([[1.0, -2.0], [np.nan, np.inf]]))
    b = init(np.zeros((2, 2)))
    np.testing.assert_array_equal(a, b)


def test_init_accepts_nested_lists():
    v = init([[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]])
    assert isinstance(v, np.ndarray)
    assert v.shape == (2, 3)


def test_init_tensor_keeps_dtype():
    X = torch.randn(3, 2, dtype=torch.float32, requires_grad=True)
    v = init(X)
    assert isinstance(v, torch.Tensor)
    assert v.shape == X.shape
    assert v.dtype == torch.float32
    assert v.device == X.device
    assert not v.requires_grad
    assert torch.count_nonzero(v).item() == 0


# ---------------------------------------------------------------------------
# update: properties
# ---------------------------------------------------------------------------


def test_scale_sanity_single_element():
    X_new, v_new = update(
        np.array([[5.0]]), np.array([[2.0]]), lr=0.1, mu=0.9, v=np.array([[0.0]])
    )
    np.testing.assert_allclose(v_new, [[-0.2]], rtol=1e-12)
    np.testing.assert_allclose(X_new, [[4.62]], rtol=1e-12)


def test_zero_gradient_fixpoint():
    X, _, _ = _random_problem()
    X_new, v_new = update(X, np.zeros_like(X), lr=0.1, mu=0.9, v=init(X))
    np.testing.assert_array_equal(v_new, np.zeros_like(X))
    np.testing.assert_array_equal(X_new, X)


@pytest.mark.parametrize("lr", [1e-4, 1e-2, 0.5])
def test_zero_momentum_is_plain_gradient_descent(lr):
    X, dX, v = _random_problem()
    X_new, v_new = update(X, dX, lr=lr, mu=0.0, v=v)
    np.testing.assert_allclose(v_new, -lr * dX, rtol=1e-12, atol=0.0)
    np.testing.assert_allclose(X_new, X - lr * dX, rtol=1e-12, atol=1e-15)


def test_deterministic():
    X, dX, v = _random_problem(seed=3)
    first = update(X, dX, 0.05, 0.9, v)
    second = update(X, dX, 0.05, 0.9, v)
    np.testing.assert_array_equal(first[0], second[0])
    np.testing.assert_array_equal(first[1], second[1])


def test_matches_elementwise_reference():
    X, dX, v = _random_problem(rows=5, cols=6, seed=7)
    lr, mu = 0.03, 0.95
    X_new, v_new = update(X, dX, lr, mu, v)

    for i in range(X.shape[0]):
        for j in range(X.shape[1]):
            x_ref, v_ref = _reference_step(X[i, j], dX[i, j], lr, mu, v[i, j])
            assert X_new[i, j] == pytest.approx(x_ref, rel=1e-14, abs=1e-15)
            assert v_new[i, j] == pytest.approx(v_ref, rel=1e-14, abs=1e-15)


def test_chained_two_steps():
    X0 = np.array([[1.0, -3.0], [0.5, 2.0]])
    g1 = np.array([[0.2, -0.4], [1.0, 0.0]])
    g2 = np.array([[-0.1, 0.3], [0.5, -2.0]])
    lr, mu = 0.1, 0.9

    X1, v1 = update(X0, g1, lr, mu, init(X0))
    X2, v2 = update(X1, g2, lr, mu, v1)

    for i in range(2):
        for j in range(2):
            x1, w1 = _reference_step(X0[i, j], g1[i, j], lr, mu, 0.0)
            x2, w2 = _reference_step(x1, g2[i, j], lr, mu, w1)
            assert X2[i, j] == pytest.approx(x2, rel=1e-14, abs=1e-15)
            assert v2[i, j] == pytest.approx(w2, rel=1e-14, abs=1e-15)


def test_inputs_are_not_mutated():
    X, dX, v = _random_problem(seed=11)
    X_copy, dX_copy, v_copy = X.copy(), dX.copy(), v.copy()
    update(X, dX, 0.1, 0.9, v)
    np.testing.assert_array_equal(X, X_copy)
    np.testing.assert_array_equal(dX, dX_copy)
    np.testing.assert_array_equal(v, v_copy)


def test_nan_hyperparameters_propagate():
    X, dX, v = _random_problem()
    X_new, v_new = update(X, dX, lr=float("nan"), mu=0.9, v=v)
    assert np.all(np.isnan(v_new))
    assert np.all(np.isnan(X_new))


def test_negative_learning_rate_is_not_rejected():
    X_new, v_new = update(np.array([[1.0]]), np.array([[1.0]]), lr=-0.5, mu=0.0, v=np.array([[0.0]]))
    np.testing.assert_allclose(v_new, [[0.5]])
    np.testing.assert_allclose(X_new, [[1.5]])


def test_empty_matrix():
    X = np.zeros((0, 3))
    X_new, v_new = update(X, np.zeros((0, 3)), 0.1, 0.9, init(X))
    assert X_new.shape == (0, 3)
    assert v_new.shape == (0, 3)


def test_nested_lists_are_accepted():
    X_new, v_new = update([[5.0]], [[2.0]], 0.1, 0.9, [[0.0]])
    assert isinstance(X_new, np.ndarray)
    np.testing.assert_allclose(X_new, [[4.62]], rtol=1e-12)
    np.testing.assert_allclose(v_new, [[-0.2]], rtol=1e-12)


def test_tensor_inputs():
    torch.manual_seed(0)
    X = torch.randn(4, 3, dtype=torch.float64)
    dX = torch.randn(4, 3, dtype=torch.float64)
    v = torch.randn(4, 3, dtype=torch.float64)

    X_new, v_new = update(X, dX, 0.1, 0.9, v)
    assert isinstance(X_new, torch.Tensor)
    assert X_new.dtype == torch.float64

    X_np, v_np = update(X.numpy(), dX.numpy(), 0.1, 0.9, v.numpy())
    np.testing.assert_allclose(X_new.numpy(), X_np, rtol=1e-14)
    np.testing.assert_allclose(v_new.numpy(), v_np, rtol=1e-14)


# ---------------------------------------------------------------------------
# update: shape mismatch
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("bad_shape", [(3, 4), (1, 3), (4, 1), (12,), (4, 3, 1)])
def test_gradient_shape_mismatch(bad_shape):
    X = np.zeros((4, 3))
    with pytest.raises(ShapeMismatchError) as exc_info:
        update(X, np.zeros(bad_shape), 0.1, 0.9, init(X))
    err = exc_info.value
    assert err.name == "dX"
    assert err.expected == (4, 3)
    assert err.actual == bad_shape


@pytest.mark.parametrize("bad_shape", [(3, 4), (1, 3), (1, 1)])
def test_velocity_shape_mismatch(bad_shape):
    X = np.zeros((4, 3))
    with pytest.raises(ShapeMismatchError) as exc_info:
        update(X, np.zeros((4, 3)), 0.1, 0.9, np.zeros(bad_shape))
    assert exc_info.value.name == "v"
    assert exc_info.value.actual == bad_shape


def test_shape_mismatch_is_value_error():
    X = torch.zeros(2, 2)
    with pytest.raises(ValueError, match="expected \\(2, 2\\), got \\(2, 1\\)"):
        update(X, torch.zeros(2, 1), 0.1, 0.9, init(X))
