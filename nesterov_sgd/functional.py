"""
Nesterov Momentum (functional form)
===================================
Stateless update rule operating directly on arrays. The caller owns the
velocity buffer and threads it from one call to the next.

References:
    - Nesterov (1983): "A method for solving the convex programming problem
      with convergence rate O(1/k^2)"
    - Sutskever et al. (2013): "On the importance of initialization and momentum in deep learning"
      https://proceedings.mlr.press/v28/sutskever13.html

Update rule:
    v_prev = v
    v      = mu * v_prev - lr * dX
    X      = X - mu * v_prev + (1 + mu) * v

    The velocity here already carries the learning rate and the minus sign,
    so it points in the direction the parameters move. Expanding the
    position update gives X - lr * dX + mu * v: a plain gradient step plus
    the lookahead along the new velocity.

Relation to torch.optim.SGD(nesterov=True):
    torch keeps buf = mu * buf + grad and steps by lr * (grad + mu * buf).
    With a constant lr the two are the same recurrence with v = -lr * buf.

Usage:
    from nesterov_sgd import init, update

    v = init(w)
    for _ in range(steps):
        dw = grad_fn(w)
        w, v = update(w, dw, lr=1e-2, mu=0.9, v=v)
"""

import numpy as np
import torch


class ShapeMismatchError(ValueError):
    """Raised when a gradient or velocity does not match the parameter shape.

    Attributes:
        name: Argument that had the wrong shape ("dX" or "v").
        expected: Shape of the parameters.
        actual: Shape that was passed.
    """

    def __init__(self, name: str, expected: tuple, actual: tuple):
        self.name = name
        self.expected = tuple(expected)
        self.actual = tuple(actual)
        super().__init__(
            f"Shape mismatch for '{name}': expected {self.expected}, got {self.actual}"
        )


def _as_array(a):
    if isinstance(a, (np.ndarray, torch.Tensor)):
        return a
    return np.asarray(a, dtype=np.float64)


def init(X):
    """Return a zero velocity buffer with the same shape as ``X``.

    Only the shape of ``X`` matters. Tensors keep their dtype and device;
    anything else becomes a float64 numpy array.
    """
    if isinstance(X, torch.Tensor):
        return torch.zeros_like(X)
    return np.zeros(np.shape(X), dtype=np.float64)


def update(X, dX, lr: float, mu: float, v):
    """Apply one Nesterov momentum step.

    Args:
        X: Current parameters.
        dX: Gradient of the loss with respect to X, same shape as X.
        lr: Learning rate. Not validated.
        mu: Momentum coefficient. Not validated.
        v: Velocity from the previous step (``init(X)`` on the first step).

    Returns:
        (X_new, v_new). The inputs are left untouched.

    Raises:
        ShapeMismatchError: If dX or v does not have exactly X's shape.
    """
    X, dX, v = _as_array(X), _as_array(dX), _as_array(v)
    if dX.shape != X.shape:
        raise ShapeMismatchError("dX", X.shape, dX.shape)
    if v.shape != X.shape:
        raise ShapeMismatchError("v", X.shape, v.shape)

    v_prev = v
    v_new = mu * v_prev - lr * dX
    X_new = X - mu * v_prev + (1 + mu) * v_new
    return X_new, v_new
