"""
Nesterov SGD - Functional Core & Optimizer Registry
===================================================

The functional pair ``init`` / ``update`` works on numpy arrays and torch
tensors and keeps no state. ``SGDNesterov`` wraps it in the standard
torch.optim.Optimizer interface; use ``get_optimizer(name, params, **kwargs)``
to instantiate it by name.

Usage:
    from nesterov_sgd import init, update

    v = init(w)
    w, v = update(w, dw, lr=0.1, mu=0.9, v=v)

    from nesterov_sgd import get_optimizer, list_optimizers

    opt = get_optimizer("sgd_nesterov", model.parameters(), lr=1e-2)
    print(list_optimizers())  # ['sgd_nesterov']
"""

from torch.optim.optimizer import Optimizer

from nesterov_sgd.functional import ShapeMismatchError, init, update
from nesterov_sgd.sgd_nesterov import SGDNesterov

__all__ = [
    "OPTIMIZER_REGISTRY",
    "SGDNesterov",
    "ShapeMismatchError",
    "get_optimizer",
    "init",
    "list_optimizers",
    "update",
]

OPTIMIZER_REGISTRY: dict[str, type[Optimizer]] = {
    "sgd_nesterov": SGDNesterov,
}


def get_optimizer(name: str, params, **kwargs) -> Optimizer:
    """Instantiate an optimizer by its registry name.

    Args:
        name: One of the keys in OPTIMIZER_REGISTRY.
        params: Model parameters (iterable or param groups).
        **kwargs: Forwarded to the optimizer constructor.

    Returns:
        An optimizer instance.
    """
    if name not in OPTIMIZER_REGISTRY:
        available = ", ".join(sorted(OPTIMIZER_REGISTRY.keys()))
        raise ValueError(f"Unknown optimizer '{name}'. Available: {available}")
    return OPTIMIZER_REGISTRY[name](params, **kwargs)


def list_optimizers() -> list[str]:
    """Return sorted list of available optimizer names."""
    return sorted(OPTIMIZER_REGISTRY.keys())
