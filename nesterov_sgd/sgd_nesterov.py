"""
SGD with Nesterov Momentum
==========================
``torch.optim.Optimizer`` wrapper around the functional update in
``nesterov_sgd.functional``. Each parameter gets its own velocity buffer in
``self.state``, so checkpointing works through the usual ``state_dict()``.

Update rule (per parameter, velocity form):
    v_prev  = v
    v_t     = mu * v_prev - lr * grad_t
    param_t = param_{t-1} - mu * v_prev + (1 + mu) * v_t

Weight decay (decoupled, a la AdamW style):
    param_t = param_t - lr * wd * param_{t-1}

Hyperparameters:
    lr:           Learning rate (typical: 0.01 - 0.1)
    mu:           Momentum factor (typical: 0.9 - 0.99)
    weight_decay: Decoupled weight decay (typical: 0 - 1e-4)
"""

import logging

import torch
from torch.optim.optimizer import Optimizer

from nesterov_sgd.functional import init, update

logger = logging.getLogger(__name__)


class SGDNesterov(Optimizer):
    """SGD with Nesterov momentum and decoupled weight decay.

    The velocity already includes the learning rate, so changing ``lr``
    between steps rescales only new gradient contributions.

    Args:
        params: Iterable of parameters or param groups.
        lr: Learning rate.
        mu: Momentum factor.
        weight_decay: Decoupled weight decay coefficient.
    """

    def __init__(
        self,
        params,
        lr: float = 0.01,
        mu: float = 0.9,
        weight_decay: float = 0.0,
    ):
        if lr < 0.0:
            raise ValueError(f"Invalid learning rate: {lr}")
        if mu < 0.0:
            raise ValueError(f"Invalid momentum value: {mu}")
        if weight_decay < 0.0:
            raise ValueError(f"Invalid weight_decay value: {weight_decay}")

        defaults = dict(lr=lr, mu=mu, weight_decay=weight_decay)
        super().__init__(params, defaults)

    @torch.no_grad()
    def step(self, closure=None):
        """Perform a single optimization step.

        Args:
            closure: Optional callable that re-evaluates the model and
                returns the loss.

        Returns:
            The loss returned by ``closure``, or None.
        """
        loss = None
        if closure is not None:
            with torch.enable_grad():
                loss = closure()

        for group in self.param_groups:
            lr = group["lr"]
            mu = group["mu"]
            wd = group["weight_decay"]

            for p in group["params"]:
                if p.grad is None:
                    continue

                if wd != 0.0:
                    p.mul_(1.0 - lr * wd)

                state = self.state[p]
                if "velocity" not in state:
                    state["velocity"] = init(p)
                    logger.debug(f"Initialized velocity buffer of shape {tuple(p.shape)}")

                new_p, state["velocity"] = update(p, p.grad, lr, mu, state["velocity"])
                p.copy_(new_p)

        return loss
