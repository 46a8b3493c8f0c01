"""
Nesterov demo: numpy hand-written vs PyTorch autograd, side by side.

The numpy half threads parameters and velocities through the functional
``init`` / ``update`` pair; the PyTorch half uses
``torch.optim.SGD(momentum=mu, nesterov=True)``. With a constant learning rate
both follow the same recurrence, so the loss curves should overlap.

Architecture:  x -> Linear(1,8) -> ReLU -> Linear(8,8) -> ReLU -> Linear(8,1) -> y_pred
Loss:          MSE = mean((y_pred - y_true)^2)

Run:
    python toy_demos/nesterov.py
    python toy_demos/nesterov.py --config toy_demos/configs/nesterov.yaml
"""

import argparse
import logging
import sys
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np
import torch
import torch.nn as nn
import yaml

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from nesterov_sgd import init, update

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")
logger = logging.getLogger(__name__)

DEFAULTS = {
    "seed": 42,
    "num_samples": 200,
    "batch_size": 20,
    "epochs": 500,
    "hidden_ch": 8,
    "lr": 1e-4,
    "mu": 0.95,
    "log_every": 50,
    "output": "toy_demos/nesterov_result.png",
    "show": True,
}


# ═══════════════════════════════════════════════════════════════════════
# Setup
# ═══════════════════════════════════════════════════════════════════════
def load_config(path: str | None) -> dict:
    """Merge an optional YAML file over DEFAULTS."""
    config = dict(DEFAULTS)
    if path:
        with open(path) as f:
            overrides = yaml.safe_load(f) or {}
        unknown = set(overrides) - set(DEFAULTS)
        if unknown:
            raise ValueError(f"Unknown config keys: {', '.join(sorted(unknown))}")
        config.update(overrides)
    return config


def make_problem(cfg: dict):
    """Build data, He-initialised weights and per-epoch shuffles."""
    np.random.seed(cfg["seed"])
    n = cfg["num_samples"]
    hidden = cfg["hidden_ch"]

    x_all = np.linspace(1.0, 10.0, n).reshape(-1, 1)
    y_all = x_all**2 + 2 * x_all + 1

    init_params = [
        np.random.randn(1, hidden) * np.sqrt(2.0),
        np.zeros((1, hidden)),
        np.random.randn(hidden, hidden) * np.sqrt(2.0 / hidden),
        np.zeros((1, hidden)),
        np.random.randn(hidden, 1) * np.sqrt(2.0 / hidden),
        np.zeros((1, 1)),
    ]
    shuffles = np.array([np.random.permutation(n) for _ in range(cfg["epochs"])])
    return x_all, y_all, init_params, shuffles


# ═══════════════════════════════════════════════════════════════════════
# Network forward / backward
# ═══════════════════════════════════════════════════════════════════════
def np_forward(params, x):
    w1, b1, w2, b2, w3, b3 = params
    z1 = x @ w1 + b1
    a1 = np.maximum(0, z1)
    z2 = a1 @ w2 + b2
    a2 = np.maximum(0, z2)
    z3 = a2 @ w3 + b3
    return z3, (x, z1, a1, z2, a2)


def np_backward(params, y_pred, y_true, cache):
    _, _, w2, _, w3, _ = params
    x, z1, a1, z2, a2 = cache
    B = x.shape[0]

    dz3 = (2.0 / B) * (y_pred - y_true)

    dw3 = a2.T @ dz3
    db3 = dz3.sum(axis=0, keepdims=True)
    dz2 = (dz3 @ w3.T) * (z2 > 0)

    dw2 = a1.T @ dz2
    db2 = dz2.sum(axis=0, keepdims=True)
    dz1 = (dz2 @ w2.T) * (z1 > 0)

    dw1 = x.T @ dz1
    db1 = dz1.sum(axis=0, keepdims=True)

    return [dw1, db1, dw2, db2, dw3, db3]


# ═══════════════════════════════════════════════════════════════════════
# Part 1: Numpy
# ═══════════════════════════════════════════════════════════════════════
def train_numpy(cfg, x_all, y_all, init_params, shuffles):
    params = [p.copy() for p in init_params]
    velocities = [init(p) for p in params]
    batch_size = cfg["batch_size"]
    history = []

    for epoch in range(cfg["epochs"]):
        epoch_loss = 0.0
        n_batches = 0

        for start in range(0, len(x_all), batch_size):
            batch_idx = shuffles[epoch][start : start + batch_size]
            x_batch = x_all[batch_idx]
            y_batch = y_all[batch_idx]

            y_pred, cache = np_forward(params, x_batch)
            epoch_loss += np.mean((y_pred - y_batch) ** 2)
            n_batches += 1

            grads = np_backward(params, y_pred, y_batch, cache)
            for i, (p, g, v) in enumerate(zip(params, grads, velocities)):
                params[i], velocities[i] = update(p, g, cfg["lr"], cfg["mu"], v)

        history.append(epoch_loss / n_batches)
        if epoch % cfg["log_every"] == 0 or epoch == cfg["epochs"] - 1:
            logger.info(f"[numpy] Epoch {epoch:3d} | Loss: {history[-1]:.6f}")

    return params, history


# ═══════════════════════════════════════════════════════════════════════
# Part 2: PyTorch
# ═══════════════════════════════════════════════════════════════════════
class MLP(nn.Module):
    def __init__(self, hidden_ch: int):
        super().__init__()
        self.fc1 = nn.Linear(1, hidden_ch)
        self.fc2 = nn.Linear(hidden_ch, hidden_ch)
        self.fc3 = nn.Linear(hidden_ch, 1)

    def forward(self, x):
        x = torch.relu(self.fc1(x))
        x = torch.relu(self.fc2(x))
        return self.fc3(x)


def train_torch(cfg, x_all, y_all, init_params, shuffles):
    w1, b1, w2, b2, w3, b3 = init_params
    model = MLP(cfg["hidden_ch"]).double()
    with torch.no_grad():
        model.fc1.weight.copy_(torch.from_numpy(w1.T))
        model.fc1.bias.copy_(torch.from_numpy(b1.flatten()))
        model.fc2.weight.copy_(torch.from_numpy(w2.T))
        model.fc2.bias.copy_(torch.from_numpy(b2.flatten()))
        model.fc3.weight.copy_(torch.from_numpy(w3.T))
        model.fc3.bias.copy_(torch.from_numpy(b3.flatten()))

    optimizer = torch.optim.SGD(
        model.parameters(), lr=cfg["lr"], momentum=cfg["mu"], nesterov=True,
    )

    x_all_t = torch.from_numpy(x_all)
    y_all_t = torch.from_numpy(y_all)
    batch_size = cfg["batch_size"]
    history = []

    for epoch in range(cfg["epochs"]):
        epoch_loss = 0.0
        n_batches = 0

        for start in range(0, len(x_all), batch_size):
            batch_idx = torch.from_numpy(shuffles[epoch][start : start + batch_size])
            y_pred = model(x_all_t[batch_idx])
            batch_loss = torch.mean((y_pred - y_all_t[batch_idx]) ** 2)
            epoch_loss += batch_loss.item()
            n_batches += 1

            optimizer.zero_grad()
            batch_loss.backward()
            optimizer.step()

        history.append(epoch_loss / n_batches)
        if epoch % cfg["log_every"] == 0 or epoch == cfg["epochs"] - 1:
            logger.info(f"[torch] Epoch {epoch:3d} | Loss: {history[-1]:.6f}")

    return model, history


# ═══════════════════════════════════════════════════════════════════════
# Comparison
# ═══════════════════════════════════════════════════════════════════════
def plot_results(cfg, x_all, y_all, np_params, np_history, model, pt_history, diffs):
    fig, axes = plt.subplots(1, 3, figsize=(16, 4))

    axes[0].plot(np_history, label="Numpy", linewidth=2.5, alpha=0.8)
    axes[0].plot(pt_history, label="PyTorch", linewidth=1.5, linestyle="--", color="red")
    axes[0].set_xlabel("Epoch")
    axes[0].set_ylabel("MSE Loss")
    axes[0].set_title("Training Loss (nesterov)")
    axes[0].set_yscale("log")
    axes[0].legend()

    axes[1].plot(diffs)
    axes[1].set_xlabel("Epoch")
    axes[1].set_ylabel("|numpy - pytorch|")
    axes[1].set_title("Loss Difference")
    axes[1].set_yscale("log")

    y_pred_np, _ = np_forward(np_params, x_all)
    with torch.no_grad():
        y_pred_t = model(torch.from_numpy(x_all)).numpy()
    axes[2].scatter(x_all, y_all, s=8, alpha=0.5, label="Ground truth")
    axes[2].plot(x_all, y_pred_t, color="red", linewidth=3, alpha=0.6, label="torch")
    axes[2].plot(x_all, y_pred_np, color="blue", linewidth=1.5, linestyle="--", label="numpy")
    axes[2].set_xlabel("x")
    axes[2].set_ylabel("y")
    axes[2].set_title("Fit (nesterov)")
    axes[2].legend()

    plt.tight_layout()
    plt.savefig(cfg["output"], dpi=150)
    logger.info(f"Saved to {cfg['output']}")
    if cfg["show"]:
        plt.show()


def main():
    parser = argparse.ArgumentParser(description="Nesterov momentum: numpy vs PyTorch")
    parser.add_argument("--config", type=str, default=None, help="Path to YAML config file.")
    args = parser.parse_args()

    cfg = load_config(args.config)
    logger.info(f"LR: {cfg['lr']} | MU: {cfg['mu']} | Batch: {cfg['batch_size']} | Epochs: {cfg['epochs']}")

    x_all, y_all, init_params, shuffles = make_problem(cfg)
    np_params, np_history = train_numpy(cfg, x_all, y_all, init_params, shuffles)
    model, pt_history = train_torch(cfg, x_all, y_all, init_params, shuffles)

    diffs = [abs(a - b) for a, b in zip(np_history, pt_history)]
    logger.info(f"Max diff:  {max(diffs):.2e}")
    logger.info(f"Mean diff: {np.mean(diffs):.2e}")
    if max(diffs) < 1.0:
        logger.info("PASS: numpy matches PyTorch!")
    else:
        logger.warning("MISMATCH: check the update rule.")

    plot_results(cfg, x_all, y_all, np_params, np_history, model, pt_history, diffs)


if __name__ == "__main__":
    main()
