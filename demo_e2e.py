#!/usr/bin/env python3
# ════════════════════════════════════════════════════════════════════════════════
# optimkit End-to-End Demo
# ════════════════════════════════════════════════════════════════════════════════
# Trains a small regression MLP with the SGD adapter using only optimkit APIs.
#
# Features:
# - YAML optimizer configuration (configs/sgd.yaml)
# - Warmup + step-decay learning rate schedule
# - Driver-side state table with checkpoint/resume
# ════════════════════════════════════════════════════════════════════════════════

import argparse
import logging
from pathlib import Path

import torch
import torch.nn as nn

from optimkit import (
    LoggingConfig,
    create_optimizer,
    get_updater,
    load_optimizer_config,
    merge_configs,
    setup_logging,
)

logger = logging.getLogger("optimkit.demo")

_SCRIPT_DIR = Path(__file__).resolve().parent
_DEFAULT_CONFIG = _SCRIPT_DIR / "configs" / "sgd.yaml"


class RegressionMLP(nn.Module):
    def __init__(self, in_dim: int = 16, hidden: int = 64):
        super().__init__()
        self.net = nn.Sequential(
            nn.Linear(in_dim, hidden),
            nn.ReLU(),
            nn.Linear(hidden, 1),
        )

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        return self.net(x)


def main() -> None:
    parser = argparse.ArgumentParser(description="optimkit SGD demo")
    parser.add_argument("--config", type=Path, default=_DEFAULT_CONFIG)
    parser.add_argument("--steps", type=int, default=300)
    parser.add_argument("--momentum", type=float, default=None)
    parser.add_argument("--log-level", default="INFO")
    args = parser.parse_args()

    setup_logging(LoggingConfig(log_level=args.log_level))

    # ═════════════════════════════════════════════════════════════════════════════
    # 1. Configuration
    # ═════════════════════════════════════════════════════════════════════════════

    config = load_optimizer_config(args.config)
    if args.momentum is not None:
        config = merge_configs(config, {"momentum": args.momentum})

    optimizer = create_optimizer(config)
    updater = get_updater(optimizer)

    # ═════════════════════════════════════════════════════════════════════════════
    # 2. Data & Model
    # ═════════════════════════════════════════════════════════════════════════════

    torch.manual_seed(0)
    x = torch.randn(256, 16)
    true_w = torch.randn(16, 1)
    y = x @ true_w + 0.01 * torch.randn(256, 1)

    model = RegressionMLP()
    params = list(model.parameters())

    # ═════════════════════════════════════════════════════════════════════════════
    # 3. Training
    # ═════════════════════════════════════════════════════════════════════════════

    checkpoint = None
    for step in range(1, args.steps + 1):
        model.zero_grad(set_to_none=True)
        loss = nn.functional.mse_loss(model(x), y)
        loss.backward()
        updater.step(params)

        if step % 50 == 0:
            logger.info(
                "step %4d | loss %.5f | lr %.5f",
                step, loss.item(), optimizer.learning_rate,
            )
        if step == args.steps // 2:
            checkpoint = updater.get_states()

    # ═════════════════════════════════════════════════════════════════════════════
    # 4. Resume from mid-run state
    # ═════════════════════════════════════════════════════════════════════════════

    if checkpoint is not None:
        resumed = get_updater(create_optimizer(config))
        resumed.set_states(checkpoint)
        logger.info(
            "Restored %d parameter states at update %d (lr %.5f)",
            len(resumed.states), resumed.optimizer.num_update,
            resumed.optimizer.learning_rate,
        )

    logger.info("Done. Final loss %.5f", nn.functional.mse_loss(model(x), y).item())


if __name__ == "__main__":
    main()
