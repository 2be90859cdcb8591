# ════════════════════════════════════════════════════════════════════════════════
# optimkit - SGD Optimizer
# ════════════════════════════════════════════════════════════════════════════════
# Stochastic gradient descent with optional momentum and lazy update.
#
# The class holds hyperparameters and derives the momentum buffer; the update
# math lives in the compute backend. Exactly one kernel call per update:
# - state present -> backend.sgd_mom_update
# - state absent  -> backend.sgd_update
# ════════════════════════════════════════════════════════════════════════════════

from __future__ import annotations

import logging
from typing import Optional, Union

import torch
from torch import Tensor

from optimkit.core.types import BackendType, OptimizerConfig, OptimizerType
from optimkit.optimizers.backend import ComputeBackend
from optimkit.optimizers.base import Optimizer, register_optimizer
from optimkit.schedulers import BaseScheduler, ConstantScheduler, create_scheduler

logger = logging.getLogger(__name__)


@register_optimizer(OptimizerType.SGD)
class SGD(Optimizer):
    """
    SGD optimizer with optional momentum.

    Algorithm (per parameter, executed by the backend):
    ```
    g = clip(rescale_grad * grad, -clip_gradient, clip_gradient)
    without momentum:  w = w - lr * (g + wd * w)
    with momentum:     m = momentum * m - lr * (g + wd * w);  w = w + m
    ```

    A momentum buffer exists for every parameter if and only if
    momentum != 0.

    Args:
        rescale_grad: Multiplier applied to every gradient (default: 1.0)
        weight_decay: L2 coefficient (default: 0.0)
        clip_gradient: Element-wise clip threshold, None disables (default: None)
        lr_scheduler: Learning rate schedule (default: constant 0.01)
        begin_num_update: Update count the schedule starts from (default: 0)
        momentum: Momentum coefficient (default: 0.0)
        lazy_update: Row-sparse update flag forwarded to the kernel (default: True)
        backend: Compute backend name or instance (default: "auto")

    Example:
        ```python
        sgd = SGD(lr_scheduler=FactorScheduler(step=1000, factor=0.5, base_lr=0.1),
                  momentum=0.9, weight_decay=1e-4)
        state = sgd.create_state(0, weight)
        sgd.step(0, weight, weight.grad, state)
        ```
    """

    def __init__(
        self,
        rescale_grad: float = 1.0,
        weight_decay: float = 0.0,
        clip_gradient: Optional[float] = None,
        lr_scheduler: Optional[BaseScheduler] = None,
        begin_num_update: int = 0,
        momentum: float = 0.0,
        lazy_update: bool = True,
        *,
        backend: Union[BackendType, str, ComputeBackend, None] = BackendType.AUTO,
    ):
        super().__init__(
            rescale_grad,
            weight_decay,
            clip_gradient,
            lr_scheduler,
            begin_num_update,
            backend=backend,
        )
        self._momentum = momentum
        self._lazy_update = lazy_update

    @property
    def momentum(self) -> float:
        return self._momentum

    @property
    def lazy_update(self) -> bool:
        return self._lazy_update

    def create_state(self, index: int, weight: Tensor) -> Optional[Tensor]:
        """Zero momentum buffer shaped like `weight`, or None without momentum."""
        if self._momentum == 0.0:
            return None

        self._check_supported(index, weight, weight)
        logger.debug("Creating momentum buffer for parameter %d %s", index, tuple(weight.shape))
        return torch.zeros_like(weight, memory_format=torch.preserve_format)

    def state_matches(self, state: Optional[Tensor]) -> bool:
        if self._momentum == 0.0:
            return state is None
        return isinstance(state, Tensor)

    def update(
        self,
        index: int,
        weight: Tensor,
        grad: Tensor,
        state: Optional[Tensor],
    ) -> None:
        self._check_supported(index, weight, grad)
        lr = self.learning_rate

        if state is not None:
            self._backend.sgd_mom_update(
                weight,
                grad,
                state,
                lr=lr,
                wd=self._weight_decay,
                momentum=self._momentum,
                rescale_grad=self._rescale_grad,
                clip_gradient=self._clip_gradient,
                lazy_update=self._lazy_update,
            )
        else:
            self._backend.sgd_update(
                weight,
                grad,
                lr=lr,
                wd=self._weight_decay,
                rescale_grad=self._rescale_grad,
                clip_gradient=self._clip_gradient,
                lazy_update=self._lazy_update,
            )

    @classmethod
    def from_config(
        cls,
        config: OptimizerConfig,
        *,
        lr_scheduler: Optional[BaseScheduler] = None,
        backend: Union[BackendType, str, ComputeBackend, None] = None,
    ) -> "SGD":
        return cls(
            rescale_grad=config.rescale_grad,
            weight_decay=config.weight_decay,
            clip_gradient=config.clip_gradient,
            lr_scheduler=(
                lr_scheduler if lr_scheduler is not None
                else create_scheduler(config.scheduler)
            ),
            begin_num_update=config.begin_num_update,
            momentum=config.momentum,
            lazy_update=config.lazy_update,
            backend=backend if backend is not None else config.backend,
        )

    def __repr__(self) -> str:
        return (
            f"SGD(lr={self.learning_rate}, momentum={self._momentum}, "
            f"wd={self._weight_decay}, lazy_update={self._lazy_update}, "
            f"backend={self._backend.name})"
        )


# ═════════════════════════════════════════════════════════════════════════════════
# Factory Function
# ═════════════════════════════════════════════════════════════════════════════════

def create_sgd(
    lr: float = 0.01,
    momentum: float = 0.0,
    weight_decay: float = 0.0,
    *,
    rescale_grad: float = 1.0,
    clip_gradient: Optional[float] = None,
    lazy_update: bool = True,
    backend: Union[BackendType, str, ComputeBackend, None] = BackendType.AUTO,
) -> SGD:
    """
    Factory function for SGD with a constant learning rate.

    Common settings:

    ResNet-style:
        lr=0.1, momentum=0.9, weight_decay=1e-4

    Plain SGD:
        lr=0.01, momentum=0.0
    """
    return SGD(
        rescale_grad=rescale_grad,
        weight_decay=weight_decay,
        clip_gradient=clip_gradient,
        lr_scheduler=ConstantScheduler(lr),
        momentum=momentum,
        lazy_update=lazy_update,
        backend=backend,
    )


__all__ = [
    "SGD",
    "create_sgd",
]
