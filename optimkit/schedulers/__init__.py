# ════════════════════════════════════════════════════════════════════════════════
# optimkit - Learning Rate Schedules
# ════════════════════════════════════════════════════════════════════════════════
# Learning rate providers with warmup integration.
#
# A schedule is a pure function of the update count. Optimizers query it on
# every update, so the rate always reflects the current count and is never
# cached between calls.
#
# Schedule Types:
# - Constant: Fixed LR after warmup
# - Factor: Multiply by `factor` every `step` updates
# - MultiFactor: Multiply by `factor` at each milestone
# - Linear / Cosine / Polynomial: Decay to final_lr at max_update
# - InverseSqrt: 1/sqrt(update) decay (original Transformer)
# ════════════════════════════════════════════════════════════════════════════════

from __future__ import annotations

import abc
import math
from typing import Any, Dict, List, Optional, Sequence

from optimkit.core.types import (
    SchedulerConfig,
    SchedulerType,
    WarmupType,
)

# ═════════════════════════════════════════════════════════════════════════════════
# Base Scheduler
# ═════════════════════════════════════════════════════════════════════════════════

class BaseScheduler(abc.ABC):
    """
    Abstract base class for learning rate schedules.

    Provides:
    - Unified warmup integration
    - Update-count driven rates (no internal step counter)
    - State serialization

    Subclasses must implement:
    - _get_lr_after_warmup(): Compute LR once warmup is over
    """

    def __init__(
        self,
        base_lr: float = 0.01,
        *,
        warmup_steps: int = 0,
        warmup_type: WarmupType = WarmupType.LINEAR,
        warmup_begin_lr: float = 0.0,
    ):
        """
        Initialize schedule.

        Args:
            base_lr: Learning rate reached at the end of warmup
            warmup_steps: Number of warmup updates
            warmup_type: Warmup strategy (linear, constant, none)
            warmup_begin_lr: LR at update 0 of warmup
        """
        if warmup_steps < 0:
            raise ValueError(f"Invalid warmup_steps: {warmup_steps}")
        if warmup_begin_lr > base_lr:
            raise ValueError(
                f"warmup_begin_lr ({warmup_begin_lr}) must not exceed base_lr ({base_lr})"
            )

        self.base_lr = base_lr
        self.warmup_steps = warmup_steps if warmup_type != WarmupType.NONE else 0
        self.warmup_type = warmup_type
        self.warmup_begin_lr = warmup_begin_lr

    def _get_warmup_lr(self, num_update: int) -> float:
        """Learning rate during warmup."""
        if self.warmup_type == WarmupType.CONSTANT:
            return self.warmup_begin_lr

        progress = num_update / self.warmup_steps
        return self.warmup_begin_lr + (self.base_lr - self.warmup_begin_lr) * progress

    @abc.abstractmethod
    def _get_lr_after_warmup(self, num_update: int) -> float:
        """
        Compute learning rate after warmup.

        Args:
            num_update: Absolute update count (>= warmup_steps)
        """
        pass

    def current_rate(self, num_update: int) -> float:
        """
        Learning rate for the given update count.

        Args:
            num_update: Number of updates performed so far

        Returns:
            Learning rate to use for this update
        """
        if num_update < self.warmup_steps:
            return self._get_warmup_lr(num_update)
        return self._get_lr_after_warmup(num_update)

    def __call__(self, num_update: int) -> float:
        return self.current_rate(num_update)

    def state_dict(self) -> Dict[str, Any]:
        """Return schedule state for checkpointing."""
        return {"base_lr": self.base_lr}

    def load_state_dict(self, state_dict: Dict[str, Any]) -> None:
        """Load schedule state from checkpoint."""
        self.base_lr = state_dict["base_lr"]

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"base_lr={self.base_lr}, "
            f"warmup={self.warmup_steps})"
        )


# ═════════════════════════════════════════════════════════════════════════════════
# Concrete Schedulers
# ═════════════════════════════════════════════════════════════════════════════════

class ConstantScheduler(BaseScheduler):
    """
    Constant learning rate (with optional warmup).
    """

    def _get_lr_after_warmup(self, num_update: int) -> float:
        return self.base_lr


class FactorScheduler(BaseScheduler):
    """
    Reduce the learning rate by a factor every `step` updates.

    Formula:
        lr = base_lr * factor ^ floor((num_update - 1) / step)

    The rate never drops below stop_factor_lr.
    """

    def __init__(
        self,
        step: int,
        factor: float = 1.0,
        *,
        stop_factor_lr: float = 1e-8,
        **kwargs,
    ):
        if step < 1:
            raise ValueError("Schedule step must be greater or equal than 1 round")
        if factor > 1.0:
            raise ValueError("Factor must be no more than 1 to make lr reduce")
        self.step = step
        self.factor = factor
        self.stop_factor_lr = stop_factor_lr
        super().__init__(**kwargs)

    def _get_lr_after_warmup(self, num_update: int) -> float:
        # Decay happens once num_update strictly exceeds each multiple of step
        num_decays = max(0, (num_update - 1) // self.step)
        lr = self.base_lr * (self.factor ** num_decays)
        return max(lr, self.stop_factor_lr)


class MultiFactorScheduler(BaseScheduler):
    """
    Reduce the learning rate by a factor at each milestone.

    Milestones are absolute update counts; the decay applies once
    num_update strictly exceeds a milestone.
    """

    def __init__(
        self,
        steps: Sequence[int],
        factor: float = 1.0,
        **kwargs,
    ):
        steps = list(steps)
        for i, s in enumerate(steps):
            if s < 1:
                raise ValueError("Schedule step must be greater or equal than 1 round")
            if i > 0 and s <= steps[i - 1]:
                raise ValueError("Schedule step must be an increasing integer list")
        if factor > 1.0:
            raise ValueError("Factor must be no more than 1 to make lr reduce")
        self.steps: List[int] = steps
        self.factor = factor
        super().__init__(**kwargs)

    def _get_lr_after_warmup(self, num_update: int) -> float:
        num_decays = sum(1 for s in self.steps if num_update > s)
        return self.base_lr * (self.factor ** num_decays)


class _DecayToFinalScheduler(BaseScheduler):
    """
    Shared machinery for schedules that reach final_lr at max_update.

    Decay progress is measured from the end of warmup.
    """

    def __init__(
        self,
        max_update: int,
        final_lr: float = 0.0,
        **kwargs,
    ):
        if max_update < 1:
            raise ValueError("maximum number of updates must be strictly positive")
        self.max_update = max_update
        self.final_lr = final_lr
        super().__init__(**kwargs)
        if self.base_lr < self.final_lr:
            raise ValueError(
                f"base_lr ({self.base_lr}) must not be below final_lr ({self.final_lr})"
            )
        self.decay_steps = max(1, self.max_update - self.warmup_steps)

    @abc.abstractmethod
    def _decay(self, progress: float) -> float:
        """Map progress in [0, 1] to a multiplier in [0, 1]."""
        pass

    def _get_lr_after_warmup(self, num_update: int) -> float:
        if num_update >= self.max_update:
            return self.final_lr

        progress = (num_update - self.warmup_steps) / self.decay_steps
        return self.final_lr + (self.base_lr - self.final_lr) * self._decay(progress)


class LinearScheduler(_DecayToFinalScheduler):
    """
    Linear learning rate decay.

    Formula:
        lr = final_lr + (base_lr - final_lr) * (1 - progress)
    """

    def _decay(self, progress: float) -> float:
        return 1.0 - progress


class CosineScheduler(_DecayToFinalScheduler):
    """
    Cosine annealing learning rate schedule.

    Formula:
        lr = final_lr + 0.5 * (base_lr - final_lr) * (1 + cos(π * progress))
    """

    def _decay(self, progress: float) -> float:
        return 0.5 * (1.0 + math.cos(math.pi * progress))


class PolynomialScheduler(_DecayToFinalScheduler):
    """
    Polynomial learning rate decay.

    Formula:
        lr = final_lr + (base_lr - final_lr) * (1 - progress)^power

    Power values:
    - power=1.0: Linear decay
    - power=2.0: Quadratic decay
    """

    def __init__(
        self,
        max_update: int,
        final_lr: float = 0.0,
        *,
        power: float = 2.0,
        **kwargs,
    ):
        self.power = power
        super().__init__(max_update, final_lr, **kwargs)

    def _decay(self, progress: float) -> float:
        return (1.0 - progress) ** self.power


class InverseSqrtScheduler(BaseScheduler):
    """
    Inverse square root learning rate decay.

    Formula:
        lr = base_lr * sqrt(w / (num_update - warmup_steps + w)),  w = max(1, warmup_steps)
    """

    def _get_lr_after_warmup(self, num_update: int) -> float:
        warmup = max(1, self.warmup_steps)
        effective_step = num_update - self.warmup_steps + warmup
        return self.base_lr * math.sqrt(warmup / effective_step)


# ═════════════════════════════════════════════════════════════════════════════════
# Factory Function
# ═════════════════════════════════════════════════════════════════════════════════

def create_scheduler(config: Optional[SchedulerConfig] = None) -> BaseScheduler:
    """
    Create schedule from configuration.

    Args:
        config: Schedule configuration (defaults to a constant schedule)

    Returns:
        Configured schedule instance
    """
    config = config or SchedulerConfig()

    common_kwargs = {
        "base_lr": config.base_lr,
        "warmup_steps": config.warmup_steps,
        "warmup_type": config.warmup_type,
        "warmup_begin_lr": config.warmup_begin_lr,
    }

    scheduler_type = config.scheduler_type

    if scheduler_type == SchedulerType.CONSTANT:
        return ConstantScheduler(**common_kwargs)

    elif scheduler_type == SchedulerType.FACTOR:
        return FactorScheduler(
            config.step, config.factor,
            stop_factor_lr=config.stop_factor_lr,
            **common_kwargs,
        )

    elif scheduler_type == SchedulerType.MULTI_FACTOR:
        return MultiFactorScheduler(config.steps, config.factor, **common_kwargs)

    elif scheduler_type == SchedulerType.LINEAR:
        return LinearScheduler(config.max_update, config.final_lr, **common_kwargs)

    elif scheduler_type == SchedulerType.COSINE:
        return CosineScheduler(config.max_update, config.final_lr, **common_kwargs)

    elif scheduler_type == SchedulerType.POLYNOMIAL:
        return PolynomialScheduler(
            config.max_update, config.final_lr,
            power=config.power,
            **common_kwargs,
        )

    elif scheduler_type == SchedulerType.INVERSE_SQRT:
        return InverseSqrtScheduler(**common_kwargs)

    else:
        raise ValueError(f"Unknown scheduler type: {scheduler_type}")


# ═════════════════════════════════════════════════════════════════════════════════
# Export
# ═════════════════════════════════════════════════════════════════════════════════

__all__ = [
    # Base
    "BaseScheduler",
    # Schedulers
    "ConstantScheduler",
    "FactorScheduler",
    "MultiFactorScheduler",
    "LinearScheduler",
    "CosineScheduler",
    "PolynomialScheduler",
    "InverseSqrtScheduler",
    # Factory
    "create_scheduler",
]
