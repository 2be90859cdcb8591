# ════════════════════════════════════════════════════════════════════════════════
# optimkit - Core Types
# ════════════════════════════════════════════════════════════════════════════════
# Pydantic-based configuration records with YAML support.
#
# Design Principles:
# - Immutable configurations via frozen Pydantic models
# - Enum coverage for every selectable option
# - Validation at configuration load time, not in the update hot path
# ════════════════════════════════════════════════════════════════════════════════

from __future__ import annotations

import enum
from typing import Final, List, Literal, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

# ─────────────────────────────────────────────────────────────────────────────────
# Constants
# ─────────────────────────────────────────────────────────────────────────────────

DEFAULT_LEARNING_RATE: Final[float] = 0.01
DEFAULT_LOG_FORMAT: Final[str] = "%(asctime)s | %(levelname)-8s | %(message)s"


# ═════════════════════════════════════════════════════════════════════════════════
# Section 1: Enumerations
# ═════════════════════════════════════════════════════════════════════════════════

class OptimizerType(str, enum.Enum):
    """
    Registered optimizer variants.

    Values double as registry keys for create_optimizer().
    """
    SGD = "sgd"


class SchedulerType(str, enum.Enum):
    """
    Learning rate schedule types.

    All schedules support warmup.
    - CONSTANT: Fixed LR
    - FACTOR: Multiply by factor every `step` updates
    - MULTI_FACTOR: Multiply by factor at each milestone in `steps`
    - LINEAR / COSINE / POLYNOMIAL: Decay to final_lr over max_update
    - INVERSE_SQRT: 1/sqrt(update) decay
    """
    CONSTANT = "constant"
    FACTOR = "factor"
    MULTI_FACTOR = "multi_factor"
    LINEAR = "linear"
    COSINE = "cosine"
    POLYNOMIAL = "polynomial"
    INVERSE_SQRT = "inverse_sqrt"


class WarmupType(str, enum.Enum):
    """
    Warmup strategy for learning rate ramp-up.
    """
    NONE = "none"
    LINEAR = "linear"        # warmup_begin_lr -> base_lr
    CONSTANT = "constant"    # hold warmup_begin_lr


class BackendType(str, enum.Enum):
    """
    Compute backend selection.

    AUTO resolves to TRITON when Triton and CUDA are available, else TORCH.
    """
    AUTO = "auto"
    TORCH = "torch"
    TRITON = "triton"


# ═════════════════════════════════════════════════════════════════════════════════
# Section 2: Learning Rate Schedule Configuration
# ═════════════════════════════════════════════════════════════════════════════════

class SchedulerConfig(BaseModel):
    """
    Learning rate schedule configuration.
    """
    model_config = ConfigDict(frozen=True, extra="forbid")

    scheduler_type: SchedulerType = Field(
        default=SchedulerType.CONSTANT,
        description="LR schedule type"
    )
    base_lr: float = Field(
        default=DEFAULT_LEARNING_RATE, ge=0.0,
        description="Learning rate reached after warmup"
    )

    # Warmup
    warmup_steps: int = Field(
        default=0, ge=0,
        description="Number of warmup updates"
    )
    warmup_type: WarmupType = Field(
        default=WarmupType.LINEAR,
        description="Warmup ramp-up strategy"
    )
    warmup_begin_lr: float = Field(
        default=0.0, ge=0.0,
        description="Learning rate at the first warmup update"
    )

    # Decay to a floor
    max_update: int = Field(
        default=1, ge=1,
        description="Updates over which linear/cosine/polynomial decay runs"
    )
    final_lr: float = Field(
        default=0.0, ge=0.0,
        description="Learning rate held after max_update"
    )
    power: float = Field(
        default=2.0, gt=0.0,
        description="Polynomial power"
    )

    # Step decay
    step: int = Field(
        default=1, ge=1,
        description="Updates between decays (factor schedule)"
    )
    steps: List[int] = Field(
        default_factory=list,
        description="Milestone updates (multi_factor schedule)"
    )
    factor: float = Field(
        default=1.0, gt=0.0, le=1.0,
        description="Multiplicative decay per step or milestone"
    )
    stop_factor_lr: float = Field(
        default=1e-8, ge=0.0,
        description="Floor for factor schedule"
    )

    @field_validator("steps")
    @classmethod
    def validate_steps(cls, v: List[int]) -> List[int]:
        """Milestones must be positive and strictly increasing."""
        for i, s in enumerate(v):
            if s < 1:
                raise ValueError(f"milestone must be >= 1, got {s}")
            if i > 0 and s <= v[i - 1]:
                raise ValueError("milestones must be strictly increasing")
        return v

    @model_validator(mode="after")
    def validate_rate_bounds(self) -> "SchedulerConfig":
        """Warmup start and decay floor may not exceed base_lr."""
        if self.warmup_begin_lr > self.base_lr:
            raise ValueError(
                f"warmup_begin_lr ({self.warmup_begin_lr}) must not exceed "
                f"base_lr ({self.base_lr})"
            )
        decays_to_final = (
            SchedulerType.LINEAR, SchedulerType.COSINE, SchedulerType.POLYNOMIAL,
        )
        if self.scheduler_type in decays_to_final and self.final_lr > self.base_lr:
            raise ValueError(
                f"final_lr ({self.final_lr}) must not exceed base_lr ({self.base_lr})"
            )
        return self


# ═════════════════════════════════════════════════════════════════════════════════
# Section 3: Optimizer Configuration
# ═════════════════════════════════════════════════════════════════════════════════

class OptimizerConfig(BaseModel):
    """
    Immutable optimizer hyperparameters.

    Set once at construction and read-only thereafter.
    """
    model_config = ConfigDict(frozen=True, extra="forbid")

    optimizer_type: OptimizerType = Field(
        default=OptimizerType.SGD,
        description="Optimizer variant"
    )

    # Gradient preprocessing
    rescale_grad: float = Field(
        default=1.0,
        description="Multiplier applied to the gradient before clipping"
    )
    clip_gradient: Optional[float] = Field(
        default=None, ge=0.0,
        description="Element-wise gradient clip threshold (None=disabled)"
    )

    # Regularization
    weight_decay: float = Field(
        default=0.0, ge=0.0,
        description="L2 coefficient added to the gradient"
    )

    # Update counting
    begin_num_update: int = Field(
        default=0, ge=0,
        description="Update count the schedule starts from"
    )

    # SGD
    momentum: float = Field(
        default=0.0, ge=0.0,
        description="Momentum coefficient (0 disables the momentum buffer)"
    )
    lazy_update: bool = Field(
        default=True,
        description="Row-sparse update flag; no effect on dense gradients"
    )

    backend: BackendType = Field(
        default=BackendType.AUTO,
        description="Compute backend for update kernels"
    )
    scheduler: SchedulerConfig = Field(
        default_factory=SchedulerConfig,
        description="Learning rate schedule"
    )


# ═════════════════════════════════════════════════════════════════════════════════
# Section 4: Logging Configuration
# ═════════════════════════════════════════════════════════════════════════════════

class LoggingConfig(BaseModel):
    """
    Console logging configuration.
    """
    model_config = ConfigDict(frozen=True, extra="forbid")

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Console log level"
    )
    log_format: str = Field(
        default=DEFAULT_LOG_FORMAT,
        description="logging.Formatter format string"
    )


# ═════════════════════════════════════════════════════════════════════════════════
# Export
# ═════════════════════════════════════════════════════════════════════════════════

__all__ = [
    # Constants
    "DEFAULT_LEARNING_RATE",
    "DEFAULT_LOG_FORMAT",
    # Enums
    "OptimizerType",
    "SchedulerType",
    "WarmupType",
    "BackendType",
    # Configs
    "SchedulerConfig",
    "OptimizerConfig",
    "LoggingConfig",
]
