# ════════════════════════════════════════════════════════════════════════════════
# optimkit - Optimizer Interface
# ════════════════════════════════════════════════════════════════════════════════
# Capability interface shared by all optimizer variants.
#
# An optimizer is a thin adapter: it holds immutable hyperparameters, creates
# optional per-parameter auxiliary state, and forwards each update to an
# injected compute backend. The training-loop driver owns the state objects
# and threads them back on every call.
#
# Key Features:
# - create_state() / update() contract per parameter index
# - Per-index update counting with a configurable starting offset
# - Learning rate resolved from the schedule on every access
# - Open registry of variants keyed by OptimizerType
# ════════════════════════════════════════════════════════════════════════════════

from __future__ import annotations

import abc
import logging
from typing import (
    Any,
    Callable,
    Dict,
    Optional,
    Type,
    TypeVar,
    Union,
)

import torch
from torch import Tensor

from optimkit.core.errors import (
    OptimizationError,
    UnsupportedUpdateError,
)
from optimkit.core.types import (
    DEFAULT_LEARNING_RATE,
    BackendType,
    OptimizerConfig,
    OptimizerType,
)
from optimkit.optimizers.backend import ComputeBackend, create_backend
from optimkit.schedulers import BaseScheduler, ConstantScheduler, create_scheduler

logger = logging.getLogger(__name__)

# ═════════════════════════════════════════════════════════════════════════════════
# Type Definitions
# ═════════════════════════════════════════════════════════════════════════════════

# Auxiliary state returned by create_state(); None means "no state"
OptimizerState = Any

OptimizerT = TypeVar("OptimizerT", bound="Optimizer")

# Weights kept in these dtypes would need an fp32 master copy
_REDUCED_PRECISION_DTYPES = (torch.float16, torch.bfloat16)


# ═════════════════════════════════════════════════════════════════════════════════
# Base Optimizer Interface
# ═════════════════════════════════════════════════════════════════════════════════

class Optimizer(abc.ABC):
    """
    Abstract optimizer adapter.

    Subclasses must implement:
    - create_state(): Allocate auxiliary state for one parameter
    - update(): Apply one update to one parameter through the backend

    Hyperparameters are fixed at construction and exposed read-only.
    """

    def __init__(
        self,
        rescale_grad: float = 1.0,
        weight_decay: float = 0.0,
        clip_gradient: Optional[float] = None,
        lr_scheduler: Optional[BaseScheduler] = None,
        begin_num_update: int = 0,
        *,
        backend: Union[BackendType, str, ComputeBackend, None] = BackendType.AUTO,
    ):
        """
        Initialize optimizer.

        Args:
            rescale_grad: Multiplier applied to every gradient
            weight_decay: L2 coefficient
            clip_gradient: Element-wise clip threshold (None disables clipping)
            lr_scheduler: Learning rate schedule (constant 0.01 if None)
            begin_num_update: Update count the schedule starts from
            backend: Compute backend name or instance
        """
        if clip_gradient is not None and clip_gradient < 0.0:
            raise ValueError(f"Invalid clip_gradient: {clip_gradient}")
        if begin_num_update < 0:
            raise ValueError(f"Invalid begin_num_update: {begin_num_update}")

        self._rescale_grad = rescale_grad
        self._weight_decay = weight_decay
        self._clip_gradient = clip_gradient
        self._lr_scheduler = (
            lr_scheduler if lr_scheduler is not None
            else ConstantScheduler(DEFAULT_LEARNING_RATE)
        )
        self._begin_num_update = begin_num_update
        self._backend = create_backend(backend)

        # Update counters
        self.num_update = begin_num_update
        self._index_update_count: Dict[int, int] = {}

    # ─────────────────────────────────────────────────────────────────────────────
    # Read-only hyperparameters
    # ─────────────────────────────────────────────────────────────────────────────

    @property
    def rescale_grad(self) -> float:
        return self._rescale_grad

    @property
    def weight_decay(self) -> float:
        return self._weight_decay

    @property
    def clip_gradient(self) -> Optional[float]:
        return self._clip_gradient

    @property
    def lr_scheduler(self) -> BaseScheduler:
        return self._lr_scheduler

    @property
    def begin_num_update(self) -> int:
        return self._begin_num_update

    @property
    def backend(self) -> ComputeBackend:
        return self._backend

    @property
    def learning_rate(self) -> float:
        """Learning rate at the current update count, queried fresh."""
        return self._lr_scheduler.current_rate(self.num_update)

    # ─────────────────────────────────────────────────────────────────────────────
    # Update counting
    # ─────────────────────────────────────────────────────────────────────────────

    def update_count(self, index: int) -> int:
        """
        Record one more update of parameter `index`.

        The first update of an index counts as begin_num_update + 1.
        num_update tracks the maximum count over all indices.

        Returns:
            The new count for `index`
        """
        count = self._index_update_count.get(index, self._begin_num_update) + 1
        self._index_update_count[index] = count
        self.num_update = max(self.num_update, count)
        return count

    def get_update_count(self, index: int) -> int:
        """Updates recorded for `index` (begin_num_update if none yet)."""
        return self._index_update_count.get(index, self._begin_num_update)

    # ─────────────────────────────────────────────────────────────────────────────
    # Contract
    # ─────────────────────────────────────────────────────────────────────────────

    @abc.abstractmethod
    def create_state(self, index: int, weight: Tensor) -> OptimizerState:
        """
        Create auxiliary state for a parameter.

        Called once per parameter by the training-loop driver.

        Args:
            index: Parameter index
            weight: Parameter tensor

        Returns:
            Auxiliary state, or None when the variant keeps none
        """
        pass

    @abc.abstractmethod
    def update(
        self,
        index: int,
        weight: Tensor,
        grad: Tensor,
        state: OptimizerState,
    ) -> None:
        """
        Apply one update to `weight` in place.

        Args:
            index: Parameter index
            weight: Parameter tensor (modified in-place)
            grad: Gradient tensor
            state: Value previously returned by create_state()
        """
        pass

    def state_matches(self, state: OptimizerState) -> bool:
        """Whether `state` has the form create_state() would return."""
        return True

    def step(
        self,
        index: int,
        weight: Tensor,
        grad: Tensor,
        state: OptimizerState,
    ) -> None:
        """Count the update for `index`, then apply it."""
        self.update_count(index)
        self.update(index, weight, grad, state)

    def _check_supported(self, index: int, weight: Tensor, grad: Tensor) -> None:
        """
        Reject input forms no backend kernel handles.

        Raises:
            UnsupportedUpdateError: sparse gradient or reduced-precision weight
        """
        if grad.layout != torch.strided:
            raise UnsupportedUpdateError(
                message=f"Sparse gradients are not supported (layout={grad.layout})",
                optimizer_type=self.optimizer_type,
                feature="sparse_gradient",
                param_index=index,
                remediation="Densify the gradient with grad.to_dense()",
            )
        if weight.dtype in _REDUCED_PRECISION_DTYPES:
            raise UnsupportedUpdateError(
                message=f"Mixed precision weights are not supported (dtype={weight.dtype})",
                optimizer_type=self.optimizer_type,
                feature="mixed_precision",
                param_index=index,
                remediation="Keep an fp32 copy of the parameter and optimize that",
            )

    # ─────────────────────────────────────────────────────────────────────────────
    # Serialization
    # ─────────────────────────────────────────────────────────────────────────────

    def state_dict(self) -> Dict[str, Any]:
        """Update counters and schedule state for checkpointing."""
        return {
            "optimizer_type": self.optimizer_type,
            "num_update": self.num_update,
            "index_update_count": dict(self._index_update_count),
            "lr_scheduler": self._lr_scheduler.state_dict(),
        }

    def load_state_dict(self, state_dict: Dict[str, Any]) -> None:
        """Restore update counters and schedule state."""
        saved_type = state_dict.get("optimizer_type")
        if saved_type is not None and saved_type != self.optimizer_type:
            raise OptimizationError(
                message=f"State was saved by '{saved_type}' optimizer",
                optimizer_type=self.optimizer_type,
            )
        num_update = int(state_dict.get("num_update", self._begin_num_update))
        index_update_count = {
            int(k): int(v) for k, v in dict(state_dict.get("index_update_count", {})).items()
        }
        if "lr_scheduler" in state_dict:
            self._lr_scheduler.load_state_dict(state_dict["lr_scheduler"])
        self.num_update = num_update
        self._index_update_count = index_update_count

    @property
    def optimizer_type(self) -> str:
        """Registry name of this variant."""
        return getattr(self, "_registry_name", self.__class__.__name__.lower())

    @classmethod
    def from_config(
        cls: Type[OptimizerT],
        config: OptimizerConfig,
        *,
        lr_scheduler: Optional[BaseScheduler] = None,
        backend: Union[BackendType, str, ComputeBackend, None] = None,
    ) -> OptimizerT:
        """Build from a validated OptimizerConfig."""
        return cls(
            rescale_grad=config.rescale_grad,
            weight_decay=config.weight_decay,
            clip_gradient=config.clip_gradient,
            lr_scheduler=(
                lr_scheduler if lr_scheduler is not None
                else create_scheduler(config.scheduler)
            ),
            begin_num_update=config.begin_num_update,
            backend=backend if backend is not None else config.backend,
        )

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"lr={self.learning_rate}, "
            f"wd={self._weight_decay}, "
            f"backend={self._backend.name})"
        )


# ═════════════════════════════════════════════════════════════════════════════════
# Registry
# ═════════════════════════════════════════════════════════════════════════════════

_OPTIMIZER_REGISTRY: Dict[str, Type[Optimizer]] = {}


def register_optimizer(
    name: Union[OptimizerType, str],
) -> Callable[[Type[OptimizerT]], Type[OptimizerT]]:
    """
    Class decorator adding an optimizer variant to the registry.

    Example:
        ```python
        @register_optimizer("sgd")
        class SGD(Optimizer):
            ...
        ```
    """
    key = name.value if isinstance(name, OptimizerType) else str(name)

    def decorator(cls: Type[OptimizerT]) -> Type[OptimizerT]:
        if key in _OPTIMIZER_REGISTRY and _OPTIMIZER_REGISTRY[key] is not cls:
            raise OptimizationError(
                message=f"Optimizer '{key}' is already registered",
                optimizer_type=key,
            )
        cls._registry_name = key
        _OPTIMIZER_REGISTRY[key] = cls
        return cls

    return decorator


def get_optimizer_class(name: Union[OptimizerType, str]) -> Type[Optimizer]:
    """Look up a registered optimizer variant."""
    key = name.value if isinstance(name, OptimizerType) else str(name)
    try:
        return _OPTIMIZER_REGISTRY[key]
    except KeyError:
        raise OptimizationError(
            message=f"Unknown optimizer type: {key}",
            optimizer_type=key,
            remediation=f"Registered optimizers: {sorted(_OPTIMIZER_REGISTRY)}",
        ) from None


def create_optimizer(
    config: OptimizerConfig,
    *,
    lr_scheduler: Optional[BaseScheduler] = None,
    backend: Union[BackendType, str, ComputeBackend, None] = None,
) -> Optimizer:
    """
    Create optimizer from configuration.

    Args:
        config: Validated optimizer configuration
        lr_scheduler: Schedule override (built from config.scheduler if None)
        backend: Backend override (config.backend if None)

    Returns:
        Configured optimizer instance
    """
    cls = get_optimizer_class(config.optimizer_type)
    optimizer = cls.from_config(config, lr_scheduler=lr_scheduler, backend=backend)
    logger.info("Created optimizer %r", optimizer)
    return optimizer


# ═════════════════════════════════════════════════════════════════════════════════
# Export
# ═════════════════════════════════════════════════════════════════════════════════

__all__ = [
    "Optimizer",
    "OptimizerState",
    "register_optimizer",
    "get_optimizer_class",
    "create_optimizer",
]
