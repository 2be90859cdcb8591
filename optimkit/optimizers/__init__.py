# ════════════════════════════════════════════════════════════════════════════════
# optimkit - Optimizers Package
# ════════════════════════════════════════════════════════════════════════════════
# Optimizer adapters over injectable compute backends.
# ════════════════════════════════════════════════════════════════════════════════

from optimkit.optimizers.backend import (
    ComputeBackend,
    TorchBackend,
    TritonBackend,
    create_backend,
    triton_available,
)

from optimkit.optimizers.base import (
    Optimizer,
    OptimizerState,
    register_optimizer,
    get_optimizer_class,
    create_optimizer,
)

# Importing the module registers the variant
from optimkit.optimizers.sgd import (
    SGD,
    create_sgd,
)

__all__ = [
    # Backends
    "ComputeBackend",
    "TorchBackend",
    "TritonBackend",
    "create_backend",
    "triton_available",
    # Base
    "Optimizer",
    "OptimizerState",
    "register_optimizer",
    "get_optimizer_class",
    "create_optimizer",
    # SGD
    "SGD",
    "create_sgd",
]
