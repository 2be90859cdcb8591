# ════════════════════════════════════════════════════════════════════════════════
# optimkit - Optimizer Adapters for Training Loops
# ════════════════════════════════════════════════════════════════════════════════
# SGD with momentum and lazy update over pluggable compute backends.
# ════════════════════════════════════════════════════════════════════════════════

__version__ = "1.0.0"

# Core types, errors and configuration
from optimkit.core import (
    OptimizerType,
    SchedulerType,
    WarmupType,
    BackendType,
    SchedulerConfig,
    OptimizerConfig,
    LoggingConfig,
    TrainingError,
    ConfigurationError,
    YAMLParseError,
    SchemaValidationError,
    OptimizationError,
    UnsupportedUpdateError,
    BackendError,
    CheckpointLoadError,
    load_optimizer_config,
    load_optimizer_config_from_dict,
    merge_configs,
    setup_logging,
)

# Learning rate schedules
from optimkit.schedulers import (
    BaseScheduler,
    ConstantScheduler,
    FactorScheduler,
    MultiFactorScheduler,
    LinearScheduler,
    CosineScheduler,
    PolynomialScheduler,
    InverseSqrtScheduler,
    create_scheduler,
)

# Optimizers and backends
from optimkit.optimizers import (
    ComputeBackend,
    TorchBackend,
    TritonBackend,
    create_backend,
    Optimizer,
    register_optimizer,
    create_optimizer,
    SGD,
    create_sgd,
)

# Driver-side state table
from optimkit.updater import Updater, get_updater

__all__ = [
    "__version__",
    # Core
    "OptimizerType",
    "SchedulerType",
    "WarmupType",
    "BackendType",
    "SchedulerConfig",
    "OptimizerConfig",
    "LoggingConfig",
    "TrainingError",
    "ConfigurationError",
    "YAMLParseError",
    "SchemaValidationError",
    "OptimizationError",
    "UnsupportedUpdateError",
    "BackendError",
    "CheckpointLoadError",
    "load_optimizer_config",
    "load_optimizer_config_from_dict",
    "merge_configs",
    "setup_logging",
    # Schedulers
    "BaseScheduler",
    "ConstantScheduler",
    "FactorScheduler",
    "MultiFactorScheduler",
    "LinearScheduler",
    "CosineScheduler",
    "PolynomialScheduler",
    "InverseSqrtScheduler",
    "create_scheduler",
    # Optimizers
    "ComputeBackend",
    "TorchBackend",
    "TritonBackend",
    "create_backend",
    "Optimizer",
    "register_optimizer",
    "create_optimizer",
    "SGD",
    "create_sgd",
    # Updater
    "Updater",
    "get_updater",
]
