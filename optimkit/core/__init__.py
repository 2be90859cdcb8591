# ════════════════════════════════════════════════════════════════════════════════
# optimkit - Core Package
# ════════════════════════════════════════════════════════════════════════════════
# Core types, errors, configuration and logging.
# ════════════════════════════════════════════════════════════════════════════════

from optimkit.core.types import (
    # Constants
    DEFAULT_LEARNING_RATE,
    DEFAULT_LOG_FORMAT,
    # Enums
    OptimizerType,
    SchedulerType,
    WarmupType,
    BackendType,
    # Configs
    SchedulerConfig,
    OptimizerConfig,
    LoggingConfig,
)

from optimkit.core.errors import (
    TrainingError,
    ConfigurationError,
    YAMLParseError,
    SchemaValidationError,
    OptimizationError,
    UnsupportedUpdateError,
    BackendError,
    CheckpointLoadError,
)

from optimkit.core.config import (
    load_optimizer_config,
    load_optimizer_config_from_dict,
    merge_configs,
    interpolate_env_vars,
)

from optimkit.core.logging_utils import setup_logging

__all__ = [
    "DEFAULT_LEARNING_RATE",
    "DEFAULT_LOG_FORMAT",
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
    "interpolate_env_vars",
    "setup_logging",
]
