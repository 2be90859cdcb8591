# ════════════════════════════════════════════════════════════════════════════════
# optimkit - YAML Configuration Loader
# ════════════════════════════════════════════════════════════════════════════════
# OptimizerConfig loading from YAML files and dictionaries.
#
# Design Principles:
# - Single source of truth: YAML file defines all optimizer hyperparameters
# - Pydantic validation ensures type safety at load time
# - Sensible defaults allow minimal configuration
# - Environment variable interpolation for per-run overrides
# ════════════════════════════════════════════════════════════════════════════════

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Dict, List, Union

import yaml
from pydantic import ValidationError

from optimkit.core.errors import (
    ConfigurationError,
    SchemaValidationError,
    YAMLParseError,
)
from optimkit.core.types import OptimizerConfig


# ═════════════════════════════════════════════════════════════════════════════════
# Environment Variable Interpolation
# ═════════════════════════════════════════════════════════════════════════════════

ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")


def interpolate_env_vars(value: Any) -> Any:
    """
    Recursively interpolate environment variables in configuration values.

    Supports ${VAR_NAME} syntax with optional default: ${VAR_NAME:-default}

    Example:
        "${SGD_MOMENTUM:-0.9}" -> "0.9" if SGD_MOMENTUM not set
    """
    if isinstance(value, str):
        def replace_env_var(match: re.Match) -> str:
            var_spec = match.group(1)

            if ":-" in var_spec:
                var_name, default = var_spec.split(":-", 1)
            else:
                var_name, default = var_spec, ""

            return os.environ.get(var_name.strip(), default)

        return ENV_VAR_PATTERN.sub(replace_env_var, value)

    elif isinstance(value, dict):
        return {k: interpolate_env_vars(v) for k, v in value.items()}

    elif isinstance(value, list):
        return [interpolate_env_vars(item) for item in value]

    return value


def _format_validation_errors(e: ValidationError) -> List[str]:
    errors = []
    for err in e.errors():
        loc = ".".join(str(x) for x in err.get("loc", []))
        msg = err.get("msg", "Unknown error")
        errors.append(f"{loc}: {msg}")
    return errors


# ═════════════════════════════════════════════════════════════════════════════════
# YAML Loading Functions
# ═════════════════════════════════════════════════════════════════════════════════

def load_optimizer_config(
    yaml_path: Union[str, Path],
    *,
    config_key: str = "optimizer",
    interpolate_env: bool = True,
) -> OptimizerConfig:
    """
    Load OptimizerConfig from YAML file.

    The optimizer config can live in a dedicated file or as a section
    within a larger training config.

    Args:
        yaml_path: Path to YAML configuration file
        config_key: Top-level key containing optimizer config (default: "optimizer")
        interpolate_env: Whether to substitute ${VAR} with environment variables

    Returns:
        Validated OptimizerConfig instance

    Raises:
        YAMLParseError: If YAML syntax is invalid
        SchemaValidationError: If configuration doesn't match schema
        ConfigurationError: For other configuration issues

    Example:
        ```yaml
        optimizer:
          optimizer_type: sgd
          momentum: 0.9
          weight_decay: 1e-4
          scheduler:
            scheduler_type: factor
            base_lr: 0.1
            step: 1000
            factor: 0.5
        ```
    """
    yaml_path = Path(yaml_path)

    if not yaml_path.exists():
        raise ConfigurationError(
            message=f"Configuration file not found: {yaml_path}",
            yaml_file=str(yaml_path),
            remediation="Ensure the YAML file exists at the specified path"
        )

    try:
        with open(yaml_path, "r", encoding="utf-8") as f:
            raw_config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        mark = getattr(e, "problem_mark", None)
        raise YAMLParseError(
            message=f"Failed to parse YAML: {e}",
            yaml_file=str(yaml_path),
            line=mark.line + 1 if mark else None,
            column=mark.column + 1 if mark else None,
            cause=e
        )

    if raw_config is None:
        raise ConfigurationError(
            message="Empty configuration file",
            yaml_file=str(yaml_path),
            remediation="Add optimizer configuration to the YAML file"
        )

    if not isinstance(raw_config, dict):
        raise ConfigurationError(
            message="Configuration root must be a mapping",
            yaml_file=str(yaml_path),
            expected="mapping",
            got=type(raw_config).__name__,
        )

    # Assume entire file is optimizer config when the section is absent
    optimizer_config = raw_config.get(config_key, raw_config)
    if not isinstance(optimizer_config, dict):
        raise ConfigurationError(
            message=f"Configuration section '{config_key}' must be a mapping",
            yaml_file=str(yaml_path),
            field_path=config_key,
            expected="mapping",
            got=type(optimizer_config).__name__,
        )

    if interpolate_env:
        optimizer_config = interpolate_env_vars(optimizer_config)

    try:
        return OptimizerConfig.model_validate(optimizer_config)
    except ValidationError as e:
        raise SchemaValidationError(
            message="Optimizer configuration validation failed",
            yaml_file=str(yaml_path),
            validation_errors=tuple(_format_validation_errors(e)),
            cause=e
        )


def load_optimizer_config_from_dict(
    config_dict: Dict[str, Any],
    *,
    interpolate_env: bool = True,
) -> OptimizerConfig:
    """
    Create OptimizerConfig from dictionary.

    Useful for programmatic configuration or testing.
    """
    if interpolate_env:
        config_dict = interpolate_env_vars(config_dict)

    try:
        return OptimizerConfig.model_validate(config_dict)
    except ValidationError as e:
        raise SchemaValidationError(
            message="Optimizer configuration validation failed",
            validation_errors=tuple(_format_validation_errors(e)),
            cause=e
        )


def merge_configs(
    base: OptimizerConfig,
    overrides: Dict[str, Any],
) -> OptimizerConfig:
    """
    Merge override values into base configuration.

    Example:
        ```python
        base = load_optimizer_config("optim.yaml")
        cfg = merge_configs(base, {"momentum": 0.0, "scheduler.base_lr": 0.05})
        ```
    """
    base_dict = base.model_dump()

    for key, value in overrides.items():
        if "." in key:
            # scheduler.base_lr -> {"scheduler": {"base_lr": ...}}
            parts = key.split(".")
            current = base_dict
            for part in parts[:-1]:
                if part not in current:
                    current[part] = {}
                current = current[part]
                if not isinstance(current, dict):
                    raise ConfigurationError(
                        message=f"Cannot apply override '{key}'",
                        field_path=key,
                        expected="mapping",
                        got=type(current).__name__,
                    )
            current[parts[-1]] = value
        else:
            base_dict[key] = value

    return load_optimizer_config_from_dict(base_dict, interpolate_env=False)


# ═════════════════════════════════════════════════════════════════════════════════
# Export
# ═════════════════════════════════════════════════════════════════════════════════

__all__ = [
    "load_optimizer_config",
    "load_optimizer_config_from_dict",
    "merge_configs",
    "interpolate_env_vars",
]
