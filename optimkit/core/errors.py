# ════════════════════════════════════════════════════════════════════════════════
# optimkit - Error Hierarchy
# ════════════════════════════════════════════════════════════════════════════════
# Optimizer-layer error types with structured context.
#
# Design Principles:
# - Exception hierarchy mirrors optimizer failure modes
# - Each error carries actionable remediation hints
# - Context dict for structured logging
# - Chaining via __cause__ for root cause analysis
# - Kernel failures are NOT wrapped; they reach the caller unchanged
# ════════════════════════════════════════════════════════════════════════════════

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple


# ═════════════════════════════════════════════════════════════════════════════════
# Base Training Error
# ═════════════════════════════════════════════════════════════════════════════════

@dataclass
class TrainingError(Exception):
    """
    Base exception for all optimkit errors.

    Attributes:
        message: Human-readable error description
        context: Structured key-value context for debugging
        cause: Original exception that caused this error
        remediation: Suggested fix or next steps
    """
    message: str
    context: Dict[str, Any] = field(default_factory=dict)
    cause: Optional[Exception] = None
    remediation: Optional[str] = None

    def __post_init__(self) -> None:
        """Chain cause exception for traceback preservation."""
        super().__init__(self.message)
        if self.cause is not None:
            self.__cause__ = self.cause

    def __str__(self) -> str:
        parts = [f"TrainingError: {self.message}"]

        if self.context:
            ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            parts.append(f"  Context: {ctx_str}")

        if self.remediation:
            parts.append(f"  Remediation: {self.remediation}")

        if self.cause:
            parts.append(f"  Caused by: {type(self.cause).__name__}: {self.cause}")

        return "\n".join(parts)

    def with_context(self, **kwargs: Any) -> "TrainingError":
        """Add additional context, returns self for chaining."""
        self.context.update(kwargs)
        return self


# ═════════════════════════════════════════════════════════════════════════════════
# Configuration Errors
# ═════════════════════════════════════════════════════════════════════════════════

@dataclass
class ConfigurationError(TrainingError):
    """
    Error in optimizer configuration (YAML or programmatic).
    """
    field_path: Optional[str] = None
    expected: Optional[str] = None
    got: Optional[str] = None
    yaml_file: Optional[str] = None

    def __str__(self) -> str:
        parts = [f"ConfigurationError: {self.message}"]

        if self.yaml_file:
            parts.append(f"  File: {self.yaml_file}")

        if self.field_path:
            parts.append(f"  Field: {self.field_path}")

        if self.expected and self.got:
            parts.append(f"  Expected: {self.expected}")
            parts.append(f"  Got: {self.got}")

        if self.remediation:
            parts.append(f"  Remediation: {self.remediation}")

        return "\n".join(parts)


@dataclass
class YAMLParseError(ConfigurationError):
    """
    Error parsing YAML configuration file.

    Provides line/column info for syntax errors.
    """
    line: Optional[int] = None
    column: Optional[int] = None

    def __str__(self) -> str:
        location = ""
        if self.line is not None:
            location = f" at line {self.line}"
            if self.column is not None:
                location += f", column {self.column}"

        file_info = f" in {self.yaml_file}" if self.yaml_file else ""
        return f"YAMLParseError{file_info}{location}: {self.message}"


@dataclass
class SchemaValidationError(ConfigurationError):
    """
    Pydantic schema validation failed.
    """
    validation_errors: Tuple[str, ...] = field(default_factory=tuple)

    def __str__(self) -> str:
        parts = [f"SchemaValidationError: {self.message}"]

        if self.yaml_file:
            parts.append(f"  File: {self.yaml_file}")

        for error in self.validation_errors:
            parts.append(f"  - {error}")

        return "\n".join(parts)


# ═════════════════════════════════════════════════════════════════════════════════
# Optimization Errors
# ═════════════════════════════════════════════════════════════════════════════════

@dataclass
class OptimizationError(TrainingError):
    """
    Optimizer or scheduler error.

    Raised when:
    - An unknown optimizer type is requested
    - Optimizer state does not match the optimizer
    """
    optimizer_type: Optional[str] = None
    scheduler_type: Optional[str] = None

    def __str__(self) -> str:
        opt_info = f" [{self.optimizer_type}]" if self.optimizer_type else ""
        sched_info = f" with {self.scheduler_type}" if self.scheduler_type else ""
        return f"OptimizationError{opt_info}{sched_info}: {self.message}"


@dataclass
class UnsupportedUpdateError(OptimizationError):
    """
    Input form the optimizer does not handle.

    Raised before any kernel is launched for:
    - Sparse gradients (non-strided layouts)
    - Reduced-precision weights that would need an fp32 master copy
    """
    feature: Optional[str] = None
    param_index: Optional[int] = None

    def __str__(self) -> str:
        parts = [f"UnsupportedUpdateError: {self.message}"]

        if self.feature:
            parts.append(f"  Feature: {self.feature}")

        if self.param_index is not None:
            parts.append(f"  Parameter index: {self.param_index}")

        if self.remediation:
            parts.append(f"  Remediation: {self.remediation}")

        return "\n".join(parts)


@dataclass
class BackendError(OptimizationError):
    """
    Compute backend could not be resolved.
    """
    backend: Optional[str] = None

    def __str__(self) -> str:
        backend_info = f" [{self.backend}]" if self.backend else ""
        return f"BackendError{backend_info}: {self.message}"


# ═════════════════════════════════════════════════════════════════════════════════
# Checkpoint Errors
# ═════════════════════════════════════════════════════════════════════════════════

@dataclass
class CheckpointLoadError(TrainingError):
    """
    Failed to restore serialized optimizer state.

    Causes:
    - Payload is not an optimkit updater state
    - Payload was written by a different optimizer configuration
    """
    checkpoint_path: Optional[str] = None
    missing_keys: Tuple[str, ...] = field(default_factory=tuple)

    def __str__(self) -> str:
        parts = [f"CheckpointLoadError: {self.message}"]

        if self.checkpoint_path:
            parts.append(f"  Path: {self.checkpoint_path}")

        if self.missing_keys:
            parts.append(f"  Missing keys: {', '.join(self.missing_keys[:5])}")
            if len(self.missing_keys) > 5:
                parts.append(f"    ... and {len(self.missing_keys) - 5} more")

        return "\n".join(parts)


# ═════════════════════════════════════════════════════════════════════════════════
# Export
# ═════════════════════════════════════════════════════════════════════════════════

__all__ = [
    # Base
    "TrainingError",
    # Configuration
    "ConfigurationError",
    "YAMLParseError",
    "SchemaValidationError",
    # Optimization
    "OptimizationError",
    "UnsupportedUpdateError",
    "BackendError",
    # Checkpoint
    "CheckpointLoadError",
]
