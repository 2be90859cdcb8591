# ════════════════════════════════════════════════════════════════════════════════
# optimkit - Updater
# ════════════════════════════════════════════════════════════════════════════════
# Driver-side owner of the per-parameter auxiliary-state table.
#
# The optimizer creates state and mutates its contents; the updater decides
# when state is created and keeps it alive across steps, handing the same
# object back on every update.
# ════════════════════════════════════════════════════════════════════════════════

from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import Any, Dict, Sequence, Union

import torch
from torch import Tensor

from optimkit.core.errors import CheckpointLoadError, OptimizationError
from optimkit.optimizers.base import Optimizer, OptimizerState

logger = logging.getLogger(__name__)

_STATE_KEYS = ("states", "optimizer")


class Updater:
    """
    Applies an optimizer to indexed parameters, holding their state.

    Example:
        ```python
        updater = get_updater(SGD(momentum=0.9))
        for step in range(num_steps):
            loss = model(x).sum()
            loss.backward()
            updater.step(list(model.parameters()))
        ```
    """

    def __init__(self, optimizer: Optimizer):
        self.optimizer = optimizer
        self.states: Dict[int, OptimizerState] = {}

    def __call__(self, index: int, grad: Tensor, weight: Tensor) -> None:
        """Update `weight` with `grad`, creating state on first sight of `index`."""
        if index not in self.states:
            self.states[index] = self.optimizer.create_state(index, weight)

        state = self.states[index]
        # Restored buffers live on the load device until first use
        if isinstance(state, Tensor) and state.device != weight.device:
            state = self.states[index] = state.to(weight.device)

        self.optimizer.step(index, weight, grad, state)

    def step(self, params: Sequence[Tensor]) -> int:
        """
        Update every parameter that has a gradient.

        Parameters are indexed by position.

        Returns:
            Number of parameters updated
        """
        updated = 0
        for index, param in enumerate(params):
            if param.grad is None:
                continue
            self(index, param.grad, param)
            updated += 1
        return updated

    # ─────────────────────────────────────────────────────────────────────────────
    # Serialization
    # ─────────────────────────────────────────────────────────────────────────────

    def _state_payload(self) -> Dict[str, Any]:
        return {
            "states": dict(self.states),
            "optimizer": self.optimizer.state_dict(),
        }

    def get_states(self) -> bytes:
        """Serialize the state table and update counters."""
        buffer = io.BytesIO()
        torch.save(self._state_payload(), buffer)
        return buffer.getvalue()

    def set_states(self, payload: bytes) -> None:
        """
        Restore state written by get_states().

        Nothing is modified unless the whole payload is accepted.

        Raises:
            CheckpointLoadError: Payload is unreadable, incomplete, or was
                written by a differently configured optimizer
        """
        try:
            loaded = torch.load(io.BytesIO(payload), map_location="cpu")
        except Exception as e:
            raise CheckpointLoadError(
                message="Failed to deserialize updater state",
                cause=e,
            )
        self._restore(loaded)

    def save_states(self, path: Union[str, Path]) -> None:
        """Write the state table and update counters to `path`."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        torch.save(self._state_payload(), path)
        logger.info("Saved optimizer state for %d parameters to %s", len(self.states), path)

    def load_states(self, path: Union[str, Path]) -> None:
        """
        Restore state written by save_states().

        Raises:
            CheckpointLoadError: File is missing, unreadable or does not match
        """
        path = Path(path)
        if not path.exists():
            raise CheckpointLoadError(
                message="Optimizer state file not found",
                checkpoint_path=str(path),
            )
        try:
            loaded = torch.load(path, map_location="cpu")
        except Exception as e:
            raise CheckpointLoadError(
                message="Failed to deserialize updater state",
                checkpoint_path=str(path),
                cause=e,
            )
        try:
            self._restore(loaded)
        except CheckpointLoadError as e:
            e.checkpoint_path = str(path)
            raise

    def _restore(self, loaded: Any) -> None:
        """Validate a loaded payload fully, then install it."""
        if not isinstance(loaded, dict):
            raise CheckpointLoadError(
                message=f"Expected a state mapping, got {type(loaded).__name__}",
            )

        missing = tuple(k for k in _STATE_KEYS if k not in loaded)
        if missing:
            raise CheckpointLoadError(
                message="Updater state is incomplete",
                missing_keys=missing,
            )

        states, optimizer_state = loaded["states"], loaded["optimizer"]
        if not isinstance(states, dict) or not isinstance(optimizer_state, dict):
            raise CheckpointLoadError(
                message="Updater state entries must be mappings",
            )

        mismatched = [
            index for index, state in states.items()
            if not self.optimizer.state_matches(state)
        ]
        if mismatched:
            raise CheckpointLoadError(
                message=(
                    f"Saved state for parameters {mismatched[:5]} does not match "
                    f"{self.optimizer!r}"
                ),
                remediation="Restore with the hyperparameters the state was saved with",
            )

        try:
            self.optimizer.load_state_dict(optimizer_state)
        except OptimizationError as e:
            raise CheckpointLoadError(message=e.message, cause=e)
        except (KeyError, TypeError, ValueError) as e:
            raise CheckpointLoadError(
                message="Optimizer counters could not be restored",
                cause=e,
            )

        self.states = dict(states)
        logger.debug("Restored optimizer state for %d parameters", len(self.states))

    def __repr__(self) -> str:
        return f"Updater(optimizer={self.optimizer!r}, params={len(self.states)})"


def get_updater(optimizer: Optimizer) -> Updater:
    """Wrap an optimizer in an Updater."""
    return Updater(optimizer)


__all__ = [
    "Updater",
    "get_updater",
]
