# ════════════════════════════════════════════════════════════════════════════════
# optimkit - Compute Backends
# ════════════════════════════════════════════════════════════════════════════════
# Update kernels consumed by optimizers through an injected interface.
#
# Kernel Contract (both entry points mutate `weight` in place):
#   g = rescale_grad * grad
#   g = clip(g, -clip_gradient, clip_gradient)      # when clip_gradient set
#   plain:    weight -= lr * (g + wd * weight)
#   momentum: mom = momentum * mom - lr * (g + wd * weight); weight += mom
#
# lazy_update only changes row-sparse gradients. Strided gradients always take
# the dense rule above, so every row gets weight decay and momentum decay.
#
# Backends:
# - TorchBackend: reference in-place PyTorch ops (any device)
# - TritonBackend: fused single-pass kernel for contiguous CUDA tensors
# ════════════════════════════════════════════════════════════════════════════════

from __future__ import annotations

import abc
import logging
from typing import Optional, Union

import torch
from torch import Tensor

from optimkit.core.errors import BackendError
from optimkit.core.types import BackendType

logger = logging.getLogger(__name__)

# ═════════════════════════════════════════════════════════════════════════════════
# Triton Kernel
# ═════════════════════════════════════════════════════════════════════════════════

_TRITON_AVAILABLE = False
try:
    import triton
    import triton.language as tl
    _TRITON_AVAILABLE = torch.cuda.is_available()
except ImportError:
    pass

if _TRITON_AVAILABLE:
    @triton.jit
    def sgd_kernel(
        # Pointers
        param_ptr,
        grad_ptr,
        mom_ptr,
        # Hyperparameters (scalars)
        lr,
        weight_decay,
        momentum,
        rescale_grad,
        clip_gradient,
        # Size
        n_elements,
        # Compile-time switches
        HAS_MOMENTUM: tl.constexpr,
        DO_CLIP: tl.constexpr,
        BLOCK_SIZE: tl.constexpr,
    ):
        """
        Fused SGD update kernel.

        One pass over memory: rescale, clip, decay, momentum, apply.
        """
        pid = tl.program_id(0)
        block_start = pid * BLOCK_SIZE
        offsets = block_start + tl.arange(0, BLOCK_SIZE)
        mask = offsets < n_elements

        param = tl.load(param_ptr + offsets, mask=mask)
        grad = tl.load(grad_ptr + offsets, mask=mask) * rescale_grad

        if DO_CLIP:
            grad = tl.minimum(tl.maximum(grad, -clip_gradient), clip_gradient)

        step = grad + weight_decay * param

        if HAS_MOMENTUM:
            mom = tl.load(mom_ptr + offsets, mask=mask)
            mom = momentum * mom - lr * step
            tl.store(mom_ptr + offsets, mom, mask=mask)
            param = param + mom
        else:
            param = param - lr * step

        tl.store(param_ptr + offsets, param, mask=mask)


def triton_available() -> bool:
    """Whether the fused Triton backend can be constructed."""
    return _TRITON_AVAILABLE


# ═════════════════════════════════════════════════════════════════════════════════
# Backend Interface
# ═════════════════════════════════════════════════════════════════════════════════

class ComputeBackend(abc.ABC):
    """
    Tensor-compute provider for optimizer update kernels.

    Optimizers never touch tensor math directly; they pick one of the two
    entry points below and forward their hyperparameters. Errors raised by
    a kernel (shape, device or dtype mismatch) propagate unchanged.

    `lazy_update` is part of the kernel signature for row-sparse gradients;
    on strided gradients it has no numeric effect.
    """

    name: str = "abstract"

    @abc.abstractmethod
    def sgd_update(
        self,
        weight: Tensor,
        grad: Tensor,
        *,
        lr: float,
        wd: float,
        rescale_grad: float,
        clip_gradient: Optional[float],
        lazy_update: bool,
    ) -> None:
        """Plain SGD update of `weight` in place."""
        pass

    @abc.abstractmethod
    def sgd_mom_update(
        self,
        weight: Tensor,
        grad: Tensor,
        mom: Tensor,
        *,
        lr: float,
        wd: float,
        momentum: float,
        rescale_grad: float,
        clip_gradient: Optional[float],
        lazy_update: bool,
    ) -> None:
        """Momentum SGD update of `weight` and `mom` in place."""
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


# ═════════════════════════════════════════════════════════════════════════════════
# PyTorch Reference Backend
# ═════════════════════════════════════════════════════════════════════════════════

def _prepare_grad(
    grad: Tensor,
    rescale_grad: float,
    clip_gradient: Optional[float],
) -> Tensor:
    """Rescale then clip; never mutates the caller's gradient."""
    g = grad.mul(rescale_grad)
    if clip_gradient is not None:
        g.clamp_(-clip_gradient, clip_gradient)
    return g


class TorchBackend(ComputeBackend):
    """
    Reference backend built from in-place PyTorch ops.

    Works on any device and dtype PyTorch supports. Deterministic: the
    same inputs always produce bit-identical outputs.
    """

    name = "torch"

    @staticmethod
    def _update(
        weight: Tensor,
        grad: Tensor,
        mom: Optional[Tensor],
        lr: float,
        wd: float,
        momentum: float,
        rescale_grad: float,
        clip_gradient: Optional[float],
    ) -> None:
        g = _prepare_grad(grad, rescale_grad, clip_gradient)
        step = g.add(weight, alpha=wd) if wd != 0 else g
        if mom is None:
            weight.add_(step, alpha=-lr)
        else:
            mom.mul_(momentum).add_(step, alpha=-lr)
            weight.add_(mom)

    @torch.no_grad()
    def sgd_update(
        self,
        weight: Tensor,
        grad: Tensor,
        *,
        lr: float,
        wd: float,
        rescale_grad: float,
        clip_gradient: Optional[float],
        lazy_update: bool,
    ) -> None:
        self._update(
            weight, grad, None, lr, wd, 0.0,
            rescale_grad, clip_gradient,
        )

    @torch.no_grad()
    def sgd_mom_update(
        self,
        weight: Tensor,
        grad: Tensor,
        mom: Tensor,
        *,
        lr: float,
        wd: float,
        momentum: float,
        rescale_grad: float,
        clip_gradient: Optional[float],
        lazy_update: bool,
    ) -> None:
        self._update(
            weight, grad, mom, lr, wd, momentum,
            rescale_grad, clip_gradient,
        )


# ═════════════════════════════════════════════════════════════════════════════════
# Triton Fused Backend
# ═════════════════════════════════════════════════════════════════════════════════

class TritonBackend(TorchBackend):
    """
    Fused Triton backend for CUDA tensors.

    Updates on non-empty contiguous CUDA tensors of matching dtype run as a
    single kernel launch. Everything else falls through to the PyTorch
    reference path.
    """

    name = "triton"

    def __init__(self, block_size: int = 1024):
        if not _TRITON_AVAILABLE:
            raise BackendError(
                message="Triton backend requested but Triton/CUDA is unavailable",
                backend=self.name,
                remediation="Install triton on a CUDA host or use backend='torch'",
            )
        self.block_size = block_size

    def _can_fuse(self, weight: Tensor, grad: Tensor, mom: Optional[Tensor]) -> bool:
        if weight.numel() == 0:
            return False
        tensors = [weight, grad] if mom is None else [weight, grad, mom]
        return all(
            t.is_cuda and t.is_contiguous() and t.dtype == weight.dtype
            and t.shape == weight.shape
            for t in tensors
        )

    def _launch(
        self,
        weight: Tensor,
        grad: Tensor,
        mom: Optional[Tensor],
        lr: float,
        wd: float,
        momentum: float,
        rescale_grad: float,
        clip_gradient: Optional[float],
    ) -> None:
        n_elements = weight.numel()
        grid = (triton.cdiv(n_elements, self.block_size),)
        sgd_kernel[grid](
            weight,
            grad,
            mom if mom is not None else weight,
            lr,
            wd,
            momentum,
            rescale_grad,
            clip_gradient if clip_gradient is not None else 0.0,
            n_elements,
            HAS_MOMENTUM=mom is not None,
            DO_CLIP=clip_gradient is not None,
            BLOCK_SIZE=self.block_size,
        )

    @torch.no_grad()
    def sgd_update(self, weight, grad, *, lr, wd, rescale_grad, clip_gradient, lazy_update):
        if not self._can_fuse(weight, grad, None):
            return super().sgd_update(
                weight, grad, lr=lr, wd=wd, rescale_grad=rescale_grad,
                clip_gradient=clip_gradient, lazy_update=lazy_update,
            )
        self._launch(weight, grad, None, lr, wd, 0.0, rescale_grad, clip_gradient)

    @torch.no_grad()
    def sgd_mom_update(self, weight, grad, mom, *, lr, wd, momentum, rescale_grad,
                       clip_gradient, lazy_update):
        if not self._can_fuse(weight, grad, mom):
            return super().sgd_mom_update(
                weight, grad, mom, lr=lr, wd=wd, momentum=momentum,
                rescale_grad=rescale_grad, clip_gradient=clip_gradient,
                lazy_update=lazy_update,
            )
        self._launch(weight, grad, mom, lr, wd, momentum, rescale_grad, clip_gradient)


# ═════════════════════════════════════════════════════════════════════════════════
# Factory Function
# ═════════════════════════════════════════════════════════════════════════════════

def create_backend(
    backend: Union[BackendType, str, ComputeBackend, None] = BackendType.AUTO,
) -> ComputeBackend:
    """
    Resolve a backend name (or pass through an instance).

    Args:
        backend: "auto", "torch", "triton", or a ComputeBackend instance

    Raises:
        BackendError: Unknown name, or Triton requested but unavailable
    """
    if isinstance(backend, ComputeBackend):
        return backend

    if backend is None:
        backend = BackendType.AUTO

    try:
        backend_type = BackendType(backend)
    except ValueError as e:
        raise BackendError(
            message=f"Unknown compute backend: {backend}",
            backend=str(backend),
            remediation=f"Use one of {[b.value for b in BackendType]}",
            cause=e,
        )

    if backend_type == BackendType.AUTO:
        backend_type = BackendType.TRITON if _TRITON_AVAILABLE else BackendType.TORCH

    if backend_type == BackendType.TRITON:
        resolved: ComputeBackend = TritonBackend()
    else:
        resolved = TorchBackend()

    logger.debug("Resolved compute backend: %s", resolved.name)
    return resolved


# ═════════════════════════════════════════════════════════════════════════════════
# Export
# ═════════════════════════════════════════════════════════════════════════════════

__all__ = [
    "ComputeBackend",
    "TorchBackend",
    "TritonBackend",
    "create_backend",
    "triton_available",
]
