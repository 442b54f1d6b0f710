"""Per-accelerator analysis profiles."""

from typing import Dict, Type

from ..hardware import get_hardware
from .base import AcceleratorProfile, OperationRegistry
from .gpu import GPUProfile
from .tpu import TPUProfile

PROFILE_TYPES: Dict[str, Type] = {
    "TPU": TPUProfile,
    "GPU": GPUProfile,
}


def get_profile(key: str) -> AcceleratorProfile:
    """Fresh profile (with an empty operation registry) for a registered hardware key."""
    spec = get_hardware(key)
    return PROFILE_TYPES[spec.device_type](spec)


__all__ = [
    "AcceleratorProfile",
    "OperationRegistry",
    "TPUProfile",
    "GPUProfile",
    "PROFILE_TYPES",
    "get_profile",
]
