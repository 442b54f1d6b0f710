"""Analytical matmul performance model for TPU- and GPU-like accelerators."""

from .errors import (
    PerfModelError,
    NotFoundError,
    UnsupportedOperationError,
    MissingConfigurationError,
    InvalidOperationError,
    InvalidShardingError,
    InvalidHardwareError,
)
from .precision import ElementType, BYTES_PER_ELEMENT, bytes_per_element
from .roofline_math import (
    matmul_flops,
    arithmetic_intensity,
    critical_intensity,
    tile_utilization,
    all_reduce_cost,
    roofline_intensities,
)
from .operation import MatrixOperation, OperandSpec, OperationKind
from .sharding import ShardingConfig, shard_operation
from .hardware import (
    AcceleratorSpec,
    TPU_V5E,
    H100_SXM5,
    HARDWARE_REGISTRY,
    get_hardware,
    list_hardware,
    register_hardware,
)
from .recommendations import NO_RECOMMENDATIONS
from .profiles import (
    AcceleratorProfile,
    TPUProfile,
    GPUProfile,
    get_profile,
)

__all__ = [
    "PerfModelError",
    "NotFoundError",
    "UnsupportedOperationError",
    "MissingConfigurationError",
    "InvalidOperationError",
    "InvalidShardingError",
    "InvalidHardwareError",
    "ElementType",
    "BYTES_PER_ELEMENT",
    "bytes_per_element",
    "matmul_flops",
    "arithmetic_intensity",
    "critical_intensity",
    "tile_utilization",
    "all_reduce_cost",
    "roofline_intensities",
    "MatrixOperation",
    "OperandSpec",
    "OperationKind",
    "ShardingConfig",
    "shard_operation",
    "AcceleratorSpec",
    "TPU_V5E",
    "H100_SXM5",
    "HARDWARE_REGISTRY",
    "get_hardware",
    "list_hardware",
    "register_hardware",
    "NO_RECOMMENDATIONS",
    "AcceleratorProfile",
    "TPUProfile",
    "GPUProfile",
    "get_profile",
]
