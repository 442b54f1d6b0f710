"""
Computed result records.

Pure data: nothing here is persisted or mutated after construction.
Every record has a to_dict() for the API layer and the demos.
"""

from dataclasses import asdict, dataclass
from typing import Dict, List, Optional, Union


@dataclass(frozen=True)
class OperationBytes:
    """Byte footprint of a matmul's operands and output."""
    lhs_bytes: float
    rhs_bytes: float
    output_bytes: float
    total_bytes: float

    def to_dict(self) -> dict:
        return asdict(self)


# ═══════════════════════════════════════════════
#  TPU
# ═══════════════════════════════════════════════

@dataclass(frozen=True)
class MXUUtilization:
    """Useful fraction of padded MXU tiles along each operand axis."""
    lhs_utilization: float
    rhs_utilization_rows: float
    rhs_utilization_cols: float

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class VMEMMetrics:
    """What the operation would cost if served from VMEM instead of HBM."""
    fits_in_vmem: bool
    vmem_compute_time: float
    vmem_memory_time: float
    vmem_total_time: float
    vmem_speedup: float

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class TPUNodeMetrics:
    total_flops: int
    bytes: OperationBytes
    arithmetic_intensity: float
    peak_hardware_intensity: float
    is_compute_bound: bool

    compute_time: float
    memory_time: float
    effective_memory_time: float
    lower_bound_time: float
    upper_bound_time: float

    mxu_utilization: MXUUtilization
    vmem_metrics: VMEMMetrics

    def utilizations(self) -> Dict[str, float]:
        return self.mxu_utilization.to_dict()

    def to_dict(self) -> dict:
        return asdict(self)


# ═══════════════════════════════════════════════
#  GPU
# ═══════════════════════════════════════════════

@dataclass(frozen=True)
class TensorCoreUtilization:
    """Useful fraction of padded tensor-core tiles along M, N, K."""
    m_utilization: float
    n_utilization: float
    k_utilization: float

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class GPUNodeMetrics:
    total_flops: int
    bytes: OperationBytes
    arithmetic_intensity: float
    peak_hardware_intensity: float
    is_compute_bound: bool

    compute_time: float
    memory_time: float
    effective_memory_time: float
    lower_bound_time: float
    upper_bound_time: float

    tensor_core_utilization: TensorCoreUtilization
    sm_occupancy: float
    can_fit_weights_in_l2: bool
    l2_cache_benefit: float

    def utilizations(self) -> Dict[str, float]:
        return self.tensor_core_utilization.to_dict()

    def to_dict(self) -> dict:
        return asdict(self)


NodeMetrics = Union[TPUNodeMetrics, GPUNodeMetrics]


# ═══════════════════════════════════════════════
#  MULTI-DEVICE
# ═══════════════════════════════════════════════

@dataclass(frozen=True)
class MultiDeviceMetrics:
    """
    Sharded execution estimate.

    scaling_efficiency (speedup / num_devices) is only reported by
    profiles with a tiered interconnect; it is None otherwise.
    """
    per_device_metrics: NodeMetrics
    communication_cost: float
    total_time: float
    speedup_over_single_device: float
    sharding_efficiency: float
    scaling_efficiency: Optional[float] = None

    def to_dict(self) -> dict:
        d = asdict(self)
        if self.scaling_efficiency is None:
            del d["scaling_efficiency"]
        return d


@dataclass(frozen=True)
class Metrics:
    single_device: NodeMetrics
    multi_device: Optional[MultiDeviceMetrics] = None

    def to_dict(self) -> dict:
        return {
            "single_device": self.single_device.to_dict(),
            "multi_device": self.multi_device.to_dict() if self.multi_device else None,
        }


# ═══════════════════════════════════════════════
#  ROOFLINE
# ═══════════════════════════════════════════════

@dataclass(frozen=True)
class RooflineSample:
    intensity: float
    achievable_flops: float
    peak_flops: float
    memory_bound: bool


@dataclass(frozen=True)
class OperationPoint:
    """The analysed operation, for overlay on the roofline chart."""
    intensity: float
    achievable_flops: float
    is_current_operation: bool = True


@dataclass(frozen=True)
class RooflineData:
    intensity_points: List[RooflineSample]
    operation_point: OperationPoint
    peak_hardware_intensity: float
    peak_flops: float

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class Analysis:
    """Single-device metrics bundled with advice and chart data."""
    metrics: NodeMetrics
    recommendations: List[str]
    roofline_data: RooflineData

    def to_dict(self) -> dict:
        return {
            "metrics": self.metrics.to_dict(),
            "recommendations": list(self.recommendations),
            "roofline_data": self.roofline_data.to_dict(),
        }
