"""
Shared surface of the accelerator profiles.

TPUProfile and GPUProfile implement AcceleratorProfile independently;
what they have in common lives here as plain functions and a registry
they each own, not as a base class.
"""

import logging
import threading
from typing import Any, Dict, List, Mapping, Optional, Protocol, Union

from ..errors import MissingConfigurationError, NotFoundError
from ..hardware import AcceleratorSpec
from ..metrics import (
    Analysis,
    Metrics,
    MultiDeviceMetrics,
    NodeMetrics,
    OperationPoint,
    RooflineData,
    RooflineSample,
)
from ..operation import MatrixOperation, OperandSpec, OperationKind
from ..precision import ElementType
from ..roofline_math import attainable_flops, roofline_intensities
from ..sharding import ShardingConfig

logger = logging.getLogger(__name__)

OperandLike = Union[OperandSpec, Mapping[str, Any]]


class AcceleratorProfile(Protocol):
    """What every profile offers to the presentation layer."""
    spec: AcceleratorSpec

    def register_operation(
        self,
        kind: Union[str, OperationKind],
        lhs: OperandLike,
        rhs: OperandLike,
        output_dtype: Union[str, ElementType],
    ) -> str: ...

    def get_operation(self, operation_id: str) -> MatrixOperation: ...

    def single_device_metrics(self, operation_id: str) -> NodeMetrics: ...

    def multi_device_metrics(
        self, operation_id: str, sharding: Optional[ShardingConfig]
    ) -> MultiDeviceMetrics: ...

    def performance_metrics(
        self,
        operation_id: str,
        multi_device: bool = False,
        sharding: Optional[ShardingConfig] = None,
    ) -> Metrics: ...

    def analyze(self, operation_id: str) -> Analysis: ...

    def generate_recommendations(
        self, operation: MatrixOperation, metrics: NodeMetrics
    ) -> List[str]: ...

    def generate_roofline_data(
        self, operation: MatrixOperation, metrics: NodeMetrics
    ) -> RooflineData: ...


# ═══════════════════════════════════════════════
#  OPERATION REGISTRY
# ═══════════════════════════════════════════════

class OperationRegistry:
    """Identifier -> MatrixOperation map; the only mutable state in the engine."""

    def __init__(self):
        self._operations: Dict[str, MatrixOperation] = {}
        self._lock = threading.Lock()

    def add(
        self,
        kind: Union[str, OperationKind],
        lhs: OperandLike,
        rhs: OperandLike,
        output_dtype: Union[str, ElementType],
    ) -> str:
        operation = MatrixOperation(kind=kind, lhs=lhs, rhs=rhs, output_dtype=output_dtype)
        with self._lock:
            self._operations[operation.id] = operation
        logger.debug("Registered %s as %s", operation.describe(), operation.id)
        return operation.id

    def get(self, operation_id: str) -> MatrixOperation:
        with self._lock:
            operation = self._operations.get(operation_id)
        if operation is None:
            raise NotFoundError(f"Matrix with ID {operation_id} not found")
        return operation

    def __contains__(self, operation_id: str) -> bool:
        with self._lock:
            return operation_id in self._operations

    def __len__(self) -> int:
        with self._lock:
            return len(self._operations)


def require_sharding(sharding: Optional[ShardingConfig]) -> ShardingConfig:
    if sharding is None:
        raise MissingConfigurationError(
            "Sharding configuration required for multi-node analysis"
        )
    if sharding.is_replicated:
        logger.warning(
            "Sharding over %d devices splits no dimension; every device runs the full operation",
            sharding.num_devices,
        )
    return sharding


# ═══════════════════════════════════════════════
#  SHARED MATH ON METRICS
# ═══════════════════════════════════════════════

def combine_sharded(
    single: NodeMetrics,
    per_device: NodeMetrics,
    communication_cost: float,
    num_devices: int,
    report_scaling: bool,
) -> MultiDeviceMetrics:
    """
    Communication either hides behind per-device work or dominates it:
    total = max(per-device lower bound, communication).
    """
    total_time = max(per_device.lower_bound_time, communication_cost)
    speedup = single.lower_bound_time / total_time
    return MultiDeviceMetrics(
        per_device_metrics=per_device,
        communication_cost=communication_cost,
        total_time=total_time,
        speedup_over_single_device=speedup,
        sharding_efficiency=per_device.lower_bound_time / total_time,
        scaling_efficiency=speedup / num_devices if report_scaling else None,
    )


def build_roofline_data(
    spec: AcceleratorSpec,
    operation: MatrixOperation,
    metrics: NodeMetrics,
) -> RooflineData:
    """Roofline curve for the operation's lhs dtype plus the operation's own point."""
    peak = spec.peak_flops_for(operation.lhs.dtype)
    bandwidth = spec.hbm_bandwidth
    points = [
        RooflineSample(
            intensity=intensity,
            achievable_flops=attainable_flops(intensity, peak, bandwidth),
            peak_flops=peak,
            memory_bound=intensity < metrics.peak_hardware_intensity,
        )
        for intensity in roofline_intensities()
    ]
    ai = metrics.arithmetic_intensity
    point = OperationPoint(
        intensity=ai,
        achievable_flops=peak if metrics.is_compute_bound else bandwidth * ai,
    )
    return RooflineData(
        intensity_points=points,
        operation_point=point,
        peak_hardware_intensity=metrics.peak_hardware_intensity,
        peak_flops=peak,
    )
