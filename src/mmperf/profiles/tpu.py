"""
TPU-like accelerator profile.

Single compute tier fed by HBM, a VMEM scratchpad that can hold the
operand pair, a 2-D MXU, and one flat ICI fabric for collectives.
"""

import logging
from typing import List, Optional

from ..errors import InvalidHardwareError
from ..hardware import TPU_V5E, AcceleratorSpec
from ..metrics import (
    Analysis,
    Metrics,
    MultiDeviceMetrics,
    MXUUtilization,
    TPUNodeMetrics,
    VMEMMetrics,
)
from ..operation import MatrixOperation
from ..precision import ElementType
from ..recommendations import (
    MEMORY_BOUND,
    batch_size_advice,
    both_operands,
    finalize,
    needs_padding,
    padding_advice,
)
from ..roofline_math import all_reduce_cost, tile_utilization, time_bounds
from ..sharding import ShardingConfig, shard_operation
from .base import (
    OperationRegistry,
    build_roofline_data,
    combine_sharded,
    require_sharding,
)

logger = logging.getLogger(__name__)


class TPUProfile:
    """Roofline, VMEM and ICI sharding model for a TPU-like chip."""

    def __init__(self, spec: AcceleratorSpec = TPU_V5E):
        if spec.fast_memory_bandwidth is None:
            raise InvalidHardwareError(f"{spec.name}: TPU profile needs a VMEM bandwidth")
        if len(spec.tile_dims) != 2:
            raise InvalidHardwareError(f"{spec.name}: TPU profile needs a 2-D MXU, got {spec.tile_label}")
        self.spec = spec
        self.operations = OperationRegistry()

    def register_operation(self, kind, lhs, rhs, output_dtype) -> str:
        return self.operations.add(kind, lhs, rhs, output_dtype)

    def get_operation(self, operation_id: str) -> MatrixOperation:
        return self.operations.get(operation_id)

    def performance_metrics(
        self,
        operation_id: str,
        multi_device: bool = False,
        sharding: Optional[ShardingConfig] = None,
    ) -> Metrics:
        operation = self.operations.get(operation_id)
        if multi_device:
            require_sharding(sharding)
        single = self._single_device(operation)
        multi = self._multi_device(operation, sharding, single) if multi_device else None
        return Metrics(single_device=single, multi_device=multi)

    def single_device_metrics(self, operation_id: str) -> TPUNodeMetrics:
        return self._single_device(self.operations.get(operation_id))

    def multi_device_metrics(
        self, operation_id: str, sharding: Optional[ShardingConfig]
    ) -> MultiDeviceMetrics:
        operation = self.operations.get(operation_id)
        require_sharding(sharding)
        return self._multi_device(operation, sharding, self._single_device(operation))

    def analyze(self, operation_id: str) -> Analysis:
        operation = self.operations.get(operation_id)
        metrics = self._single_device(operation)
        return Analysis(
            metrics=metrics,
            recommendations=self.generate_recommendations(operation, metrics),
            roofline_data=self.generate_roofline_data(operation, metrics),
        )

    def generate_roofline_data(self, operation: MatrixOperation, metrics: TPUNodeMetrics):
        return build_roofline_data(self.spec, operation, metrics)

    # ═══════════════════════════════════════════════
    #  SINGLE DEVICE
    # ═══════════════════════════════════════════════

    def _single_device(self, operation: MatrixOperation) -> TPUNodeMetrics:
        hw = self.spec
        B, D, F = operation.B, operation.D, operation.F

        total_flops = operation.compute_flops()
        bytes_ = operation.compute_bytes()
        ai = operation.compute_arithmetic_intensity()

        flops_per_second = hw.peak_flops_for(operation.lhs.dtype)
        peak_hardware_intensity = hw.critical_intensity(operation.lhs.dtype)

        compute_time = total_flops / flops_per_second
        memory_time = bytes_.total_bytes / hw.hbm_bandwidth

        mxu_rows, mxu_cols = hw.tile_dims
        mxu = MXUUtilization(
            lhs_utilization=tile_utilization(B, mxu_rows),
            rhs_utilization_rows=tile_utilization(D, mxu_rows),
            rhs_utilization_cols=tile_utilization(F, mxu_cols),
        )

        # Operands (not the output) must be resident in VMEM together
        vmem_memory_time = bytes_.total_bytes / hw.fast_memory_bandwidth
        vmem = VMEMMetrics(
            fits_in_vmem=(bytes_.lhs_bytes + bytes_.rhs_bytes) <= hw.fast_memory_capacity,
            vmem_compute_time=compute_time,
            vmem_memory_time=vmem_memory_time,
            vmem_total_time=max(compute_time, vmem_memory_time),
            vmem_speedup=memory_time / vmem_memory_time,
        )

        lower, upper = time_bounds(compute_time, memory_time)
        return TPUNodeMetrics(
            total_flops=total_flops,
            bytes=bytes_,
            arithmetic_intensity=ai,
            peak_hardware_intensity=peak_hardware_intensity,
            is_compute_bound=ai > peak_hardware_intensity,
            compute_time=compute_time,
            memory_time=memory_time,
            effective_memory_time=memory_time,
            lower_bound_time=lower,
            upper_bound_time=upper,
            mxu_utilization=mxu,
            vmem_metrics=vmem,
        )

    # ═══════════════════════════════════════════════
    #  MULTI DEVICE
    # ═══════════════════════════════════════════════

    def _multi_device(
        self,
        operation: MatrixOperation,
        sharding: ShardingConfig,
        single: TPUNodeMetrics,
    ) -> MultiDeviceMetrics:
        per_device = self._single_device(shard_operation(operation, sharding))
        return combine_sharded(
            single,
            per_device,
            self._communication_cost(operation, sharding),
            sharding.num_devices,
            report_scaling=False,
        )

    def _communication_cost(self, operation: MatrixOperation, sharding: ShardingConfig) -> float:
        """All-reduce of the full (unsharded) output over the ICI fabric."""
        if not sharding.reduces_output:
            return 0.0
        output_bytes = operation.compute_bytes().output_bytes
        cost = all_reduce_cost(output_bytes, sharding.num_devices, self.spec.intra_node_bandwidth)
        logger.debug(
            "ICI all-reduce of %.0f bytes over %d devices: %.3e s",
            output_bytes, sharding.num_devices, cost,
        )
        return cost

    # ═══════════════════════════════════════════════
    #  RECOMMENDATIONS
    # ═══════════════════════════════════════════════

    def generate_recommendations(
        self, operation: MatrixOperation, metrics: TPUNodeMetrics
    ) -> List[str]:
        recommendations = []

        if not metrics.is_compute_bound:
            recommendations.append(MEMORY_BOUND)
            if both_operands(operation, ElementType.BF16):
                recommendations.append(
                    "Consider using int8 quantization for weights to reduce memory bandwidth requirements."
                )
            if metrics.vmem_metrics.fits_in_vmem:
                recommendations.append(
                    "Consider using VMEM to store weights for higher bandwidth access."
                )

        if needs_padding(metrics.utilizations().values()):
            recommendations.append(padding_advice("MXU", self.spec.tile_label))

        recommendations.extend(
            batch_size_advice(operation, self.spec.min_compute_bound_batch, self.spec.short_name)
        )
        return finalize(recommendations)
