"""
GPU-like accelerator profile.

HBM-fed SMs with tensor-core tiles, an L2 cache that can keep the
weights (rhs) resident, and a two-tier fabric for collectives:
NVLink/NVSwitch inside a domain, PCIe between domains.
"""

import logging
import math
from typing import List, Optional

from ..errors import InvalidHardwareError
from ..hardware import H100_SXM5, AcceleratorSpec
from ..metrics import (
    Analysis,
    GPUNodeMetrics,
    Metrics,
    MultiDeviceMetrics,
    TensorCoreUtilization,
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
from ..roofline_math import all_reduce_cost, reduction_steps, tile_utilization, time_bounds
from ..sharding import ShardingConfig, shard_operation
from .base import (
    OperationRegistry,
    build_roofline_data,
    combine_sharded,
    require_sharding,
)

logger = logging.getLogger(__name__)

# Empirical speedup on memory time when the weights stay in L2
L2_CACHE_BENEFIT = 1.5

# Occupancy model: 256-thread blocks, 64 warps per SM, 32x32 output tiles
WARPS_PER_SM = 64
THREADS_PER_WARP = 32
THREADS_PER_BLOCK = 256
MAX_BLOCKS_PER_SM = 16
OUTPUT_TILE = 32

# CUDA kernel alignment for M/N and K
MN_ALIGNMENT = 32
K_ALIGNMENT = 16


def sm_occupancy(B: int, F: int, sm_count: int) -> float:
    """Fraction of resident block slots the output tiles can fill."""
    blocks_per_sm = min(MAX_BLOCKS_PER_SM, WARPS_PER_SM * THREADS_PER_WARP // THREADS_PER_BLOCK)
    blocks_needed = math.ceil(B / OUTPUT_TILE) * math.ceil(F / OUTPUT_TILE)
    return min(1.0, blocks_needed / (blocks_per_sm * sm_count))


class GPUProfile:
    """Roofline, L2 and NVLink/PCIe sharding model for a GPU-like device."""

    def __init__(self, spec: AcceleratorSpec = H100_SXM5):
        if len(spec.tile_dims) != 3:
            raise InvalidHardwareError(
                f"{spec.name}: GPU profile needs an MxNxK tensor-core tile, got {spec.tile_label}"
            )
        if spec.sm_count is None:
            raise InvalidHardwareError(f"{spec.name}: GPU profile needs sm_count")
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

    def single_device_metrics(self, operation_id: str) -> GPUNodeMetrics:
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

    def generate_roofline_data(self, operation: MatrixOperation, metrics: GPUNodeMetrics):
        return build_roofline_data(self.spec, operation, metrics)

    def _single_device(self, operation: MatrixOperation) -> GPUNodeMetrics:
        hw = self.spec
        B, D, F = operation.B, operation.D, operation.F

        total_flops = operation.compute_flops()
        bytes_ = operation.compute_bytes()
        ai = operation.compute_arithmetic_intensity()

        flops_per_second = hw.peak_flops_for(operation.lhs.dtype)
        peak_hardware_intensity = hw.critical_intensity(operation.lhs.dtype)

        compute_time = total_flops / flops_per_second
        memory_time = bytes_.total_bytes / hw.hbm_bandwidth

        tc_m, tc_n, tc_k = hw.tile_dims
        tensor_core = TensorCoreUtilization(
            m_utilization=tile_utilization(B, tc_m),
            n_utilization=tile_utilization(F, tc_n),
            k_utilization=tile_utilization(D, tc_k),
        )

        # Weight-stationary: only the rhs needs to stay in L2
        fits_in_l2 = bytes_.rhs_bytes <= hw.fast_memory_capacity
        benefit = L2_CACHE_BENEFIT if fits_in_l2 else 1.0
        effective_memory_time = memory_time / benefit

        lower, upper = time_bounds(compute_time, effective_memory_time)
        return GPUNodeMetrics(
            total_flops=total_flops,
            bytes=bytes_,
            arithmetic_intensity=ai,
            peak_hardware_intensity=peak_hardware_intensity,
            is_compute_bound=ai > peak_hardware_intensity,
            compute_time=compute_time,
            memory_time=memory_time,
            effective_memory_time=effective_memory_time,
            lower_bound_time=lower,
            upper_bound_time=upper,
            tensor_core_utilization=tensor_core,
            sm_occupancy=sm_occupancy(B, F, hw.sm_count),
            can_fit_weights_in_l2=fits_in_l2,
            l2_cache_benefit=benefit,
        )

    def _multi_device(
        self,
        operation: MatrixOperation,
        sharding: ShardingConfig,
        single: GPUNodeMetrics,
    ) -> MultiDeviceMetrics:
        per_device = self._single_device(shard_operation(operation, sharding))
        return combine_sharded(
            single,
            per_device,
            self._communication_cost(operation, sharding),
            sharding.num_devices,
            report_scaling=True,
        )

    def _communication_cost(self, operation: MatrixOperation, sharding: ShardingConfig) -> float:
        """
        All-reduce of the unsharded output.

        Up to max_devices_per_domain GPUs share one NVSwitch domain. Beyond
        that the reduce runs in two tiers: a full-domain NVLink reduce, then
        a PCIe reduce across domains carrying 1/nodes of the output.
        """
        if not sharding.reduces_output:
            return 0.0
        hw = self.spec
        n = sharding.num_devices
        output_bytes = operation.compute_bytes().output_bytes

        if n <= hw.max_devices_per_domain:
            return all_reduce_cost(output_bytes, n, hw.intra_node_bandwidth)

        nodes_needed = math.ceil(n / hw.max_devices_per_domain)
        intra_node_cost = all_reduce_cost(
            output_bytes, hw.max_devices_per_domain, hw.intra_node_bandwidth
        )
        inter_node_cost = (
            (output_bytes / nodes_needed) * reduction_steps(nodes_needed) / hw.inter_node_bandwidth
        )
        logger.debug(
            "%d GPUs span %d NVSwitch domains: intra %.3e s + inter %.3e s",
            n, nodes_needed, intra_node_cost, inter_node_cost,
        )
        return intra_node_cost + inter_node_cost

    def generate_recommendations(
        self, operation: MatrixOperation, metrics: GPUNodeMetrics
    ) -> List[str]:
        recommendations = []

        if not metrics.is_compute_bound:
            recommendations.append(MEMORY_BOUND)
            if both_operands(operation, ElementType.BF16):
                recommendations.append(
                    "Consider using FP8 precision to reduce memory bandwidth requirements "
                    "and increase compute throughput."
                )
            recommendations.append(
                "Consider using structured sparsity to potentially double compute throughput."
            )

        if needs_padding(metrics.utilizations().values()):
            recommendations.append(padding_advice("tensor core", self.spec.tile_label))

        recommendations.extend(
            batch_size_advice(operation, self.spec.min_compute_bound_batch, self.spec.short_name)
        )

        if (operation.B % MN_ALIGNMENT or operation.F % MN_ALIGNMENT
                or operation.D % K_ALIGNMENT):
            recommendations.append(
                "For optimal CUDA kernel performance, consider using dimensions that are "
                f"multiples of {MN_ALIGNMENT} for M and N, and {K_ALIGNMENT} for K."
            )

        return finalize(recommendations)
