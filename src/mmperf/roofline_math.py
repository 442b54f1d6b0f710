"""
Roofline arithmetic shared by every accelerator profile.

All formulas follow the standard roofline model:
  AI = FLOPs / Bytes (FLOP/byte)
  Ridge point = Peak_FLOPS / Bandwidth
  lower bound = max(t_compute, t_memory)   (perfect overlap)
  upper bound = t_compute + t_memory       (fully serialized)

Everything here is a pure function of its arguments.
"""

import math
from typing import List, Tuple


# ═══════════════════════════════════════════════
#  FLOP COUNTS
# ═══════════════════════════════════════════════

def matmul_flops(B: int, D: int, F: int) -> int:
    """
    Matmul: out[B,F] = lhs[B,D] @ rhs[D,F]
    Each output element: D multiply-adds = 2*D FLOPs.
    Total: 2 * B * D * F
    """
    return 2 * B * D * F


# ═══════════════════════════════════════════════
#  BYTES (memory traffic)
# ═══════════════════════════════════════════════

def tensor_bytes(shape: Tuple[int, ...], bpe: float) -> float:
    """Footprint of a dense tensor: product of dims times bytes per element."""
    return math.prod(shape) * bpe


# ═══════════════════════════════════════════════
#  ARITHMETIC INTENSITY
# ═══════════════════════════════════════════════

def arithmetic_intensity(flops: float, bytes_: float) -> float:
    """
    AI = FLOPs / Bytes (FLOP per byte).
    Returns inf if bytes <= 0: no traffic means nothing can be memory-bound.
    """
    if bytes_ <= 0:
        return float("inf")
    return flops / bytes_


def critical_intensity(flops_per_second: float, bandwidth: float) -> float:
    """
    Ridge point: Peak_FLOPS / Bandwidth (both in base SI units).
    AI > ridge → compute-bound; otherwise memory-bound.
    """
    return flops_per_second / bandwidth


# ═══════════════════════════════════════════════
#  TILING
# ═══════════════════════════════════════════════

def tile_utilization(dim: int, unit: int) -> float:
    """
    Fraction of padded-tile work that is useful.
    1.0 when dim is a multiple of unit, else dim / (ceil(dim/unit) * unit).
    """
    if dim % unit == 0:
        return 1.0
    return dim / (math.ceil(dim / unit) * unit)


# ═══════════════════════════════════════════════
#  TIME BOUNDS
# ═══════════════════════════════════════════════

def time_bounds(compute_time: float, memory_time: float) -> Tuple[float, float]:
    """Return (lower, upper) execution-time bounds in seconds."""
    return max(compute_time, memory_time), compute_time + memory_time


# ═══════════════════════════════════════════════
#  COLLECTIVES
# ═══════════════════════════════════════════════

def reduction_steps(num_devices: float) -> float:
    """Exchange steps of a tree/ring reduce. Exact for powers of two."""
    return math.log2(num_devices)


def all_reduce_cost(output_bytes: float, num_devices: float, bandwidth: float) -> float:
    """
    All-reduce of the output over `num_devices` peers.
    Half the output moves per step on average: (bytes/2) * log2(n) / bw.
    """
    return (output_bytes / 2) * reduction_steps(num_devices) / bandwidth


# ═══════════════════════════════════════════════
#  ROOFLINE SAMPLING
# ═══════════════════════════════════════════════

ROOFLINE_MIN_EXPONENT = -1
ROOFLINE_MAX_EXPONENT = 4
ROOFLINE_STEPS_PER_DECADE = 10


def roofline_intensities() -> List[float]:
    """
    Log-spaced intensities from 10^-1 to 10^4 in 0.1-decade steps (51 points).
    Exponents are built from integers so the endpoint is exact.
    """
    count = (ROOFLINE_MAX_EXPONENT - ROOFLINE_MIN_EXPONENT) * ROOFLINE_STEPS_PER_DECADE
    return [
        10 ** (ROOFLINE_MIN_EXPONENT + k / ROOFLINE_STEPS_PER_DECADE)
        for k in range(count + 1)
    ]


def attainable_flops(intensity: float, peak_flops: float, bandwidth: float) -> float:
    """Roofline ceiling: min(peak, bandwidth * AI)."""
    return min(peak_flops, bandwidth * intensity)


if __name__ == "__main__":
    assert matmul_flops(256, 256, 256) == 33_554_432
    assert tile_utilization(100, 128) == 0.78125
    assert len(roofline_intensities()) == 51
    assert abs(critical_intensity(1.97e14, 8.1e11) - 243.2) < 0.1  # TPU v5e bf16 ridge
    print("roofline_math: all validation checks passed")
