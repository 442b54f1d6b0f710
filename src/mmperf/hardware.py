"""
Accelerator specification registry.

Ships a TPU v5e and an NVIDIA H100 SXM5 preset. Each AcceleratorSpec
holds fixed constants in base SI units (FLOP/s, bytes, bytes/s, seconds).
The per-dtype throughput table is resolved when an AcceleratorSpec is
constructed, so a dtype lookup never silently falls back at analysis time.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .errors import InvalidHardwareError, NotFoundError
from .precision import ElementType, parse_element_type
from .roofline_math import critical_intensity

logger = logging.getLogger(__name__)

# Profile families with an analysis model
DEVICE_TYPES = ("TPU", "GPU")


# ═══════════════════════════════════════════════
#  HARDWARE SPECIFICATIONS
# ═══════════════════════════════════════════════

@dataclass(frozen=True)
class AcceleratorSpec:
    """Hardware constants for roofline and sharding analysis"""
    key: str
    name: str
    device_type: str                       # "TPU" or "GPU"
    peak_flops: Dict[ElementType, float]   # FLOP/s by element type
    fallback_dtype: ElementType            # rate used for unlisted element types

    hbm_bandwidth: float                   # B/s
    hbm_capacity: float                    # B
    fast_memory_bandwidth: Optional[float]  # B/s (VMEM); None if not modelled
    fast_memory_capacity: float            # B (VMEM or L2)

    intra_node_bandwidth: float            # B/s (ICI / NVLink)
    inter_node_bandwidth: float            # B/s (DCN / PCIe)
    tile_dims: Tuple[int, ...]             # MXU (2-D) or tensor core (3-D)
    max_devices_per_domain: int
    min_compute_bound_batch: int           # bf16 batch threshold for advice
    sm_count: Optional[int] = None         # GPU streaming multiprocessors
    short_name: Optional[str] = None       # label used in advice text; defaults to name

    # Informational, reported but not used by the cost model
    extras: Dict[str, object] = field(default_factory=dict)

    def __post_init__(self):
        if self.device_type not in DEVICE_TYPES:
            raise InvalidHardwareError(
                f"{self.name}: device_type must be one of {', '.join(DEVICE_TYPES)}, "
                f"got {self.device_type!r}"
            )
        if self.short_name is None:
            object.__setattr__(self, "short_name", self.name)

        table = {parse_element_type(k): float(v) for k, v in self.peak_flops.items()}
        fallback = parse_element_type(self.fallback_dtype)
        if fallback not in table:
            raise InvalidHardwareError(
                f"{self.name}: fallback dtype {fallback.value} has no throughput entry"
            )
        for dtype in ElementType:
            table.setdefault(dtype, table[fallback])
        object.__setattr__(self, "peak_flops", table)
        object.__setattr__(self, "fallback_dtype", fallback)

        positives = {
            "hbm_bandwidth": self.hbm_bandwidth,
            "hbm_capacity": self.hbm_capacity,
            "fast_memory_capacity": self.fast_memory_capacity,
            "intra_node_bandwidth": self.intra_node_bandwidth,
            "inter_node_bandwidth": self.inter_node_bandwidth,
            "max_devices_per_domain": self.max_devices_per_domain,
        }
        if self.fast_memory_bandwidth is not None:
            positives["fast_memory_bandwidth"] = self.fast_memory_bandwidth
        if self.sm_count is not None:
            positives["sm_count"] = self.sm_count
        positives.update({f"peak_flops[{k.value}]": v for k, v in table.items()})
        bad = [name for name, value in positives.items() if not value > 0]
        if bad:
            raise InvalidHardwareError(f"{self.name}: non-positive values for {', '.join(bad)}")

        dims = tuple(self.tile_dims)
        if len(dims) not in (2, 3) or any(
            isinstance(d, bool) or not isinstance(d, int) or d <= 0 for d in dims
        ):
            raise InvalidHardwareError(f"{self.name}: tile dims must be 2 or 3 positive ints, got {dims}")
        object.__setattr__(self, "tile_dims", dims)

    def peak_flops_for(self, dtype) -> float:
        return self.peak_flops[parse_element_type(dtype)]

    def critical_intensity(self, dtype) -> float:
        """
        Ridge point for `dtype`: Peak_FLOPS / HBM bandwidth (FLOP/byte).
        AI > ridge → compute-bound.
        """
        return critical_intensity(self.peak_flops_for(dtype), self.hbm_bandwidth)

    @property
    def tile_label(self) -> str:
        return "x".join(str(d) for d in self.tile_dims)

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "name": self.name,
            "short_name": self.short_name,
            "device_type": self.device_type,
            "peak_flops": {k.value: v for k, v in self.peak_flops.items()},
            "hbm_bandwidth": self.hbm_bandwidth,
            "hbm_capacity": self.hbm_capacity,
            "fast_memory_bandwidth": self.fast_memory_bandwidth,
            "fast_memory_capacity": self.fast_memory_capacity,
            "intra_node_bandwidth": self.intra_node_bandwidth,
            "inter_node_bandwidth": self.inter_node_bandwidth,
            "tile_dims": list(self.tile_dims),
            "max_devices_per_domain": self.max_devices_per_domain,
            "sm_count": self.sm_count,
        }


# ═══════════════════════════════════════════════
#  PRESETS
# ═══════════════════════════════════════════════

# Google TPU v5e: single TensorCore, 128x128 MXU, 2D ICI torus
TPU_V5E = AcceleratorSpec(
    key="tpu_v5e",
    name="TPU v5e",
    short_name="TPU",
    device_type="TPU",
    peak_flops={
        ElementType.BF16: 1.97e14,
        ElementType.INT8: 3.94e14,
    },
    fallback_dtype=ElementType.BF16,
    hbm_bandwidth=8.1e11,
    hbm_capacity=16e9,
    fast_memory_bandwidth=1.78e13,  # VMEM
    fast_memory_capacity=128e6,
    intra_node_bandwidth=9e10,      # ICI bidirectional
    inter_node_bandwidth=2.5e10,    # DCN
    tile_dims=(128, 128),
    max_devices_per_domain=256,     # 16x16 pod
    min_compute_bound_batch=240,
    extras={
        "ici_oneway_bandwidth": 4.5e10,
        "pcie_bandwidth": 1.5e10,
        "cores_per_chip": 1,
        "ici_topology": "2D",
        "max_pod_size": (16, 16),
        "ici_hop_latency": 1e-6,
    },
)

# NVIDIA H100 SXM5: 132 SMs, NVSwitch all-to-all within a domain
H100_SXM5 = AcceleratorSpec(
    key="h100",
    name="NVIDIA H100 SXM5",
    short_name="H100",
    device_type="GPU",
    peak_flops={
        ElementType.BF16: 9.89e14,
        ElementType.FP32: 6.7e13,
        ElementType.INT8: 1.979e15,
        ElementType.FP8: 3.958e15,
    },
    fallback_dtype=ElementType.BF16,
    hbm_bandwidth=3.35e12,
    hbm_capacity=80e9,
    fast_memory_bandwidth=None,     # L2 modelled as a fixed benefit multiplier
    fast_memory_capacity=50e6,      # L2
    intra_node_bandwidth=9e10 * 18,  # 18 NVLink4 links
    inter_node_bandwidth=8e10,      # PCIe
    tile_dims=(4, 4, 16),
    max_devices_per_domain=256,
    min_compute_bound_batch=300,
    sm_count=132,
    extras={
        "flops_bf16_sparse": 1.979e15,
        "shared_memory_per_sm": 228e3,
        "nvlink_topology": "all-to-all",
        "nvlink_latency": 0.5e-6,
        "pcie_latency": 2e-6,
    },
)


# ═══════════════════════════════════════════════
#  REGISTRY
# ═══════════════════════════════════════════════

HARDWARE_REGISTRY: Dict[str, AcceleratorSpec] = {
    TPU_V5E.key: TPU_V5E,
    H100_SXM5.key: H100_SXM5,
}


def get_hardware(key: str) -> AcceleratorSpec:
    """Lookup hardware by key. Raises NotFoundError if not registered."""
    try:
        return HARDWARE_REGISTRY[key]
    except KeyError:
        raise NotFoundError(
            f"Hardware '{key}' not found (available: {', '.join(list_hardware())})"
        ) from None


def list_hardware() -> List[str]:
    """Return all registered hardware keys."""
    return list(HARDWARE_REGISTRY.keys())


def register_hardware(spec: AcceleratorSpec) -> AcceleratorSpec:
    """Register (or replace) a hardware spec under its key."""
    if spec.key in HARDWARE_REGISTRY:
        logger.warning("Replacing registered hardware %r", spec.key)
    HARDWARE_REGISTRY[spec.key] = spec
    return spec


if __name__ == "__main__":
    print("=" * 60)
    print("Hardware Registry")
    print("=" * 60)
    for key in list_hardware():
        hw = get_hardware(key)
        print(f"\n  {hw.name} ({key})")
        print(f"    HBM: {hw.hbm_bandwidth / 1e9:.0f} GB/s, tile {hw.tile_label}")
        for dtype in ElementType:
            print(f"      {dtype.value:5s}: {hw.peak_flops_for(dtype) / 1e12:>8.1f} TFLOPS  "
                  f"(ridge = {hw.critical_intensity(dtype):.1f})")
