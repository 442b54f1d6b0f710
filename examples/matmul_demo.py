"""
Matmul performance demo.

Walks one transformer-sized projection through both profiles:
1. Single-device roofline metrics
2. Recommendations
3. Sharding across devices (batch vs contraction axis)
"""

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT / "src"))

from mmperf import GPUProfile, ShardingConfig, TPUProfile


def demo_profile(profile, B, D, F, dtype="bf16"):
    print("\n" + "=" * 80)
    print(f"{profile.spec.name}: [{B}x{D}] @ [{D}x{F}] {dtype}")
    print("=" * 80)

    op_id = profile.register_operation(
        "matmul",
        {"shape": (B, D), "dtype": dtype},
        {"shape": (D, F), "dtype": dtype},
        dtype,
    )
    analysis = profile.analyze(op_id)
    m = analysis.metrics

    bound = "compute" if m.is_compute_bound else "memory"
    print(f"  FLOPs:       {m.total_flops:,}")
    print(f"  Bytes:       {m.bytes.total_bytes:,.0f}")
    print(f"  AI:          {m.arithmetic_intensity:.1f} FLOP/B (ridge {m.peak_hardware_intensity:.1f}, {bound}-bound)")
    print(f"  Time:        {m.lower_bound_time * 1e6:.1f} - {m.upper_bound_time * 1e6:.1f} us")
    for axis, u in m.utilizations().items():
        print(f"  {axis:22s} {u:.3f}")

    print("\n  Recommendations:")
    for rec in analysis.recommendations:
        print(f"    - {rec}")

    print("\n  Sharding:")
    print(f"  {'Devices':>8s} {'Axis':>12s} {'Comm (us)':>10s} {'Total (us)':>11s} {'Speedup':>8s} {'Eff':>6s}")
    for n in (2, 8, 64, 512):
        for label, cfg in (("batch", {"lhs_shard_dim": 0}),
                           ("contraction", {"lhs_shard_dim": 1, "rhs_shard_dim": 0})):
            multi = profile.multi_device_metrics(op_id, ShardingConfig(n, **cfg))
            print(f"  {n:>8d} {label:>12s} {multi.communication_cost * 1e6:>10.2f} "
                  f"{multi.total_time * 1e6:>11.2f} {multi.speedup_over_single_device:>8.2f} "
                  f"{multi.sharding_efficiency:>6.2f}")


def main():
    demo_profile(TPUProfile(), 100, 4096, 4096)
    demo_profile(GPUProfile(), 2048, 4096, 14336)


if __name__ == "__main__":
    main()
