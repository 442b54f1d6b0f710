"""
Unit tests for the GPU-like profile.
"""

import unittest
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT / "src"))

from mmperf.errors import MissingConfigurationError, NotFoundError
from mmperf.recommendations import MEMORY_BOUND, NO_RECOMMENDATIONS
from mmperf.sharding import ShardingConfig
from mmperf.profiles import GPUProfile
from mmperf.profiles.gpu import sm_occupancy

NVLINK = 9e10 * 18
PCIE = 8e10


def register(profile, B, D, F, lhs="bf16", rhs="bf16", out="bf16"):
    return profile.register_operation(
        "matmul",
        {"shape": (B, D), "dtype": lhs},
        {"shape": (D, F), "dtype": rhs},
        out,
    )


class TestSingleDevice(unittest.TestCase):

    def setUp(self):
        self.gpu = GPUProfile()

    def test_dtype_dispatch(self):
        expected = {"bf16": 9.89e14, "fp32": 6.7e13, "int8": 1.979e15, "fp8": 3.958e15, "int4": 9.89e14}
        for dtype, rate in expected.items():
            m = self.gpu.single_device_metrics(register(self.gpu, 512, 512, 512, lhs=dtype, rhs=dtype))
            self.assertAlmostEqual(m.compute_time, 2 * 512 ** 3 / rate)
            self.assertAlmostEqual(m.peak_hardware_intensity, rate / 3.35e12)

    def test_l2_weight_caching(self):
        # rhs: 4096x4096 bf16 = 33.5 MB, fits the 50 MB L2
        m = self.gpu.single_device_metrics(register(self.gpu, 4096, 4096, 4096))
        self.assertTrue(m.can_fit_weights_in_l2)
        self.assertEqual(m.l2_cache_benefit, 1.5)
        self.assertAlmostEqual(m.effective_memory_time, m.memory_time / 1.5)
        self.assertEqual(m.lower_bound_time, max(m.compute_time, m.effective_memory_time))
        self.assertEqual(m.upper_bound_time, m.compute_time + m.effective_memory_time)

    def test_l2_only_counts_weights(self):
        # lhs is 268 MB but the 8 MB rhs still fits
        m = self.gpu.single_device_metrics(register(self.gpu, 65536, 2048, 2048))
        self.assertGreater(m.bytes.lhs_bytes, 50e6)
        self.assertTrue(m.can_fit_weights_in_l2)

        big = self.gpu.single_device_metrics(register(self.gpu, 16, 8192, 8192))
        self.assertFalse(big.can_fit_weights_in_l2)
        self.assertEqual(big.l2_cache_benefit, 1.0)
        self.assertEqual(big.effective_memory_time, big.memory_time)

    def test_tensor_core_utilization(self):
        m = self.gpu.single_device_metrics(register(self.gpu, 6, 24, 10))
        self.assertAlmostEqual(m.tensor_core_utilization.m_utilization, 6 / 8)
        self.assertAlmostEqual(m.tensor_core_utilization.n_utilization, 10 / 12)
        self.assertAlmostEqual(m.tensor_core_utilization.k_utilization, 24 / 32)

    def test_sm_occupancy(self):
        # 8 blocks per SM * 132 SMs = 1056 slots
        self.assertEqual(sm_occupancy(32, 32, 132), 1 / 1056)
        self.assertEqual(sm_occupancy(4096, 4096, 132), 1.0)
        self.assertEqual(sm_occupancy(33, 32, 132), 2 / 1056)
        m = self.gpu.single_device_metrics(register(self.gpu, 32, 64, 32))
        self.assertEqual(m.sm_occupancy, 1 / 1056)

    def test_bounds_ordering(self):
        for B, D, F in [(1, 4096, 4096), (100, 300, 7), (4096, 128, 4096)]:
            m = self.gpu.single_device_metrics(register(self.gpu, B, D, F))
            self.assertLessEqual(m.lower_bound_time, m.upper_bound_time)
            self.assertEqual(m.is_compute_bound, m.arithmetic_intensity > m.peak_hardware_intensity)


class TestMultiDevice(unittest.TestCase):

    def setUp(self):
        self.gpu = GPUProfile()
        self.op_id = register(self.gpu, 4096, 4096, 4096)
        self.output_bytes = 4096 * 4096 * 2

    def test_missing_config(self):
        with self.assertRaises(MissingConfigurationError):
            self.gpu.performance_metrics(self.op_id, multi_device=True, sharding=None)

    def test_unknown_id(self):
        with self.assertRaises(NotFoundError):
            self.gpu.performance_metrics("nope", multi_device=True, sharding=None)

    def test_single_domain(self):
        multi = self.gpu.multi_device_metrics(self.op_id, ShardingConfig(8, lhs_shard_dim=1, rhs_shard_dim=0))
        self.assertAlmostEqual(multi.communication_cost, (self.output_bytes / 2) * 3 / NVLINK)

    def test_domain_boundary(self):
        """256 GPUs still fit one NVSwitch domain."""
        multi = self.gpu.multi_device_metrics(self.op_id, ShardingConfig(256, rhs_shard_dim=0))
        self.assertAlmostEqual(multi.communication_cost, (self.output_bytes / 2) * 8 / NVLINK)

    def test_two_tier(self):
        multi = self.gpu.multi_device_metrics(self.op_id, ShardingConfig(512, lhs_shard_dim=1, rhs_shard_dim=0))
        intra = (self.output_bytes / 2) * 8 / NVLINK
        inter = (self.output_bytes / 2) * 1 / PCIE
        self.assertAlmostEqual(multi.communication_cost, intra + inter)

    def test_three_domains(self):
        multi = self.gpu.multi_device_metrics(self.op_id, ShardingConfig(600, lhs_shard_dim=1))
        intra = (self.output_bytes / 2) * 8 / NVLINK
        inter = (self.output_bytes / 3) * 1.584962500721156 / PCIE
        self.assertAlmostEqual(multi.communication_cost, intra + inter)

    def test_scaling_efficiency(self):
        n = 4
        multi = self.gpu.multi_device_metrics(self.op_id, ShardingConfig(n, lhs_shard_dim=0))
        self.assertEqual(multi.communication_cost, 0.0)
        self.assertAlmostEqual(multi.scaling_efficiency, multi.speedup_over_single_device / n)
        self.assertIn("scaling_efficiency", multi.to_dict())

    def test_output_dtype_sets_volume(self):
        fp32_id = register(self.gpu, 4096, 4096, 4096, out="fp32")
        sharding = ShardingConfig(8, lhs_shard_dim=1, rhs_shard_dim=0)
        bf16 = self.gpu.multi_device_metrics(self.op_id, sharding)
        fp32 = self.gpu.multi_device_metrics(fp32_id, sharding)
        self.assertAlmostEqual(fp32.communication_cost, 2 * bf16.communication_cost)

    def test_efficiency_range(self):
        for n in [1, 2, 8, 256, 512, 4096]:
            multi = self.gpu.multi_device_metrics(self.op_id, ShardingConfig(n, lhs_shard_dim=1, rhs_shard_dim=0))
            self.assertGreater(multi.sharding_efficiency, 0.0)
            self.assertLessEqual(multi.sharding_efficiency, 1.0)
            self.assertGreater(multi.speedup_over_single_device, 0.0)


class TestRecommendations(unittest.TestCase):

    def setUp(self):
        self.gpu = GPUProfile()

    def recs(self, *args, **kwargs):
        return self.gpu.analyze(register(self.gpu, *args, **kwargs)).recommendations

    def test_compute_bound_aligned(self):
        self.assertEqual(self.recs(4096, 4096, 4096), [NO_RECOMMENDATIONS])

    def test_decode_shape(self):
        self.assertEqual(self.recs(8, 4096, 4096), [
            MEMORY_BOUND,
            "Consider using FP8 precision to reduce memory bandwidth requirements and increase compute throughput.",
            "Consider using structured sparsity to potentially double compute throughput.",
            "For bf16 matmul on H100, batch size should be at least 300 to be compute-bound.",
            "For optimal CUDA kernel performance, consider using dimensions that are multiples of 32 for M and N, and 16 for K.",
        ])

    def test_padding_message(self):
        recs = self.recs(6, 4096, 4096)
        self.assertIn(
            "Consider padding matrix dimensions to multiples of tensor core dimensions (4x4x16) "
            "to improve hardware utilization.",
            recs,
        )

    def test_fp8_skips_precision_advice(self):
        recs = self.recs(8, 4096, 4096, lhs="fp8", rhs="fp8")
        self.assertEqual(recs[0], MEMORY_BOUND)
        self.assertFalse(any("FP8 precision" in r for r in recs))
        self.assertIn("structured sparsity", recs[1])


class TestRooflineData(unittest.TestCase):

    def test_fp8_ceiling(self):
        gpu = GPUProfile()
        analysis = gpu.analyze(register(gpu, 1024, 1024, 1024, lhs="fp8", rhs="fp8", out="fp8"))
        data = analysis.roofline_data
        self.assertEqual(data.peak_flops, 3.958e15)
        self.assertEqual(len(data.intensity_points), 51)
        self.assertTrue(all(p.achievable_flops <= 3.958e15 for p in data.intensity_points))
        self.assertTrue(data.intensity_points[0].memory_bound)
        self.assertFalse(data.intensity_points[-1].memory_bound)


if __name__ == "__main__":
    unittest.main()
