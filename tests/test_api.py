"""
Tests for the FastAPI adapter.
"""

import os
import subprocess
import tempfile
import unittest
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))
sys.path.insert(0, str(ROOT / "src"))

from fastapi.testclient import TestClient

from api.server import app
from mmperf.hardware import HARDWARE_REGISTRY, AcceleratorSpec, register_hardware

OPERATION = {
    "kind": "matmul",
    "lhs": {"shape": [100, 256], "dtype": "bf16"},
    "rhs": {"shape": [256, 256], "dtype": "bf16"},
    "output_dtype": "bf16",
}


class TestHardwareEndpoint(unittest.TestCase):

    def setUp(self):
        self.client = TestClient(app)

    def test_list(self):
        r = self.client.get("/api/hardware")
        self.assertEqual(r.status_code, 200)
        keys = {item["key"] for item in r.json()}
        self.assertTrue({"tpu_v5e", "h100"} <= keys)


class TestOperationEndpoints(unittest.TestCase):

    def setUp(self):
        self.client = TestClient(app)

    def register(self, hardware_key="tpu_v5e", body=OPERATION):
        return self.client.post(f"/api/operations?hardware_key={hardware_key}", json=body)

    def test_register_and_analyze(self):
        r = self.register()
        self.assertEqual(r.status_code, 200)
        op_id = r.json()["id"]

        r = self.client.get(f"/api/operations/{op_id}/analysis?hardware_key=tpu_v5e")
        self.assertEqual(r.status_code, 200)
        body = r.json()
        self.assertEqual(body["metrics"]["total_flops"], 2 * 100 * 256 * 256)
        self.assertEqual(body["metrics"]["mxu_utilization"]["lhs_utilization"], 0.78125)
        self.assertEqual(len(body["roofline_data"]["intensity_points"]), 51)
        self.assertTrue(any("padding" in rec for rec in body["recommendations"]))

    def test_metrics_single_and_multi(self):
        op_id = self.register(hardware_key="h100").json()["id"]

        r = self.client.post(f"/api/operations/{op_id}/metrics?hardware_key=h100", json={})
        self.assertEqual(r.status_code, 200)
        self.assertIsNone(r.json()["multi_device"])

        r = self.client.post(
            f"/api/operations/{op_id}/metrics?hardware_key=h100",
            json={"multi_device": True, "sharding": {"num_devices": 4, "lhs_shard_dim": 0}},
        )
        self.assertEqual(r.status_code, 200)
        multi = r.json()["multi_device"]
        self.assertEqual(multi["communication_cost"], 0.0)
        self.assertIn("scaling_efficiency", multi)

    def test_missing_sharding(self):
        op_id = self.register().json()["id"]
        r = self.client.post(
            f"/api/operations/{op_id}/metrics?hardware_key=tpu_v5e",
            json={"multi_device": True},
        )
        self.assertEqual(r.status_code, 400)

    def test_invalid_sharding(self):
        op_id = self.register().json()["id"]
        r = self.client.post(
            f"/api/operations/{op_id}/metrics?hardware_key=tpu_v5e",
            json={"multi_device": True, "sharding": {"num_devices": 0}},
        )
        self.assertEqual(r.status_code, 400)

    def test_unknown_operation(self):
        r = self.client.get("/api/operations/does-not-exist/analysis?hardware_key=tpu_v5e")
        self.assertEqual(r.status_code, 404)
        r = self.client.post("/api/operations/does-not-exist/metrics?hardware_key=tpu_v5e", json={})
        self.assertEqual(r.status_code, 404)

    def test_operation_bound_to_profile(self):
        op_id = self.register(hardware_key="tpu_v5e").json()["id"]
        r = self.client.get(f"/api/operations/{op_id}/analysis?hardware_key=h100")
        self.assertEqual(r.status_code, 404)

    def test_unknown_hardware(self):
        self.assertEqual(self.register(hardware_key="tpu_v9").status_code, 404)

    def test_custom_hardware(self):
        base = dict(
            name="Custom GPU", device_type="GPU", peak_flops={"bf16": 1e15},
            fallback_dtype="bf16", hbm_bandwidth=3e12, hbm_capacity=80e9,
            fast_memory_bandwidth=None, fast_memory_capacity=50e6,
            intra_node_bandwidth=1e12, inter_node_bandwidth=5e10,
            tile_dims=(4, 4, 16), max_devices_per_domain=8, min_compute_bound_batch=300,
        )
        register_hardware(AcceleratorSpec(key="api_gpu", sm_count=100, **base))
        register_hardware(AcceleratorSpec(key="api_gpu_no_sms", **base))
        try:
            self.assertEqual(self.register(hardware_key="api_gpu").status_code, 200)
            self.assertEqual(self.register(hardware_key="api_gpu_no_sms").status_code, 400)
        finally:
            HARDWARE_REGISTRY.pop("api_gpu", None)
            HARDWARE_REGISTRY.pop("api_gpu_no_sms", None)

    def test_unsupported_kind(self):
        body = dict(OPERATION, kind="conv2d")
        self.assertEqual(self.register(body=body).status_code, 422)

    def test_shape_mismatch(self):
        body = dict(OPERATION, rhs={"shape": [128, 256], "dtype": "bf16"})
        self.assertEqual(self.register(body=body).status_code, 400)


class TestServerScript(unittest.TestCase):

    def test_loads_from_outside_repo(self):
        """`python api/server.py` must resolve both `mmperf` and `api` itself."""
        env = {k: v for k, v in os.environ.items() if k != "PYTHONPATH"}
        script = ROOT / "api" / "server.py"
        code = f"import runpy; ns = runpy.run_path({str(script)!r}); print(ns['app'].title)"
        with tempfile.TemporaryDirectory() as cwd:
            result = subprocess.run(
                [sys.executable, "-c", code],
                cwd=cwd, env=env, capture_output=True, text=True, timeout=60,
            )
        self.assertEqual(result.returncode, 0, result.stderr)
        self.assertIn("Matmul Roofline Analyzer", result.stdout)


if __name__ == "__main__":
    unittest.main()
