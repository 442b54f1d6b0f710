"""
FastAPI backend for matmul performance analysis.

Endpoints:
  GET  /api/hardware                          — List registered accelerators
  POST /api/operations                        — Register a matmul, returns its id
  POST /api/operations/{id}/metrics           — Single (and optionally multi) device metrics
  GET  /api/operations/{id}/analysis          — Metrics + recommendations + roofline data

Every endpoint takes a `hardware_key` query parameter (default from
MMPERF_HARDWARE, else "tpu_v5e"). Operations are registered per
hardware profile, so query with the key they were registered under.

Run:
  uvicorn api.server:app --reload --port 8000
"""

import logging
import os
import sys
import threading
from pathlib import Path
from typing import Dict, List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))
sys.path.insert(0, str(ROOT / "src"))

from mmperf import (
    AcceleratorProfile,
    InvalidHardwareError,
    InvalidOperationError,
    InvalidShardingError,
    MissingConfigurationError,
    NotFoundError,
    ShardingConfig,
    UnsupportedOperationError,
    get_hardware,
    get_profile,
    list_hardware,
)
from api.schemas import (
    HardwareListItem,
    MetricsRequest,
    OperationCreated,
    OperationRequest,
)

logger = logging.getLogger(__name__)

DEFAULT_HARDWARE = os.environ.get("MMPERF_HARDWARE", "tpu_v5e")

app = FastAPI(title="Matmul Roofline Analyzer", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

# One profile (and operation registry) per hardware key, created lazily
_profiles: Dict[str, AcceleratorProfile] = {}
_profiles_lock = threading.Lock()


def _get_profile(hardware_key: str) -> AcceleratorProfile:
    with _profiles_lock:
        profile = _profiles.get(hardware_key)
        if profile is None:
            try:
                profile = get_profile(hardware_key)
            except NotFoundError as e:
                raise HTTPException(404, str(e))
            except InvalidHardwareError as e:
                raise HTTPException(400, str(e))
            _profiles[hardware_key] = profile
            logger.info("Created %s profile for %r", profile.spec.name, hardware_key)
        return profile


def _http_error(e: Exception) -> HTTPException:
    if isinstance(e, NotFoundError):
        return HTTPException(404, str(e))
    if isinstance(e, UnsupportedOperationError):
        return HTTPException(422, str(e))
    return HTTPException(400, str(e))


# ═══════════════════════════════════════════════
#  ENDPOINTS
# ═══════════════════════════════════════════════

@app.get("/")
def root():
    return RedirectResponse(url="/docs", status_code=302)


@app.get("/api/hardware", response_model=List[HardwareListItem])
def hardware_list():
    """List all registered accelerators."""
    items = []
    for key in list_hardware():
        hw = get_hardware(key)
        items.append(HardwareListItem(
            key=key,
            name=hw.name,
            device_type=hw.device_type,
            hbm_bandwidth=hw.hbm_bandwidth,
            tile_dims=list(hw.tile_dims),
            peak_flops={k.value: v for k, v in hw.peak_flops.items()},
        ))
    return items


@app.post("/api/operations", response_model=OperationCreated)
def register_operation(request: OperationRequest, hardware_key: str = DEFAULT_HARDWARE):
    """Register a matmul with a hardware profile."""
    profile = _get_profile(hardware_key)
    try:
        operation_id = profile.register_operation(
            request.kind,
            {"shape": request.lhs.shape, "dtype": request.lhs.dtype},
            {"shape": request.rhs.shape, "dtype": request.rhs.dtype},
            request.output_dtype,
        )
    except (UnsupportedOperationError, InvalidOperationError) as e:
        raise _http_error(e)
    return OperationCreated(
        id=operation_id,
        hardware=profile.spec.name,
        description=profile.get_operation(operation_id).describe(),
    )


@app.post("/api/operations/{operation_id}/metrics")
def operation_metrics(
    operation_id: str,
    request: Optional[MetricsRequest] = None,
    hardware_key: str = DEFAULT_HARDWARE,
):
    """Single-device metrics, plus multi-device metrics when requested."""
    request = request or MetricsRequest()
    profile = _get_profile(hardware_key)
    try:
        sharding = None
        if request.sharding is not None:
            sharding = ShardingConfig(
                num_devices=request.sharding.num_devices,
                lhs_shard_dim=request.sharding.lhs_shard_dim,
                rhs_shard_dim=request.sharding.rhs_shard_dim,
            )
        metrics = profile.performance_metrics(
            operation_id, multi_device=request.multi_device, sharding=sharding
        )
    except (NotFoundError, MissingConfigurationError, InvalidShardingError) as e:
        raise _http_error(e)
    return metrics.to_dict()


@app.get("/api/operations/{operation_id}/analysis")
def operation_analysis(operation_id: str, hardware_key: str = DEFAULT_HARDWARE):
    """Metrics, ordered recommendations and roofline chart data."""
    profile = _get_profile(hardware_key)
    try:
        analysis = profile.analyze(operation_id)
    except NotFoundError as e:
        raise _http_error(e)
    return analysis.to_dict()


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(
        level=os.environ.get("MMPERF_LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(app, host="0.0.0.0", port=int(os.environ.get("PORT", "8000")))
