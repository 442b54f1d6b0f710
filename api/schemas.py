"""Pydantic models for the performance-model API."""

from pydantic import BaseModel
from typing import Optional, List, Dict


class OperandInput(BaseModel):
    """One matmul operand."""
    shape: List[int]
    dtype: str = "bf16"


class OperationRequest(BaseModel):
    """Matmul to register: out[B,F] = lhs[B,D] @ rhs[D,F]."""
    kind: str = "matmul"
    lhs: OperandInput
    rhs: OperandInput
    output_dtype: str = "bf16"


class OperationCreated(BaseModel):
    id: str
    hardware: str
    description: str


class ShardingInput(BaseModel):
    """Device count and the operand axes split across devices (0=rows, 1=cols)."""
    num_devices: int
    lhs_shard_dim: Optional[int] = None
    rhs_shard_dim: Optional[int] = None


class MetricsRequest(BaseModel):
    multi_device: bool = False
    sharding: Optional[ShardingInput] = None


class HardwareListItem(BaseModel):
    """Hardware registry entry."""
    key: str
    name: str
    device_type: str
    hbm_bandwidth: float
    tile_dims: List[int]
    peak_flops: Dict[str, float]
