"""
Sharding configuration and per-device operation slicing.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional

from .errors import InvalidShardingError
from .operation import MatrixOperation

logger = logging.getLogger(__name__)

_VALID_DIMS = (0, 1, None)


@dataclass(frozen=True)
class ShardingConfig:
    """
    How an operation is split across devices.

    lhs_shard_dim / rhs_shard_dim name the operand axis split across
    `num_devices` (0 = rows, 1 = cols) or None for a replicated operand.
    Power-of-two device counts make the log2 step count exact.
    """
    num_devices: int
    lhs_shard_dim: Optional[int] = None
    rhs_shard_dim: Optional[int] = None

    def __post_init__(self):
        n = self.num_devices
        if isinstance(n, bool) or not isinstance(n, int) or n < 1:
            raise InvalidShardingError(f"num_devices must be a positive integer, got {n!r}")
        for name in ("lhs_shard_dim", "rhs_shard_dim"):
            dim = getattr(self, name)
            if isinstance(dim, bool) or dim not in _VALID_DIMS:
                raise InvalidShardingError(
                    f"{name} must be 0, 1 or None, got {dim!r}"
                )
        if n & (n - 1):
            logger.debug("num_devices=%d is not a power of two; step count is fractional", n)

    @property
    def reduces_output(self) -> bool:
        """True if the contracted axis (lhs cols / rhs rows) is split."""
        return self.lhs_shard_dim == 1 or self.rhs_shard_dim == 0

    @property
    def is_replicated(self) -> bool:
        return self.lhs_shard_dim is None and self.rhs_shard_dim is None


def shard_size(dim: int, num_devices: int) -> int:
    """Per-device extent; uneven remainders round up."""
    return math.ceil(dim / num_devices)


def shard_operation(operation: MatrixOperation, config: ShardingConfig) -> MatrixOperation:
    """
    Per-device copy of `operation` under `config`.

    The source operation is left untouched. The copy skips the inner
    dimension check because splitting only one side of the contracted
    axis is a legal (if lopsided) sharding.
    """
    lhs, rhs = operation.lhs, operation.rhs
    if config.lhs_shard_dim is not None:
        lhs = lhs.with_dim(
            config.lhs_shard_dim,
            shard_size(lhs.shape[config.lhs_shard_dim], config.num_devices),
        )
    if config.rhs_shard_dim is not None:
        rhs = rhs.with_dim(
            config.rhs_shard_dim,
            shard_size(rhs.shape[config.rhs_shard_dim], config.num_devices),
        )
    return MatrixOperation(
        kind=operation.kind,
        lhs=lhs,
        rhs=rhs,
        output_dtype=operation.output_dtype,
        check_inner_dim=False,
    )
