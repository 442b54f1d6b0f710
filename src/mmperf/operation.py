"""
Matrix operation value object.

A MatrixOperation describes one out[B,F] = lhs[B,D] @ rhs[D,F] workload:
the two operand shapes, their element types and the output element type.
FLOPs, bytes and arithmetic intensity are derived on demand.
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Tuple, Union

from .errors import InvalidOperationError, UnsupportedOperationError
from .metrics import OperationBytes
from .precision import ElementType, bytes_per_element, parse_element_type
from .roofline_math import arithmetic_intensity, matmul_flops, tensor_bytes


class OperationKind(str, Enum):
    MATMUL = "matmul"


def parse_kind(value: Union[str, OperationKind]) -> OperationKind:
    if isinstance(value, OperationKind):
        return value
    try:
        return OperationKind(str(value).strip().lower())
    except ValueError:
        raise UnsupportedOperationError(
            f"Unsupported operation {value!r}: only matrix multiplication is supported"
        ) from None


@dataclass(frozen=True)
class OperandSpec:
    """Shape and element type of one operand."""
    shape: Tuple[int, int]
    dtype: ElementType

    def __post_init__(self):
        shape = tuple(self.shape)
        if len(shape) != 2:
            raise InvalidOperationError(f"Operand shape must be 2-D, got {shape}")
        for dim in shape:
            if isinstance(dim, bool) or not isinstance(dim, int) or dim <= 0:
                raise InvalidOperationError(
                    f"Operand dimensions must be positive integers, got {shape}"
                )
        object.__setattr__(self, "shape", shape)
        object.__setattr__(self, "dtype", parse_element_type(self.dtype))

    @classmethod
    def from_value(cls, value: Union["OperandSpec", Mapping[str, Any]]) -> "OperandSpec":
        """Build from an OperandSpec or a {"shape": ..., "dtype": ...} mapping."""
        if isinstance(value, cls):
            return value
        try:
            return cls(shape=tuple(value["shape"]), dtype=value["dtype"])
        except (KeyError, TypeError) as e:
            raise InvalidOperationError(f"Malformed operand descriptor {value!r}: {e}") from e

    @property
    def num_bytes(self) -> float:
        return tensor_bytes(self.shape, bytes_per_element(self.dtype))

    def with_dim(self, dim: int, size: int) -> "OperandSpec":
        """Copy with shape[dim] replaced by `size`."""
        shape = list(self.shape)
        shape[dim] = size
        return OperandSpec(shape=tuple(shape), dtype=self.dtype)


def _new_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class MatrixOperation:
    """
    Immutable matmul description.

    The inner dimensions must agree (lhs cols == rhs rows) unless
    `check_inner_dim` is False, which is only used for per-device shards
    where one side of the reduction axis has been split.
    """
    kind: OperationKind
    lhs: OperandSpec
    rhs: OperandSpec
    output_dtype: ElementType
    id: str = field(default_factory=_new_id)
    check_inner_dim: bool = field(default=True, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "kind", parse_kind(self.kind))
        object.__setattr__(self, "lhs", OperandSpec.from_value(self.lhs))
        object.__setattr__(self, "rhs", OperandSpec.from_value(self.rhs))
        object.__setattr__(self, "output_dtype", parse_element_type(self.output_dtype))
        if self.check_inner_dim and self.lhs.shape[1] != self.rhs.shape[0]:
            raise InvalidOperationError(
                f"Inner dimensions differ: lhs {self.lhs.shape} @ rhs {self.rhs.shape}"
            )

    # B, D, F as in out[B,F] = lhs[B,D] @ rhs[D,F]
    @property
    def B(self) -> int:
        return self.lhs.shape[0]

    @property
    def D(self) -> int:
        return self.lhs.shape[1]

    @property
    def F(self) -> int:
        return self.rhs.shape[1]

    def compute_flops(self) -> int:
        if self.kind is not OperationKind.MATMUL:
            raise UnsupportedOperationError(
                "Only matrix multiplication is supported currently"
            )
        return matmul_flops(self.B, self.D, self.F)

    def compute_bytes(self) -> OperationBytes:
        lhs_bytes = self.lhs.num_bytes
        rhs_bytes = self.rhs.num_bytes
        output_bytes = tensor_bytes((self.B, self.F), bytes_per_element(self.output_dtype))
        return OperationBytes(
            lhs_bytes=lhs_bytes,
            rhs_bytes=rhs_bytes,
            output_bytes=output_bytes,
            total_bytes=lhs_bytes + rhs_bytes + output_bytes,
        )

    def compute_arithmetic_intensity(self) -> float:
        return arithmetic_intensity(self.compute_flops(), self.compute_bytes().total_bytes)

    def describe(self) -> str:
        return (
            f"{self.kind.value} [{self.B}x{self.D}] {self.lhs.dtype.value} @ "
            f"[{self.rhs.shape[0]}x{self.F}] {self.rhs.dtype.value} -> {self.output_dtype.value}"
        )
