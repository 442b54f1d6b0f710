"""
Advisory messages shared by the accelerator profiles.

Each profile assembles its own ordered rule list from these helpers;
the wording of a given rule is identical across profiles.
"""

from typing import Iterable, List

from .operation import MatrixOperation
from .precision import ElementType

NO_RECOMMENDATIONS = "No recommendations!"

MEMORY_BOUND = (
    "Operation is memory-bound. Consider increasing batch size to improve arithmetic intensity."
)

# Below this fraction of useful tile work, padding is worth suggesting
PADDING_THRESHOLD = 0.9


def both_operands(operation: MatrixOperation, dtype: ElementType) -> bool:
    return operation.lhs.dtype is dtype and operation.rhs.dtype is dtype


def needs_padding(utilizations: Iterable[float]) -> bool:
    return any(u < PADDING_THRESHOLD for u in utilizations)


def padding_advice(unit_name: str, tile_label: str) -> str:
    return (
        f"Consider padding matrix dimensions to multiples of {unit_name} dimensions "
        f"({tile_label}) to improve hardware utilization."
    )


def batch_size_advice(operation: MatrixOperation, threshold: int, device: str) -> List[str]:
    """Minimum compute-bound batch for bf16 activations."""
    if operation.B < threshold and operation.lhs.dtype is ElementType.BF16:
        return [
            f"For bf16 matmul on {device}, batch size should be at least "
            f"{threshold} to be compute-bound."
        ]
    return []


def finalize(recommendations: List[str]) -> List[str]:
    return recommendations or [NO_RECOMMENDATIONS]
