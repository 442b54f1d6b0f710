"""
Element types understood by the model and their storage width.
"""

from enum import Enum
from typing import Dict, Union

from .errors import InvalidOperationError


class ElementType(str, Enum):
    """Operand / output element type."""
    FP8 = "fp8"
    BF16 = "bf16"
    FP32 = "fp32"
    INT8 = "int8"
    INT4 = "int4"


# Bytes per stored element
BYTES_PER_ELEMENT: Dict[ElementType, float] = {
    ElementType.FP8: 1.0,
    ElementType.BF16: 2.0,
    ElementType.FP32: 4.0,
    ElementType.INT8: 1.0,
    ElementType.INT4: 0.5,
}


def parse_element_type(value: Union[str, ElementType]) -> ElementType:
    """Accept an ElementType or its (case-insensitive) string tag."""
    if isinstance(value, ElementType):
        return value
    try:
        return ElementType(str(value).strip().lower())
    except ValueError:
        supported = ", ".join(t.value for t in ElementType)
        raise InvalidOperationError(
            f"Unknown element type: {value!r} (supported: {supported})"
        ) from None


def bytes_per_element(dtype: Union[str, ElementType]) -> float:
    """Storage width of one element of `dtype`, in bytes."""
    return BYTES_PER_ELEMENT[parse_element_type(dtype)]
