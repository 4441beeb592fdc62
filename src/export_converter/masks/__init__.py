from .mask import Mask, WORD_BITS
from .orientation import Axis, BoundaryPolicy, Orientation

__all__ = [
    "Mask",
    "WORD_BITS",
    "Axis",
    "BoundaryPolicy",
    "Orientation",
]
