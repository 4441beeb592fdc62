from __future__ import annotations
from enum import Enum
from typing import Tuple


class Axis(Enum):
    X = 0
    Y = 1
    Z = 2

    @property
    def unit(self) -> Tuple[int, int, int]:
        out = [0, 0, 0]
        out[self.value] = 1
        return tuple(out)

    @property
    def perpendicular(self) -> Tuple["Axis", "Axis"]:
        """The two other axes in cyclic order: X -> (Y, Z), Y -> (Z, X), Z -> (X, Y)."""
        return Axis((self.value + 1) % 3), Axis((self.value + 2) % 3)


class Orientation(Enum):
    POS_X = (Axis.X, True)
    NEG_X = (Axis.X, False)
    POS_Y = (Axis.Y, True)
    NEG_Y = (Axis.Y, False)
    POS_Z = (Axis.Z, True)
    NEG_Z = (Axis.Z, False)

    @property
    def axis(self) -> Axis:
        return self.value[0]

    @property
    def upwards(self) -> bool:
        return self.value[1]

    @property
    def opposite(self) -> "Orientation":
        return Orientation((self.axis, not self.upwards))

    @property
    def normal(self) -> Tuple[int, int, int]:
        sign = 1 if self.upwards else -1
        return tuple(sign * c for c in self.axis.unit)


class BoundaryPolicy(Enum):
    """How the layer vacated by a shift is filled."""
    FILL_FALSE = "false"
    FILL_TRUE = "true"
    COPY_BOUNDARY = "copy"
