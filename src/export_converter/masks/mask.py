from __future__ import annotations
from functools import reduce
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

from ..errors import DimensionMismatchError, MalformedInputError, OutOfRangeError
from .orientation import Axis, BoundaryPolicy, Orientation

WORD_BITS = 16
_WORD_MAX = 0xFFFF
_WIRE_DTYPE = np.dtype(">u2")

Dims = Tuple[int, int, int]
WordOp = Callable[[np.ndarray, np.ndarray], np.ndarray]


def _check_dims(dims: Sequence[int]) -> Dims:
    dims = tuple(int(d) for d in dims)
    if len(dims) != 3 or any(d <= 0 for d in dims):
        raise MalformedInputError(f"Grid dimensions must be three positive integers, got {dims}")
    if dims[0] % WORD_BITS:
        raise MalformedInputError(
            f"Grid x dimension {dims[0]} is not a multiple of the {WORD_BITS}-bit word width"
        )
    return dims


def _word_count(dims: Dims) -> int:
    x, y, z = dims
    return (x // WORD_BITS) * y * z


def _fill_like(boundary: np.ndarray, policy: BoundaryPolicy) -> np.ndarray:
    if policy is BoundaryPolicy.FILL_FALSE:
        return np.zeros_like(boundary)
    if policy is BoundaryPolicy.FILL_TRUE:
        return np.full_like(boundary, _WORD_MAX)
    if policy is BoundaryPolicy.COPY_BOUNDARY:
        return boundary
    raise ValueError(f"Unknown boundary policy: {policy}")


def _layers(blocks: np.ndarray, axis: int, start: int, stop: int) -> np.ndarray:
    index = [slice(None)] * blocks.ndim
    index[axis] = slice(start, stop)
    return blocks[tuple(index)]


def _shift_blocks(blocks: np.ndarray, axis: int, upwards: bool, policy: BoundaryPolicy) -> np.ndarray:
    # rows and layers are word aligned, so whole words move between them
    n = blocks.shape[axis]
    if upwards:
        retained = _layers(blocks, axis, 0, n - 1)
        fill = _fill_like(_layers(blocks, axis, 0, 1), policy)
        return np.concatenate((fill, retained), axis=axis)
    retained = _layers(blocks, axis, 1, n)
    fill = _fill_like(_layers(blocks, axis, n - 1, n), policy)
    return np.concatenate((retained, fill), axis=axis)


def _shift_rows(rows: np.ndarray, upwards: bool, policy: BoundaryPolicy) -> np.ndarray:
    """
    Shift every x-row of ``rows`` (shape (R, W), one row per line) by one bit.

    The fold runs over word positions and handles all rows at once. Its
    accumulator is (words emitted so far, carry bit per row); the carry
    leaving the last word of a row is dropped, so bits never cross rows.
    """
    columns = rows.T

    if upwards:
        # x grows towards the least significant bit; fold left to right
        boundary_bit = columns[0] >> 15
        incoming = _fill_like(boundary_bit, policy) & 1

        def step(acc, word):
            done, carry = acc
            return done + ((word >> 1) | (carry << 15),), word & 1

        shifted, _ = reduce(step, columns, ((), incoming))
    else:
        boundary_bit = columns[-1] & 1
        incoming = _fill_like(boundary_bit, policy) & 1

        def step(acc, word):
            done, carry = acc
            return ((word << 1) | carry,) + done, word >> 15

        shifted, _ = reduce(step, columns[::-1], ((), incoming))

    return np.stack(shifted, axis=1)


class Mask:
    """
    Immutable bit-packed boolean value per voxel of an (X, Y, Z) grid.

    Voxel (x, y, z) has flat index ``z*X*Y + y*X + x`` and lives in word
    ``index // 16`` at bit ``index % 16`` counted from the most significant
    bit. X must be a multiple of 16 so every x-row is a whole number of words.
    """

    __slots__ = ("_words", "_dims")

    def __init__(self, words: Sequence[int], dims: Sequence[int]):
        dims = _check_dims(dims)
        arr = np.asarray(words)
        if arr.size and arr.dtype.kind not in "iub":
            raise MalformedInputError(f"Mask words must be integers, got dtype {arr.dtype}")
        # signed 16-bit words are accepted and reinterpreted as unsigned
        if arr.size and (int(arr.min()) < -0x8000 or int(arr.max()) > _WORD_MAX):
            raise MalformedInputError(
                f"Mask words must fit in 16 bits, got range [{int(arr.min())}, {int(arr.max())}]"
            )
        arr = arr.astype(np.uint16).reshape(-1)
        expected = _word_count(dims)
        if arr.size != expected:
            raise MalformedInputError(
                f"Mask for grid {dims} needs {expected} words, got {arr.size}"
            )
        arr.setflags(write=False)
        self._words = arr
        self._dims = dims

    @classmethod
    def _wrap(cls, words: np.ndarray, dims: Dims) -> "Mask":
        # trusted constructor for results of mask operations
        obj = cls.__new__(cls)
        arr = np.ascontiguousarray(words, dtype=np.uint16).reshape(-1)
        arr.setflags(write=False)
        obj._words = arr
        obj._dims = dims
        return obj

    # construction ------------------------------------------------------------

    @classmethod
    def from_bytes(cls, payload: bytes, dims: Sequence[int], *, name: Optional[str] = None) -> "Mask":
        """Build a mask from big-endian 16-bit words, e.g. a byte array tag payload."""
        dims = _check_dims(dims)
        label = f"'{name}' " if name else ""
        expected = _word_count(dims) * 2
        if len(payload) != expected:
            raise MalformedInputError(
                f"Mask payload {label}has {len(payload)} bytes, "
                f"grid {dims} needs {expected}"
            )
        words = np.frombuffer(bytes(payload), dtype=_WIRE_DTYPE)
        return cls._wrap(words, dims)

    @classmethod
    def from_dense(cls, solid: np.ndarray) -> "Mask":
        """Pack a boolean array indexed ``[x, y, z]``."""
        solid = np.asarray(solid, dtype=bool)
        if solid.ndim != 3:
            raise MalformedInputError(f"Expected a 3D array, got shape {solid.shape}")
        dims = _check_dims(solid.shape)
        bits = solid.transpose(2, 1, 0).reshape(-1)
        return cls.from_bytes(np.packbits(bits).tobytes(), dims)

    @classmethod
    def full(cls, dims: Sequence[int], value: bool = False) -> "Mask":
        dims = _check_dims(dims)
        words = np.full(_word_count(dims), _WORD_MAX if value else 0, dtype=np.uint16)
        return cls._wrap(words, dims)

    # properties --------------------------------------------------------------

    @property
    def dims(self) -> Dims:
        return self._dims

    @property
    def words(self) -> np.ndarray:
        """Read-only view of the packed words."""
        return self._words

    @property
    def row_words(self) -> int:
        return self._dims[0] // WORD_BITS

    def _blocks(self) -> np.ndarray:
        x, y, z = self._dims
        return self._words.reshape(z, y, x // WORD_BITS)

    def _bits(self) -> np.ndarray:
        return np.unpackbits(self._words.astype(_WIRE_DTYPE).view(np.uint8))

    # lookup ------------------------------------------------------------------

    def get_bit(self, x: int, y: int, z: int) -> int:
        xd, yd, zd = self._dims
        if not (0 <= x < xd and 0 <= y < yd and 0 <= z < zd):
            raise OutOfRangeError(f"Voxel ({x}, {y}, {z}) outside grid {self._dims}")
        index = z * xd * yd + y * xd + x
        word = int(self._words[index // WORD_BITS])
        return (word >> (WORD_BITS - 1 - index % WORD_BITS)) & 1

    def get_boolean(self, x: int, y: int, z: int) -> bool:
        return self.get_bit(x, y, z) == 1

    # algebra -----------------------------------------------------------------

    def negate(self) -> "Mask":
        return self._wrap(~self._words, self._dims)

    def combine(self, other: "Mask", op: WordOp) -> "Mask":
        """
        Apply ``op`` word-wise to this mask and ``other``.

        ``op`` receives two read-only uint16 arrays and returns an array of the
        same shape; results are truncated to 16 bits.
        """
        if not isinstance(other, Mask):
            raise TypeError(f"Cannot combine Mask with {type(other).__name__}")
        if other._dims != self._dims:
            raise DimensionMismatchError(
                f"Cannot combine mask of grid {self._dims} with mask of grid {other._dims}"
            )
        result = np.asarray(op(self._words, other._words))
        if result.shape != self._words.shape:
            raise ValueError(f"Word operation returned shape {result.shape}, expected {self._words.shape}")
        return self._wrap(result.astype(np.uint16), self._dims)

    def or_(self, other: "Mask") -> "Mask":
        return self.combine(other, np.bitwise_or)

    def and_(self, other: "Mask") -> "Mask":
        return self.combine(other, np.bitwise_and)

    def nand(self, other: "Mask") -> "Mask":
        return self.combine(other, lambda a, b: ~(a & b))

    def xor(self, other: "Mask") -> "Mask":
        return self.combine(other, np.bitwise_xor)

    def iff(self, other: "Mask") -> "Mask":
        return self.xor(other).negate()

    __or__ = or_
    __and__ = and_
    __xor__ = xor
    __invert__ = negate

    # shifting ----------------------------------------------------------------

    def shift(self, orientation: Orientation, policy: BoundaryPolicy = BoundaryPolicy.FILL_FALSE) -> "Mask":
        """
        Move every voxel one step along ``orientation``.

        Each voxel of the result holds the value of its neighbour one step
        against the shift direction; the layer left vacated is filled
        according to ``policy``.
        """
        blocks = self._blocks()
        if orientation.axis is Axis.X:
            rows = blocks.reshape(-1, blocks.shape[2])
            shifted = _shift_rows(rows, orientation.upwards, policy)
        else:
            np_axis = 0 if orientation.axis is Axis.Z else 1
            shifted = _shift_blocks(blocks, np_axis, orientation.upwards, policy)
        return self._wrap(shifted, self._dims)

    # enumeration -------------------------------------------------------------

    def true_flag_indices(self) -> np.ndarray:
        """Flat indices of set voxels, in word order, most significant bit first."""
        return np.flatnonzero(self._bits())

    def true_flag_coordinates(self) -> np.ndarray:
        """(N, 3) array of (x, y, z) for every set voxel, in flat index order."""
        x, y, _ = self._dims
        idx = self.true_flag_indices()
        return np.stack((idx % x, (idx // x) % y, idx // (x * y)), axis=1)

    def true_flag_indices_within_rows(self) -> List[np.ndarray]:
        """Per x-row (ordered by z, then y), the x positions of set voxels."""
        x, y, z = self._dims
        rows = self._bits().reshape(z * y, x)
        return [np.flatnonzero(row) for row in rows]

    def count(self) -> int:
        return int(self._bits().sum())

    # conversion --------------------------------------------------------------

    def to_bytes(self) -> bytes:
        return self._words.astype(_WIRE_DTYPE).tobytes()

    def to_dense(self) -> np.ndarray:
        x, y, z = self._dims
        return self._bits().reshape(z, y, x).transpose(2, 1, 0).astype(bool)

    def __eq__(self, other):
        if not isinstance(other, Mask):
            return NotImplemented
        return self._dims == other._dims and np.array_equal(self._words, other._words)

    def __hash__(self):
        return hash((self._dims, self._words.tobytes()))

    def __repr__(self):
        return f"Mask(dims={self._dims}, set={self.count()})"
