from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable, NamedTuple, Tuple

import numpy as np
import trimesh

from ..masks.orientation import Axis, Orientation


class Vertex(NamedTuple):
    x: int
    y: int
    z: int

    def perturbed(self, axes: Iterable[Axis]) -> "Vertex":
        """Move one unit along each of ``axes``."""
        x, y, z = self
        for axis in axes:
            ux, uy, uz = axis.unit
            x, y, z = x + ux, y + uy, z + uz
        return Vertex(x, y, z)


def corner_offsets(orientation: Orientation) -> np.ndarray:
    """
    (4, 3) corner offsets, relative to a voxel's min corner, of the unit
    square on the ``orientation`` side of that voxel.

    Corners go base, base+a, base+a+b, base+b with (a, b) the perpendicular
    axes in cyclic order, swapped for decreasing orientations, so the
    winding is counter-clockwise seen from outside.
    """
    a, b = orientation.axis.perpendicular
    if not orientation.upwards:
        a, b = b, a
    ua = np.array(a.unit, dtype=np.int64)
    ub = np.array(b.unit, dtype=np.int64)
    if orientation.upwards:
        base = np.array(orientation.axis.unit, dtype=np.int64)
    else:
        base = np.zeros(3, dtype=np.int64)
    return np.stack((base, base + ua, base + ua + ub, base + ub))


class Face(NamedTuple):
    vertices: Tuple[Vertex, Vertex, Vertex, Vertex]

    @classmethod
    def square(cls, orientation: Orientation, voxel: Tuple[int, int, int]) -> "Face":
        """Unit square on the ``orientation`` side of ``voxel``."""
        corners = np.asarray(voxel, dtype=np.int64) + corner_offsets(orientation)
        return cls(tuple(Vertex(*c) for c in corners.tolist()))

    @property
    def normal(self) -> Tuple[int, int, int]:
        v0, v1, _, v3 = (np.asarray(v) for v in self.vertices)
        return tuple(int(c) for c in np.cross(v1 - v0, v3 - v0))


def _freeze(quads: np.ndarray) -> np.ndarray:
    arr = np.array(quads, dtype=np.int64).reshape(-1, 4, 3)
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True, eq=False)
class Mesh:
    """Sequence of unit quads stored as an (F, 4, 3) integer corner array."""
    quads: np.ndarray

    def __post_init__(self):
        object.__setattr__(self, "quads", _freeze(self.quads))

    @classmethod
    def from_faces(cls, faces: Iterable[Face]) -> "Mesh":
        return cls(np.array([f.vertices for f in faces], dtype=np.int64).reshape(-1, 4, 3))

    @property
    def faces(self) -> Tuple[Face, ...]:
        return tuple(Face(tuple(Vertex(*v) for v in quad)) for quad in self.quads.tolist())

    def __len__(self) -> int:
        return self.quads.shape[0]

    def __add__(self, other: "Mesh") -> "Mesh":
        if not isinstance(other, Mesh):
            return NotImplemented
        return Mesh(np.concatenate((self.quads, other.quads)))

    def __eq__(self, other):
        if not isinstance(other, Mesh):
            return NotImplemented
        return np.array_equal(self.quads, other.quads)

    __hash__ = None

    def indexed(self) -> Tuple[np.ndarray, np.ndarray]:
        """
        Deduplicate corners by value.

        Returns
        -------
        vertices : (V, 3) int array, in order of first appearance
        faces : (F, 4) int array of 0-based indices into ``vertices``
        """
        flat = self.quads.reshape(-1, 3)
        if flat.shape[0] == 0:
            return np.zeros((0, 3), dtype=np.int64), np.zeros((0, 4), dtype=np.int64)

        unique, first, inverse = np.unique(flat, axis=0, return_index=True, return_inverse=True)
        order = np.argsort(first, kind="stable")
        rank = np.empty_like(order)
        rank[order] = np.arange(order.shape[0])
        faces = rank[inverse.reshape(-1)].reshape(-1, 4)
        return unique[order], faces

    def to_trimesh(self, scale: float = 1.0) -> trimesh.Trimesh:
        """Triangulated copy (two triangles per quad, winding preserved)."""
        vertices, faces = self.indexed()
        triangles = np.concatenate((faces[:, [0, 1, 2]], faces[:, [0, 2, 3]]))
        return trimesh.Trimesh(
            vertices=vertices.astype(np.float64) * float(scale),
            faces=triangles,
            process=False,
        )
