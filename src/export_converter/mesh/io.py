from __future__ import annotations
from pathlib import Path
from typing import Union

import logging

import numpy as np

from .geometry import Mesh

logger = logging.getLogger(__name__)


def save_obj(mesh: Mesh, path: Union[str, Path], *, scale: float = 1.0) -> None:
    """
    Write ``mesh`` as Wavefront OBJ text with quad faces.

    One ``v`` line per distinct corner (coordinates multiplied by ``scale``),
    then one ``f`` line per quad with 1-based vertex indices.
    """
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)

    vertices, faces = mesh.indexed()
    scaled = vertices.astype(np.float64) * float(scale)

    with p.open("w", encoding="utf-8") as f:
        for x, y, z in scaled.tolist():
            f.write(f"v {x} {y} {z}\n")
        for face in (faces + 1).tolist():
            f.write("f " + " ".join(str(i) for i in face) + "\n")

    logger.info(f"Wrote {vertices.shape[0]} vertices and {faces.shape[0]} faces to {p}")


def save_mesh(mesh: Mesh, path: Union[str, Path], *, scale: float = 1.0) -> None:
    """
    Save ``mesh`` by file suffix.

    ``.obj`` keeps quads; any other format trimesh can export is written
    from the triangulated mesh.
    """
    p = Path(path)
    if p.suffix.lower() == ".obj":
        save_obj(mesh, p, scale=scale)
        return

    p.parent.mkdir(parents=True, exist_ok=True)
    mesh.to_trimesh(scale=scale).export(str(p))
    logger.info(f"Exported {len(mesh)} quads as {p.suffix} to {p}")
