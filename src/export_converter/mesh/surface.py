from __future__ import annotations
from functools import reduce

import logging

import numpy as np

from ..masks import BoundaryPolicy, Mask, Orientation
from .geometry import Mesh, corner_offsets

logger = logging.getLogger(__name__)


def exposure_mask(solidity: Mask, orientation: Orientation) -> Mask:
    """
    Solid voxels whose neighbour on the ``orientation`` side is not solid.

    Off-grid neighbours count as not solid.
    """
    neighbour = solidity.shift(orientation.opposite, BoundaryPolicy.FILL_FALSE)
    return solidity & ~neighbour


def _squares(voxels: np.ndarray, orientation: Orientation) -> np.ndarray:
    # (N, 3) voxel coordinates -> (N, 4, 3) quad corners
    return voxels[:, None, :] + corner_offsets(orientation)[None, :, :]


def surface_mesh_from_solidity_mask(solidity: Mask) -> Mesh:
    """
    Build the outward-facing boundary of the solid region of ``solidity``.

    Emits one unit quad per exposed voxel side, grouped by orientation
    (+X, -X, +Y, -Y, +Z, -Z) and ordered by voxel index within a group.
    """
    parts = []
    for orientation in Orientation:
        voxels = exposure_mask(solidity, orientation).true_flag_coordinates()
        logger.debug(f"{orientation.name}: {voxels.shape[0]} exposed faces")
        parts.append(_squares(voxels, orientation))
    mesh = Mesh(np.concatenate(parts))
    logger.info(f"Extracted {len(mesh)} surface faces from grid {solidity.dims}")
    return mesh


def surface_mesh_from_masks(*masks: Mask) -> Mesh:
    """Surface of the union of ``masks``; all masks must share one grid."""
    if not masks:
        raise ValueError("At least one mask is required")
    return surface_mesh_from_solidity_mask(reduce(Mask.or_, masks))


def from_cube_locations(mask: Mask) -> Mesh:
    """
    All six faces of every set voxel, interior faces included.

    Meant for debugging; real exports should use
    :func:`surface_mesh_from_solidity_mask`.
    """
    voxels = mask.true_flag_coordinates()
    mesh = Mesh(np.concatenate([_squares(voxels, o) for o in Orientation]))
    logger.info(f"Emitted {len(mesh)} cube faces for {voxels.shape[0]} voxels")
    return mesh
