from .geometry import Face, Mesh, Vertex, corner_offsets
from .io import save_mesh, save_obj
from .surface import (
    exposure_mask,
    from_cube_locations,
    surface_mesh_from_masks,
    surface_mesh_from_solidity_mask,
)

__all__ = [
    "Face",
    "Mesh",
    "Vertex",
    "corner_offsets",
    "save_mesh",
    "save_obj",
    "exposure_mask",
    "from_cube_locations",
    "surface_mesh_from_masks",
    "surface_mesh_from_solidity_mask",
]
