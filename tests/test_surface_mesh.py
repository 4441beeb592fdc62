import numpy as np
import pytest
import trimesh

from export_converter.errors import DimensionMismatchError
from export_converter.masks import Mask, Orientation
from export_converter.mesh import (
    Face,
    Mesh,
    Vertex,
    exposure_mask,
    from_cube_locations,
    save_mesh,
    save_obj,
    surface_mesh_from_masks,
    surface_mesh_from_solidity_mask,
)


def _mask_with(voxels, dims=(16, 3, 3)):
    dense = np.zeros(dims, dtype=bool)
    for v in voxels:
        dense[v] = True
    return Mask.from_dense(dense)


def test_single_voxel_has_six_faces():
    mesh = surface_mesh_from_solidity_mask(_mask_with([(1, 1, 1)]))
    assert len(mesh) == 6

    normals = sorted(face.normal for face in mesh.faces)
    assert normals == sorted(o.normal for o in Orientation)

    corners = mesh.quads.reshape(-1, 3)
    assert set(np.unique(corners).tolist()) == {1, 2}


def test_face_anchoring_and_winding():
    mesh = surface_mesh_from_solidity_mask(_mask_with([(1, 1, 1)]))
    faces = {face.normal: face for face in mesh.faces}
    assert faces[(1, 0, 0)].vertices == (
        Vertex(2, 1, 1), Vertex(2, 2, 1), Vertex(2, 2, 2), Vertex(2, 1, 2)
    )
    assert faces[(-1, 0, 0)].vertices == (
        Vertex(1, 1, 1), Vertex(1, 1, 2), Vertex(1, 2, 2), Vertex(1, 2, 1)
    )
    assert faces[(0, 0, 1)].vertices == (
        Vertex(1, 1, 2), Vertex(2, 1, 2), Vertex(2, 2, 2), Vertex(1, 2, 2)
    )


@pytest.mark.parametrize("orientation", list(Orientation))
def test_face_square_normal(orientation):
    face = Face.square(orientation, (4, 5, 6))
    assert face.normal == orientation.normal
    assert face.vertices[0] == Vertex(4, 5, 6).perturbed(
        [orientation.axis] if orientation.upwards else []
    )


def test_voxel_on_grid_boundary_is_closed():
    mesh = surface_mesh_from_solidity_mask(_mask_with([(0, 0, 0)]))
    assert len(mesh) == 6
    mesh = surface_mesh_from_solidity_mask(_mask_with([(15, 2, 2)]))
    assert len(mesh) == 6


def test_shared_face_removed_and_corners_deduplicated():
    mesh = surface_mesh_from_solidity_mask(_mask_with([(1, 1, 1), (2, 1, 1)]))
    assert len(mesh) == 10

    for face in mesh.faces:
        assert not all(v.x == 2 for v in face.vertices)

    vertices, faces = mesh.indexed()
    assert vertices.shape == (12, 3)
    assert len({tuple(v) for v in vertices.tolist()}) == 12
    assert faces.shape == (10, 4)
    np.testing.assert_array_equal(vertices[faces], mesh.quads)


def test_exposure_mask():
    solid = _mask_with([(1, 1, 1), (2, 1, 1)])
    assert exposure_mask(solid, Orientation.POS_X).true_flag_coordinates().tolist() == [[2, 1, 1]]
    assert exposure_mask(solid, Orientation.NEG_X).true_flag_coordinates().tolist() == [[1, 1, 1]]
    assert exposure_mask(solid, Orientation.POS_Y).count() == 2


def test_box_surface_is_watertight():
    dense = np.zeros((16, 4, 3), dtype=bool)
    dense[2:6, 1:3, 0:2] = True
    mesh = surface_mesh_from_solidity_mask(Mask.from_dense(dense))
    assert len(mesh) == 2 * (4 * 2 + 2 * 2 + 2 * 4)

    tm = mesh.to_trimesh()
    assert tm.is_watertight
    assert tm.is_winding_consistent
    assert abs(tm.volume - 16.0) < 1e-9


def test_union_of_masks():
    a = _mask_with([(1, 1, 1)])
    b = _mask_with([(2, 1, 1)])
    assert surface_mesh_from_masks(a, b) == surface_mesh_from_solidity_mask(a | b)
    with pytest.raises(DimensionMismatchError):
        surface_mesh_from_masks(a, _mask_with([(1, 1, 1)], dims=(16, 3, 4)))
    with pytest.raises(ValueError):
        surface_mesh_from_masks()


def test_from_cube_locations_keeps_interior_faces():
    mesh = from_cube_locations(_mask_with([(1, 1, 1), (2, 1, 1)]))
    assert len(mesh) == 12
    vertices, _ = mesh.indexed()
    assert vertices.shape == (12, 3)


def test_empty_mask_gives_empty_mesh():
    mesh = surface_mesh_from_solidity_mask(Mask.full((16, 2, 2)))
    assert len(mesh) == 0
    vertices, faces = mesh.indexed()
    assert vertices.shape == (0, 3)
    assert faces.shape == (0, 4)


def test_mesh_from_faces_and_concatenation():
    mesh = surface_mesh_from_solidity_mask(_mask_with([(1, 1, 1)]))
    assert Mesh.from_faces(mesh.faces) == mesh
    doubled = mesh + mesh
    assert len(doubled) == 12
    assert doubled.indexed()[0].shape == (8, 3)


def test_save_obj(tmp_path):
    mesh = surface_mesh_from_solidity_mask(_mask_with([(1, 1, 1)]))
    path = tmp_path / "out" / "voxel.obj"
    save_obj(mesh, path, scale=0.5)

    lines = path.read_text().splitlines()
    v_lines = [ln for ln in lines if ln.startswith("v ")]
    f_lines = [ln for ln in lines if ln.startswith("f ")]
    assert len(v_lines) == 8
    assert len(f_lines) == 6
    assert lines[:8] == v_lines

    coords = {float(c) for ln in v_lines for c in ln.split()[1:]}
    assert coords == {0.5, 1.0}
    indices = [int(i) for ln in f_lines for i in ln.split()[1:]]
    assert min(indices) == 1 and max(indices) == 8

    # first vertex emitted is the first corner of the first face
    first = [float(c) for c in v_lines[0].split()[1:]]
    assert first == [c * 0.5 for c in mesh.quads[0, 0].tolist()]


def test_save_mesh_other_formats(tmp_path):
    mesh = surface_mesh_from_solidity_mask(_mask_with([(1, 1, 1)]))
    path = tmp_path / "voxel.stl"
    save_mesh(mesh, path, scale=2.0)

    loaded = trimesh.load(str(path))
    assert len(loaded.faces) == 12
    np.testing.assert_allclose(loaded.bounds, [[2.0, 2.0, 2.0], [4.0, 4.0, 4.0]])
