import numpy as np
import pytest

from export_converter import nbt
from export_converter.errors import MalformedInputError, MissingTagError
from export_converter.game_map import GameMap, load_game_map
from export_converter.masks import Mask
from export_converter.mesh import save_obj, surface_mesh_from_solidity_mask
from export_converter.nbt import byte_array_tag, byte_tag, compound_tag, string_tag

DIMS = (16, 2, 2)


def _dense(seed):
    rng = np.random.default_rng(seed)
    return rng.random(DIMS) < 0.4


def _export(masks, dims=(16, 2, 2)):
    children = [byte_tag("x", dims[0]), byte_tag("y", dims[1]), byte_tag("z", dims[2])]
    children += [byte_array_tag(name, mask.to_bytes()) for name, mask in masks.items()]
    return compound_tag("root", children)


def test_load_game_map(tmp_path):
    walkable = Mask.from_dense(_dense(1))
    passable = Mask.from_dense(_dense(2))
    magma = Mask.from_dense(_dense(3))
    path = tmp_path / "export.nbt"
    nbt.save(path, _export({
        "walkableMask": walkable,
        "passableFlowDownMask": passable,
        "magmaMask": magma,
    }))

    game_map = load_game_map(path)
    assert game_map.dims == DIMS
    assert set(game_map.masks) == {"walkableMask", "passableFlowDownMask", "magmaMask"}
    assert game_map.masks["walkableMask"] == walkable

    assert game_map.open_mask() == (walkable | passable) & ~magma
    assert game_map.open_mask(exclude_magma=False) == walkable | passable


def test_open_tile_mask_preferred():
    open_tiles = Mask.from_dense(_dense(4))
    game_map = GameMap.from_compound(_export({"openTileMask": open_tiles}))
    assert game_map.open_mask() == open_tiles


def test_open_mask_needs_source_masks():
    game_map = GameMap.from_compound(_export({"walkableMask": Mask.full(DIMS)}))
    with pytest.raises(MissingTagError):
        game_map.open_mask()


def test_dimensions_are_unsigned_bytes():
    # 128 does not fit in a signed byte and is stored as -128
    root = compound_tag("root", [
        byte_tag("x", -128), byte_tag("y", 1), byte_tag("z", 1),
        byte_array_tag("walkableMask", bytes(16)),
    ])
    assert GameMap.from_compound(root).dims == (128, 1, 1)


def test_extra_byte_arrays_on_demand():
    custom = Mask.from_dense(_dense(5))
    root = _export({"walkableMask": Mask.full(DIMS), "customMask": custom})
    game_map = GameMap.from_compound(root)
    assert "customMask" not in game_map.masks
    assert game_map.mask("customMask") == custom
    with pytest.raises(MissingTagError):
        game_map.mask("nope")


def test_missing_dimension():
    root = compound_tag("root", [byte_tag("x", 16), byte_tag("y", 2)])
    with pytest.raises(MissingTagError):
        GameMap.from_compound(root)


def test_no_masks():
    with pytest.raises(MissingTagError):
        GameMap.from_compound(_export({}))


def test_wrong_types():
    root = compound_tag("root", [string_tag("x", "16"), byte_tag("y", 2), byte_tag("z", 2)])
    with pytest.raises(MalformedInputError):
        GameMap.from_compound(root)

    root = _export({}).value + (byte_tag("walkableMask", 1),)
    with pytest.raises(MalformedInputError):
        GameMap.from_compound(compound_tag("root", root))


def test_mask_size_mismatch():
    root = _export({"walkableMask": Mask.full((16, 2, 3))})
    with pytest.raises(MalformedInputError):
        GameMap.from_compound(root)


def test_export_to_obj(tmp_path):
    dense = np.zeros(DIMS, dtype=bool)
    dense[3:5, 0, 0] = True
    path = tmp_path / "export.nbt"
    nbt.save(path, _export({"openTileMask": Mask.from_dense(dense)}))

    game_map = load_game_map(path)
    mesh = surface_mesh_from_solidity_mask(game_map.open_mask())
    out = tmp_path / "export.obj"
    save_obj(mesh, out, scale=1.0 / game_map.dims[0])

    lines = out.read_text().splitlines()
    assert sum(ln.startswith("v ") for ln in lines) == 12
    assert sum(ln.startswith("f ") for ln in lines) == 10
