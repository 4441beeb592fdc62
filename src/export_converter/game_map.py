from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

import logging

from . import nbt
from .errors import MalformedInputError, MissingTagError
from .masks import Mask
from .nbt import Tag, TagType

logger = logging.getLogger(__name__)

WALKABLE = "walkableMask"
PASSABLE_FLOW_DOWN = "passableFlowDownMask"
MAGMA = "magmaMask"
OPEN_TILES = "openTileMask"

MASK_NAMES = (WALKABLE, PASSABLE_FLOW_DOWN, MAGMA, OPEN_TILES)
_DIM_TAG_TYPES = (TagType.BYTE, TagType.SHORT, TagType.INT)


def _read_dim(root: Tag, name: str) -> int:
    tag = root[name]
    if tag.kind not in _DIM_TAG_TYPES:
        raise MalformedInputError(
            f"Dimension tag '{name}' is a {tag.type_name}, expected an integer tag"
        )
    # the exporter writes dimensions as unsigned bytes
    return tag.value & 0xFF if tag.kind == TagType.BYTE else tag.value


def mask_from_tag(tag: Tag, dims: Tuple[int, int, int]) -> Mask:
    if tag.kind != TagType.BYTE_ARRAY:
        raise MalformedInputError(f"Mask tag '{tag.name}' is a {tag.type_name}, expected Byte Array")
    return Mask.from_bytes(tag.value, dims, name=tag.name)


@dataclass
class GameMap:
    """Grid dimensions and named masks recovered from one map export."""
    dims: Tuple[int, int, int]
    masks: Dict[str, Mask] = field(default_factory=dict)
    root: Optional[Tag] = None

    @classmethod
    def from_compound(cls, root: Tag) -> "GameMap":
        if root.kind != TagType.COMPOUND:
            raise MalformedInputError(f"Map root must be a Compound tag, got {root.type_name}")

        dims = (_read_dim(root, "x"), _read_dim(root, "y"), _read_dim(root, "z"))
        masks = {
            name: mask_from_tag(root[name], dims)
            for name in MASK_NAMES
            if name in root
        }
        if not masks:
            raise MissingTagError(" | ".join(MASK_NAMES), context=f"map export '{root.name}'")

        logger.info(f"Loaded map {dims} with masks: {', '.join(masks)}")
        return cls(dims=dims, masks=masks, root=root)

    def mask(self, name: str) -> Mask:
        """Named mask; byte arrays outside the known names are decoded on demand."""
        if name in self.masks:
            return self.masks[name]
        if self.root is None:
            raise MissingTagError(name, context="map masks")
        return mask_from_tag(self.root[name], self.dims)

    def open_mask(self, *, exclude_magma: bool = True) -> Mask:
        """
        Tiles that are walkable or vertically passable.

        Uses the exporter's pre-combined open mask when present. Magma tiles
        are removed when the export has a magma mask and ``exclude_magma`` is set.
        """
        if OPEN_TILES in self.masks:
            open_tiles = self.masks[OPEN_TILES]
        else:
            open_tiles = self.mask(WALKABLE) | self.mask(PASSABLE_FLOW_DOWN)

        if exclude_magma and MAGMA in self.masks:
            open_tiles = open_tiles & ~self.masks[MAGMA]
        return open_tiles


def load_game_map(path: Union[str, Path]) -> GameMap:
    return GameMap.from_compound(nbt.load(path))
