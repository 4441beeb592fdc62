from .io import decode, encode, load, save
from .tags import (
    MAX_DEPTH,
    Tag,
    TagType,
    byte_array_tag,
    byte_tag,
    compound_tag,
    double_tag,
    float_tag,
    int_array_tag,
    int_tag,
    list_tag,
    long_array_tag,
    long_tag,
    short_tag,
    string_tag,
)

__all__ = [
    "MAX_DEPTH",
    "decode",
    "encode",
    "load",
    "save",
    "Tag",
    "TagType",
    "byte_array_tag",
    "byte_tag",
    "compound_tag",
    "double_tag",
    "float_tag",
    "int_array_tag",
    "int_tag",
    "list_tag",
    "long_array_tag",
    "long_tag",
    "short_tag",
    "string_tag",
]
