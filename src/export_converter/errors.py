from __future__ import annotations


class ExportConverterError(Exception):
    pass


class MalformedInputError(ExportConverterError, ValueError):
    """Input bytes or payloads that do not describe a valid tag tree or mask."""


class UnknownTagTypeError(MalformedInputError):
    def __init__(self, tag_id: int, *, name: str | None = None):
        self.tag_id = tag_id
        self.name = name
        where = f" (tag '{name}')" if name is not None else ""
        super().__init__(f"Unknown tag type id: {tag_id}{where}")


class TruncatedDataError(MalformedInputError):
    def __init__(self, offset: int, needed: int, available: int):
        self.offset = offset
        self.needed = needed
        self.available = available
        super().__init__(
            f"Unexpected end of data at offset {offset}: "
            f"needed {needed} bytes, {available} available"
        )


class DimensionMismatchError(ExportConverterError, ValueError):
    pass


class OutOfRangeError(ExportConverterError, IndexError):
    pass


class MissingTagError(ExportConverterError, KeyError):
    def __init__(self, name: str, *, context: str = "compound"):
        self.name = name
        super().__init__(f"Tag '{name}' not found in {context}")

    def __str__(self) -> str:
        return str(self.args[0])
