"""Key-based access to DICOM elements over pydicom datasets."""

from __future__ import annotations

from typing import Any, Protocol

import pydicom
from pydicom.multival import MultiValue
from pydicom.tag import Tag
from pydicom.uid import UID

from seg2vol.core.errors import UnsupportedTransferSyntax


class ElementAccessor(Protocol):
    """Minimal element lookup needed by the SEG readers."""

    def get_from_key(self, key: Any, as_sequence: bool = False) -> Any: ...

    def get_image_size(self) -> tuple[int, int] | None: ...


class DatasetAccessor:
    """ElementAccessor over a pydicom Dataset (root or sequence item).

    Absent or empty elements read as None, multi-valued elements as lists
    and sequences as lists of DatasetAccessor.
    """

    def __init__(self, dataset: pydicom.Dataset):
        self.dataset = dataset

    def __contains__(self, key: Any) -> bool:
        return self._element(key) is not None

    def __repr__(self) -> str:
        return f"DatasetAccessor({len(self.dataset)} elements)"

    def get_from_key(self, key: Any, as_sequence: bool = False) -> Any:
        elem = self._element(key)
        if elem is None:
            return None

        if elem.VR == "SQ":
            return [DatasetAccessor(item) for item in elem.value]
        if as_sequence:
            raise ValueError(f"Element {elem.tag} is not a sequence (VR {elem.VR})")

        value = elem.value
        if value is None or value == "" or value == b"":
            return None
        if isinstance(value, (MultiValue, list)):
            return list(value)
        return value

    def get_image_size(self) -> tuple[int, int] | None:
        columns = self.get_from_key(0x00280011)
        rows = self.get_from_key(0x00280010)
        if columns is None or rows is None:
            return None
        return (int(columns), int(rows))

    def _element(self, key: Any):
        tag = Tag(key)
        if tag.group == 0x0002:
            file_meta = getattr(self.dataset, "file_meta", None)
            if file_meta is not None and tag in file_meta:
                return file_meta[tag]
        if tag in self.dataset:
            return self.dataset[tag]
        return None


def clean_string(value: Any) -> str:
    """Strip surrounding blanks and NUL padding from a DICOM string value."""
    if value is None:
        return ""
    if isinstance(value, bytes):
        value = value.decode("ascii", errors="replace")
    return str(value).strip(" \x00")


def format_tag(value: Any) -> str:
    """Format a tag value as ``(gggg,eeee)``."""
    tag = Tag(value)
    return f"({tag.group:04X},{tag.element:04X})"


def decompression_name(syntax: str) -> str | None:
    """Name of the compression algorithm of a transfer syntax, None if native."""
    uid = UID(clean_string(syntax))
    try:
        compressed = uid.is_compressed
    except ValueError:
        raise UnsupportedTransferSyntax(f"Unknown transfer syntax: {uid}")
    if not compressed:
        return None
    return uid.name or str(uid)
