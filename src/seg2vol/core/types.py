"""Core data types for the seg2vol decoder."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Union

from seg2vol.core.errors import MissingGeometry


@dataclass(frozen=True)
class Rgb:
    """8-bit sRGB display color."""

    r: int
    g: int
    b: int

    def as_tuple(self) -> tuple[int, int, int]:
        return (self.r, self.g, self.b)


DisplayValue = Union[int, Rgb]


@dataclass(frozen=True)
class Segment:
    """One labeled structure from the Segment Sequence (0062,0002)."""

    number: int
    label: str
    algorithm_type: str
    display_value: DisplayValue
    algorithm_name: str | None = None

    @property
    def is_rgb(self) -> bool:
        return isinstance(self.display_value, Rgb)


@dataclass(frozen=True)
class DimensionIndex:
    """Single item of the Dimension Index Sequence (0020,9222)."""

    organization: str
    pointer: str  # "(gggg,eeee)"
    label: str | None = None


@dataclass(frozen=True)
class Dimension:
    """Dimension organization UIDs and their index descriptors."""

    organizations: list[str]
    indices: list[DimensionIndex] = field(default_factory=list)


@dataclass(frozen=True)
class Spacing:
    """Pixel spacing: row, column and optional through-plane spacing (mm)."""

    values: tuple[float, ...]

    def __post_init__(self):
        if len(self.values) not in (2, 3):
            raise MissingGeometry(f"Spacing needs 2 or 3 components, got {len(self.values)}")
        if any(v <= 0 for v in self.values):
            raise MissingGeometry(f"Spacing components must be positive, got {self.values}")

    def get(self, index: int) -> float | None:
        if index < len(self.values):
            return self.values[index]
        return None

    @property
    def row(self) -> float:
        return self.values[0]

    @property
    def column(self) -> float:
        return self.values[1]

    @property
    def slice(self) -> float | None:
        return self.get(2)


@dataclass(frozen=True)
class SourceImage:
    """Referenced source image of a derivation image item."""

    referenced_sop_class_uid: str | None = None
    referenced_sop_instance_uid: str | None = None


@dataclass
class FrameInfo:
    """Geometry and segment reference of one frame of the SEG object."""

    dim_index: list[int]
    image_pos_pat: tuple[float, float, float]
    ref_segment_number: int
    derivation_images: list[list[SourceImage]] = field(default_factory=list)
    image_orientation_patient: tuple[float, ...] | None = None  # 6 direction cosines
    spacing: Spacing | None = None


@dataclass
class SegConfig:
    """Configuration for the decode pipeline (from CLI flags)."""

    input_path: Path
    output: Path | None = None
    format: str = "npz"  # "npz", "stl", "obj"
    list_segments: bool = False
    verbose: bool = False
