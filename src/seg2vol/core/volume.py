"""Volume data structures for decoded DICOM SEG data."""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

Point3D = tuple[float, float, float]


@dataclass
class Geometry:
    """Volume geometry: first origin, size, spacing and one origin per slice."""

    origin: Point3D
    size: tuple[int, int]  # (columns, rows)
    spacing: tuple[float, float, float]  # (row, column, slice) in mm
    origins: list[Point3D] = field(default_factory=list)

    def __post_init__(self):
        if not self.origins:
            self.origins = [self.origin]

    def append_origin(self, origin: Point3D) -> None:
        self.origins.append(origin)

    @property
    def number_of_slices(self) -> int:
        return len(self.origins)

    @property
    def shape(self) -> tuple[int, int, int]:
        """Return (slices, rows, columns)."""
        return (self.number_of_slices, self.size[1], self.size[0])


@dataclass
class SegVolume:
    """Labeled voxel buffer assembled from a DICOM SEG object."""

    geometry: Geometry
    buffer: np.ndarray  # flat, channels * columns * rows * slices
    photometric_interpretation: str = "MONOCHROME2"
    meta: dict = field(default_factory=dict)

    @property
    def is_rgb(self) -> bool:
        return self.photometric_interpretation == "RGB"

    @property
    def channels(self) -> int:
        return 3 if self.is_rgb else 1

    @property
    def voxels(self) -> np.ndarray:
        """Buffer viewed as [Z, Y, X] or [Z, Y, X, 3] for RGB."""
        shape = self.geometry.shape
        if self.is_rgb:
            return self.buffer.reshape(*shape, 3)
        return self.buffer.reshape(shape)

    @property
    def spacing(self) -> tuple[float, float, float]:
        """Return (z, y, x) spacing in mm."""
        row, column, through = self.geometry.spacing
        return (through, row, column)

    @property
    def segments(self) -> list:
        return self.meta.get("segments", [])

    @property
    def frame_infos(self) -> list:
        return self.meta.get("frame_infos", [])
