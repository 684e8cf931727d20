"""Display color conversion for segment CIELab values."""

from __future__ import annotations

import numpy as np
from skimage.color import lab2rgb

from seg2vol.core.errors import MissingRequiredElement
from seg2vol.core.types import Rgb

_UINT16_MAX = 65535.0


def uint_lab_to_lab(l: int, a: int, b: int) -> tuple[float, float, float]:
    """Decode DICOM unsigned CIELab (0..65535 per component) to native Lab.

    L is scaled to [0, 100], a and b to [-128, 127].
    """
    return (
        100.0 * l / _UINT16_MAX,
        255.0 * a / _UINT16_MAX - 128.0,
        255.0 * b / _UINT16_MAX - 128.0,
    )


def cielab_to_srgb(lab: tuple[float, float, float]) -> Rgb:
    """Convert a D65 CIELab color to 8-bit sRGB."""
    rgb = lab2rgb(np.asarray(lab, dtype=np.float64).reshape(1, 1, 3))[0, 0]
    r, g, b = (int(v) for v in np.clip(np.round(rgb * 255.0), 0, 255))
    return Rgb(r, g, b)


def dicom_lab_to_rgb(values) -> Rgb:
    """Convert a Recommended Display CIELab Value (0062,000D) to sRGB."""
    if not isinstance(values, (list, tuple)) or len(values) != 3:
        raise MissingRequiredElement(f"CIELab display value needs 3 components, got {values!r}")
    return cielab_to_srgb(uint_lab_to_lab(*(int(v) for v in values)))


def is_equal_rgb(c1: Rgb | None, c2: Rgb | None) -> bool:
    if c1 is None or c2 is None:
        return False
    return c1.r == c2.r and c1.g == c2.g and c1.b == c2.b
