"""Load DICOM SEG files (plain or zipped) into an accessor and pixel buffer."""

from __future__ import annotations

import io
import logging
import zipfile
from collections.abc import Callable
from pathlib import Path

import numpy as np
import pydicom
from pydicom.errors import InvalidDicomError

from seg2vol.core.volume import SegVolume
from seg2vol.io.dicom_accessor import DatasetAccessor
from seg2vol.io.seg_decoder import decode_seg
from seg2vol.io.seg_reader import check_dicom_seg

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int, int], None]
"""Callback(description, current, total) for load progress."""

_DICOM_EXTENSIONS = {"", ".dcm"}
_ZIP_EXTENSIONS = {".zip"}


def can_load_file(path: Path) -> bool:
    """Check if the loader can read *path*: no extension, .dcm or .zip."""
    suffix = Path(path).suffix.lower()
    return suffix in _DICOM_EXTENSIONS or suffix in _ZIP_EXTENSIONS


def load_seg_file(
    path: Path,
    progress: ProgressCallback | None = None,
) -> tuple[DatasetAccessor, np.ndarray]:
    """Read a SEG object from a DICOM file or zip archive.

    Returns the element accessor and the flat, unpacked pixel buffer.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Path not found: {path}")
    if not path.is_file():
        raise ValueError(f"Not a file: {path}")

    if path.suffix.lower() in _ZIP_EXTENSIONS or zipfile.is_zipfile(path):
        ds = _read_first_dicom_member(path, progress)
    else:
        try:
            ds = pydicom.dcmread(str(path))
        except InvalidDicomError as e:
            raise ValueError(f"Not a valid DICOM file: {path} ({e})") from e
        if progress:
            progress(f"Loaded {path.name}", 1, 1)

    accessor = DatasetAccessor(ds)
    # Compressed pixel data must be rejected before pixel_array decodes it
    check_dicom_seg(accessor)
    return accessor, _pixel_buffer(ds)


def decode_seg_file(path: Path, progress: ProgressCallback | None = None) -> SegVolume:
    """Load and decode a SEG file in one call."""
    accessor, buffer = load_seg_file(path, progress)
    return decode_seg(accessor, buffer)


def _read_first_dicom_member(path: Path, progress: ProgressCallback | None) -> pydicom.Dataset:
    """Return the first zip member that parses as a DICOM dataset."""
    with zipfile.ZipFile(path) as archive:
        members = [info for info in archive.infolist() if not info.is_dir()]
        n_members = len(members)
        for i, info in enumerate(members):
            if progress:
                progress(f"Unzipping {info.filename}...", i, n_members)
            if not can_load_file(Path(info.filename)):
                continue
            try:
                ds = pydicom.dcmread(io.BytesIO(archive.read(info)))
            except InvalidDicomError:
                logger.debug(f"Skipping non-DICOM zip member: {info.filename}")
                continue
            if progress:
                progress(f"Loaded {info.filename}", n_members, n_members)
            logger.info(f"Read {info.filename} from {path.name}")
            return ds
    raise ValueError(f"No valid DICOM file found in {path}")


def _pixel_buffer(ds: pydicom.Dataset) -> np.ndarray:
    if "PixelData" not in ds:
        raise ValueError("DICOM SEG has no pixel data")
    return np.asarray(ds.pixel_array).ravel()
