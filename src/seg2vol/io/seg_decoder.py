"""DICOM SEG decoder: merge label frames into one labeled 3D volume."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import numpy as np

from seg2vol.core.errors import (
    FrameCountMismatch,
    InvalidSegmentationType,
    MissingGeometry,
    MissingRequiredElement,
    MultiOrientationUnsupported,
    MultiResolutionUnsupported,
    UnknownSegmentReference,
)
from seg2vol.core.positions import build_position_set, index_positions
from seg2vol.core.types import FrameInfo, Rgb, Segment, Spacing
from seg2vol.core.volume import Geometry, SegVolume
from seg2vol.io.dicom_accessor import ElementAccessor
from seg2vol.io.seg_reader import (
    PER_FRAME_FUNCTIONAL_GROUPS_SEQUENCE,
    SEGMENT_SEQUENCE,
    check_dicom_seg,
    get_dimension_organization,
    get_segment,
    get_segment_frame_info,
    get_shared_geometry,
)

logger = logging.getLogger(__name__)

COLUMNS = 0x00280011
ROWS = 0x00280010
NUMBER_OF_FRAMES = 0x00280008
SERIES_INSTANCE_UID = 0x0020000E


@dataclass
class LabelBuffer:
    """Zero-filled output buffer of ``channels * slice_size * slices`` elements."""

    slice_size: int
    number_of_slices: int
    channels: int = 1
    dtype: np.dtype = np.dtype(np.uint8)
    data: np.ndarray = field(init=False, repr=False)

    def __post_init__(self):
        self.data = np.zeros(
            self.channels * self.slice_size * self.number_of_slices, dtype=self.dtype
        )

    @property
    def bits_stored(self) -> int:
        return np.dtype(self.dtype).itemsize * 8

    def paint(self, slice_index: int, mask: np.ndarray, value: int | Rgb) -> None:
        """Write *value* at every pixel of slice *slice_index* where *mask* is set."""
        view = self.data.reshape(self.number_of_slices, self.slice_size, self.channels)
        if isinstance(value, Rgb):
            view[slice_index, mask] = value.as_tuple()
        else:
            view[slice_index, mask, 0] = value


def select_buffer_layout(segments: list[Segment]) -> tuple[int, np.dtype]:
    """Choose channel count and element type once all segments are known."""
    kinds = {segment.is_rgb for segment in segments}
    if len(kinds) > 1:
        raise InvalidSegmentationType(
            "Unsupported mix of grayscale and CIELab segment display values"
        )
    if True in kinds:
        return 3, np.dtype(np.uint8)
    max_value = max((int(s.display_value) for s in segments), default=0)
    if max_value <= np.iinfo(np.uint8).max:
        return 1, np.dtype(np.uint8)
    return 1, np.dtype(np.uint16)


def decode_seg(element: ElementAccessor, pixel_buffer: np.ndarray) -> SegVolume:
    """Decode a DICOM SEG object into a labeled volume.

    Args:
        element: Accessor over the SEG metadata tree.
        pixel_buffer: Flat unpacked pixel buffer, one value per pixel for
            every frame, frames in file order.

    Any inconsistency raises a SegDecodeError subclass; no partial volume
    is ever returned.
    """
    check_dicom_seg(element)

    pixel_buffer = np.asarray(pixel_buffer).ravel()

    columns = element.get_from_key(COLUMNS)
    if not columns:
        raise MissingRequiredElement("Missing or empty DICOM image number of columns")
    rows = element.get_from_key(ROWS)
    if not rows:
        raise MissingRequiredElement("Missing or empty DICOM image number of rows")
    slice_size = int(columns) * int(rows)

    frames = element.get_from_key(NUMBER_OF_FRAMES)
    frames = int(frames) if frames is not None else 1
    if frames < 1:
        raise FrameCountMismatch(f"Invalid number of frames: {frames}")
    if frames * slice_size != pixel_buffer.size:
        raise FrameCountMismatch(
            f"Buffer and number of frames are not equal: {frames} != "
            f"{pixel_buffer.size / slice_size}"
        )

    dimension = get_dimension_organization(element)

    seg_sequence = element.get_from_key(SEGMENT_SEQUENCE, True)
    if not seg_sequence:
        raise MissingRequiredElement("Missing or empty segment sequence")
    segments = [get_segment(item) for item in seg_sequence]
    channels, dtype = select_buffer_layout(segments)
    segments_by_number: dict[int, Segment] = {}
    for segment in segments:
        if segment.number in segments_by_number:
            logger.warning(
                f"Duplicate segment number {segment.number}, keeping the first definition"
            )
            continue
        segments_by_number[segment.number] = segment

    size = element.get_image_size()

    orientation, spacing = get_shared_geometry(element)

    per_frame_sequence = element.get_from_key(PER_FRAME_FUNCTIONAL_GROUPS_SEQUENCE, True)
    if not per_frame_sequence:
        raise MissingRequiredElement("Missing or empty per-frame functional groups sequence")
    if len(per_frame_sequence) != frames:
        raise FrameCountMismatch(
            f"Per-frame functional groups and number of frames are not equal: "
            f"{len(per_frame_sequence)} != {frames}"
        )
    frame_infos = [get_segment_frame_info(item) for item in per_frame_sequence]

    orientation, spacing = _agree_on_geometry(frame_infos, orientation, spacing)

    positions = build_position_set(
        (info.image_pos_pat for info in frame_infos), spacing.slice
    )
    slice_indices = index_positions(positions)
    number_of_slices = len(positions)
    logger.info(
        f"Decoding {frames} frame(s) of {len(segments)} segment(s) "
        f"into {number_of_slices} slice(s) of {columns}x{rows}"
    )

    labels = LabelBuffer(slice_size, number_of_slices, channels=channels, dtype=dtype)
    frame_pixels = pixel_buffer.reshape(frames, slice_size)
    for f, info in enumerate(frame_infos):
        segment = segments_by_number.get(info.ref_segment_number)
        if segment is None:
            raise UnknownSegmentReference(
                f"Frame {f} references unknown segment {info.ref_segment_number}"
            )
        labels.paint(slice_indices[info.image_pos_pat], frame_pixels[f] != 0, segment.display_value)

    geometry = Geometry(
        origin=positions[0],
        size=size,
        spacing=_volume_spacing(spacing),
    )
    for position in positions[1:]:
        geometry.append_origin(position)

    volume = SegVolume(
        geometry=geometry,
        buffer=labels.data,
        photometric_interpretation="RGB" if channels == 3 else "MONOCHROME2",
    )
    series_uid = element.get_from_key(SERIES_INSTANCE_UID)
    if series_uid is None:
        raise MissingRequiredElement("Missing DICOM series instance UID")
    volume.meta = {
        "Modality": "SEG",
        "SegmentationType": "BINARY",
        "DimensionOrganizationType": "3D",
        "DimensionOrganizations": dimension.organizations,
        "DimensionIndices": dimension.indices,
        "BitsStored": labels.bits_stored,
        "SeriesInstanceUID": str(series_uid),
        "ImageOrientationPatient": orientation,
        "segments": segments,
        "frame_infos": frame_infos,
    }
    return volume


def _agree_on_geometry(
    frame_infos: list[FrameInfo],
    orientation: tuple[float, ...] | None,
    spacing: Spacing | None,
) -> tuple[tuple[float, ...], Spacing]:
    """Resolve the single orientation and spacing shared by every frame."""
    for info in frame_infos:
        if info.image_orientation_patient is not None:
            if orientation is None:
                orientation = info.image_orientation_patient
            elif orientation != info.image_orientation_patient:
                raise MultiOrientationUnsupported("Unsupported multi orientation dicom seg.")
        if info.spacing is not None:
            if spacing is None:
                spacing = info.spacing
            elif spacing != info.spacing:
                raise MultiResolutionUnsupported("Unsupported multi resolution dicom seg.")

    if spacing is None:
        raise MissingGeometry("No spacing found for DICOM SEG")
    if orientation is None:
        raise MissingGeometry("No image orientation patient found for DICOM SEG")

    return orientation, spacing


def _volume_spacing(spacing: Spacing) -> tuple[float, float, float]:
    through = spacing.slice
    if through is None or through <= 0:
        through = 1.0
    return (spacing.row, spacing.column, through)
