"""DICOM SEG metadata readers.

Validate the supported subset of the Segmentation IOD and read segments,
dimension organization, pixel measures and per-frame functional groups
into plain records.
"""

from __future__ import annotations

import logging
from typing import Any

from seg2vol.core.color import dicom_lab_to_rgb, is_equal_rgb
from seg2vol.core.errors import (
    InvalidSegmentationType,
    MissingRequiredElement,
    UnsupportedDimensionOrganization,
    UnsupportedTransferSyntax,
)
from seg2vol.core.types import (
    Dimension,
    DimensionIndex,
    FrameInfo,
    Rgb,
    Segment,
    SourceImage,
    Spacing,
)
from seg2vol.io.dicom_accessor import (
    ElementAccessor,
    clean_string,
    decompression_name,
    format_tag,
)

logger = logging.getLogger(__name__)

# Root
TRANSFER_SYNTAX_UID = 0x00020010
SEGMENTATION_TYPE = 0x00620001
DIMENSION_ORGANIZATION_TYPE = 0x00209311
DIMENSION_ORGANIZATION_SEQUENCE = 0x00209221
DIMENSION_INDEX_SEQUENCE = 0x00209222
SEGMENT_SEQUENCE = 0x00620002
SHARED_FUNCTIONAL_GROUPS_SEQUENCE = 0x52009229
PER_FRAME_FUNCTIONAL_GROUPS_SEQUENCE = 0x52009230

# Dimensions
DIMENSION_ORGANIZATION_UID = 0x00209164
DIMENSION_INDEX_POINTER = 0x00209165
DIMENSION_DESCRIPTION_LABEL = 0x00209421

# Segment
SEGMENT_NUMBER = 0x00620004
SEGMENT_LABEL = 0x00620005
SEGMENT_ALGORITHM_TYPE = 0x00620008
SEGMENT_ALGORITHM_NAME = 0x00620009
RECOMMENDED_DISPLAY_GRAYSCALE_VALUE = 0x0062000C
RECOMMENDED_DISPLAY_CIELAB_VALUE = 0x0062000D

# Functional groups
DERIVATION_IMAGE_SEQUENCE = 0x00089124
SOURCE_IMAGE_SEQUENCE = 0x00082112
REFERENCED_SOP_CLASS_UID = 0x00081150
REFERENCED_SOP_INSTANCE_UID = 0x00081155
FRAME_CONTENT_SEQUENCE = 0x00209111
DIMENSION_INDEX_VALUES = 0x00209157
SEGMENT_IDENTIFICATION_SEQUENCE = 0x0062000A
REFERENCED_SEGMENT_NUMBER = 0x0062000B
PLANE_POSITION_SEQUENCE = 0x00209113
IMAGE_POSITION_PATIENT = 0x00200032
PLANE_ORIENTATION_SEQUENCE = 0x00209116
IMAGE_ORIENTATION_PATIENT = 0x00200037
PIXEL_MEASURES_SEQUENCE = 0x00289110
PIXEL_SPACING = 0x00280030
SPACING_BETWEEN_SLICES = 0x00180088

IMAGE_POSITION_POINTER = "(0020,0032)"


def check_dicom_seg(element: ElementAccessor) -> None:
    """Check the transfer syntax, segmentation type and organization type."""
    syntax = element.get_from_key(TRANSFER_SYNTAX_UID)
    if syntax is None:
        raise MissingRequiredElement("Missing DICOM transfer syntax UID")
    algo_name = decompression_name(syntax)
    if algo_name is not None:
        raise UnsupportedTransferSyntax(f"Unsupported compressed segmentation: {algo_name}")

    segmentation_type = clean_string(element.get_from_key(SEGMENTATION_TYPE))
    if not segmentation_type:
        raise InvalidSegmentationType("Missing or empty DICOM segmentation type")
    if segmentation_type != "BINARY":
        raise InvalidSegmentationType(f"Unsupported segmentation type: {segmentation_type}")

    dim_org_type = element.get_from_key(DIMENSION_ORGANIZATION_TYPE)
    if dim_org_type is not None:
        dim_org_type = clean_string(dim_org_type)
        if dim_org_type != "3D":
            raise UnsupportedDimensionOrganization(
                f"Unsupported dimension organization type: {dim_org_type}"
            )


def get_dimension_organization(element: ElementAccessor) -> Dimension:
    """Read the single dimension organization and its two indices."""
    org_sq = element.get_from_key(DIMENSION_ORGANIZATION_SEQUENCE, True)
    if not org_sq or len(org_sq) != 1:
        raise UnsupportedDimensionOrganization(
            "Unsupported dimension organization sequence length: "
            f"{len(org_sq) if org_sq else 0}"
        )
    org_uid = org_sq[0].get_from_key(DIMENSION_ORGANIZATION_UID)
    if org_uid is None:
        raise MissingRequiredElement("Missing dimension organization UID")
    organizations = [clean_string(org_uid)]

    indices: list[DimensionIndex] = []
    index_sq = element.get_from_key(DIMENSION_INDEX_SEQUENCE, True)
    if index_sq is not None:
        if len(index_sq) != 2:
            raise UnsupportedDimensionOrganization(
                f"Unsupported dimension index sequence length: {len(index_sq)}"
            )
        for item in index_sq:
            index_org = clean_string(item.get_from_key(DIMENSION_ORGANIZATION_UID))
            if index_org != organizations[0]:
                raise UnsupportedDimensionOrganization(
                    "Dimension Index Sequence contains an unknown Dimension Organization: "
                    f"{index_org}"
                )
            pointer = item.get_from_key(DIMENSION_INDEX_POINTER)
            if pointer is None:
                raise MissingRequiredElement("Missing dimension index pointer")
            label = item.get_from_key(DIMENSION_DESCRIPTION_LABEL)
            indices.append(
                DimensionIndex(
                    organization=index_org,
                    pointer=format_tag(pointer),
                    label=clean_string(label) if label is not None else None,
                )
            )
        # Image Position (Patient) is expected as last index
        if indices[1].pointer != IMAGE_POSITION_POINTER:
            raise UnsupportedDimensionOrganization(
                f"Unsupported non image position as last index: {indices[1].pointer}"
            )

    return Dimension(organizations=organizations, indices=indices)


def get_segment(element: ElementAccessor) -> Segment:
    """Build a Segment from a Segment Sequence item."""
    number = _required(element, SEGMENT_NUMBER, "segment number")
    label = _required(element, SEGMENT_LABEL, "segment label")
    algorithm_type = _required(element, SEGMENT_ALGORITHM_TYPE, "segment algorithm type")
    algorithm_name = element.get_from_key(SEGMENT_ALGORITHM_NAME)

    grayscale = element.get_from_key(RECOMMENDED_DISPLAY_GRAYSCALE_VALUE)
    cielab = element.get_from_key(RECOMMENDED_DISPLAY_CIELAB_VALUE)
    if grayscale is not None:
        display_value: int | Rgb = int(grayscale)
    elif cielab is not None:
        display_value = dicom_lab_to_rgb(cielab)
    else:
        raise MissingRequiredElement(
            f"Segment {number} has neither a grayscale nor a CIELab display value"
        )

    return Segment(
        number=int(number),
        label=clean_string(label),
        algorithm_type=clean_string(algorithm_type),
        display_value=display_value,
        algorithm_name=clean_string(algorithm_name) if algorithm_name is not None else None,
    )


def is_equal_segment(seg1: Segment | None, seg2: Segment | None) -> bool:
    """Check two segments for equality, display value included."""
    if seg1 is None or seg2 is None:
        return False
    is_equal = (
        seg1.number == seg2.number
        and seg1.label == seg2.label
        and seg1.algorithm_type == seg2.algorithm_type
    )
    if seg1.is_rgb or seg2.is_rgb:
        is_equal = is_equal and is_equal_rgb(_rgb(seg1), _rgb(seg2))
    else:
        is_equal = is_equal and seg1.display_value == seg2.display_value
    if seg1.algorithm_name is not None or seg2.algorithm_name is not None:
        is_equal = is_equal and seg1.algorithm_name == seg2.algorithm_name
    return is_equal


def is_similar_segment(seg1: Segment | None, seg2: Segment | None) -> bool:
    """Check if two segments share either their number or their display value."""
    if seg1 is None or seg2 is None:
        return False
    if seg1.number == seg2.number:
        return True
    if seg1.is_rgb or seg2.is_rgb:
        return is_equal_rgb(_rgb(seg1), _rgb(seg2))
    return seg1.display_value == seg2.display_value


def get_spacing_from_measure(measure: ElementAccessor) -> Spacing | None:
    """Read a Spacing from a Pixel Measures Sequence item, None without Pixel Spacing."""
    pixel_spacing = measure.get_from_key(PIXEL_SPACING)
    if pixel_spacing is None:
        return None
    if not isinstance(pixel_spacing, list) or len(pixel_spacing) < 2:
        raise MissingRequiredElement(f"Pixel spacing needs 2 values, got {pixel_spacing!r}")
    values = [float(pixel_spacing[0]), float(pixel_spacing[1])]
    between_slices = measure.get_from_key(SPACING_BETWEEN_SLICES)
    if between_slices is not None:
        if float(between_slices) > 0:
            values.append(float(between_slices))
        else:
            logger.warning(f"Ignoring non-positive spacing between slices: {between_slices}")
    return Spacing(tuple(values))


def get_segment_frame_info(group_item: ElementAccessor) -> FrameInfo:
    """Build a FrameInfo from a Per-frame Functional Groups Sequence item."""
    derivation_images: list[list[SourceImage]] = []
    for derivation in group_item.get_from_key(DERIVATION_IMAGE_SEQUENCE, True) or []:
        source_images = []
        for source in derivation.get_from_key(SOURCE_IMAGE_SEQUENCE, True) or []:
            sop_class = source.get_from_key(REFERENCED_SOP_CLASS_UID)
            sop_instance = source.get_from_key(REFERENCED_SOP_INSTANCE_UID)
            source_images.append(
                SourceImage(
                    referenced_sop_class_uid=str(sop_class) if sop_class is not None else None,
                    referenced_sop_instance_uid=(
                        str(sop_instance) if sop_instance is not None else None
                    ),
                )
            )
        derivation_images.append(source_images)

    frame_content = _first_item(group_item, FRAME_CONTENT_SEQUENCE, "frame content")
    dim_index = frame_content.get_from_key(DIMENSION_INDEX_VALUES)
    if dim_index is None:
        raise MissingRequiredElement("Missing dimension index values")
    if not isinstance(dim_index, list):
        dim_index = [dim_index]

    segment_id = _first_item(group_item, SEGMENT_IDENTIFICATION_SEQUENCE, "segment identification")
    ref_segment_number = _required(segment_id, REFERENCED_SEGMENT_NUMBER, "referenced segment number")

    plane_position = _first_item(group_item, PLANE_POSITION_SEQUENCE, "plane position")
    image_pos_pat = _required(plane_position, IMAGE_POSITION_PATIENT, "image position patient")
    if not isinstance(image_pos_pat, list) or len(image_pos_pat) != 3:
        raise MissingRequiredElement(f"Image position patient needs 3 values, got {image_pos_pat!r}")

    frame_info = FrameInfo(
        dim_index=[int(v) for v in dim_index],
        image_pos_pat=tuple(float(v) for v in image_pos_pat),
        ref_segment_number=int(ref_segment_number),
        derivation_images=derivation_images,
    )

    orientation_sq = group_item.get_from_key(PLANE_ORIENTATION_SEQUENCE, True)
    if orientation_sq:
        frame_info.image_orientation_patient = _orientation(orientation_sq[0])

    measures_sq = group_item.get_from_key(PIXEL_MEASURES_SEQUENCE, True)
    if measures_sq:
        frame_info.spacing = get_spacing_from_measure(measures_sq[0])
    elif measures_sq is not None:
        logger.warning("No per-frame functional group pixel measure sequence items.")

    return frame_info


def get_shared_geometry(
    element: ElementAccessor,
) -> tuple[tuple[float, ...] | None, Spacing | None]:
    """Read the default orientation and spacing from the shared functional groups."""
    orientation = None
    spacing = None
    shared_sq = element.get_from_key(SHARED_FUNCTIONAL_GROUPS_SEQUENCE, True)
    if not shared_sq:
        return orientation, spacing

    func_group = shared_sq[0]
    orientation_sq = func_group.get_from_key(PLANE_ORIENTATION_SEQUENCE, True)
    if orientation_sq:
        orientation = _orientation(orientation_sq[0])
    elif orientation_sq is not None:
        logger.warning("No shared functional group plane orientation sequence items.")

    measures_sq = func_group.get_from_key(PIXEL_MEASURES_SEQUENCE, True)
    if measures_sq:
        spacing = get_spacing_from_measure(measures_sq[0])
    elif measures_sq is not None:
        logger.warning("No shared functional group pixel measure sequence items.")

    return orientation, spacing


def _orientation(item: ElementAccessor) -> tuple[float, ...] | None:
    values = item.get_from_key(IMAGE_ORIENTATION_PATIENT)
    if values is None:
        return None
    if not isinstance(values, list) or len(values) != 6:
        raise MissingRequiredElement(f"Image orientation patient needs 6 values, got {values!r}")
    return tuple(float(v) for v in values)


def _required(element: ElementAccessor, key: int, name: str) -> Any:
    value = element.get_from_key(key)
    if value is None:
        raise MissingRequiredElement(f"Missing or empty DICOM {name} {format_tag(key)}")
    return value


def _first_item(element: ElementAccessor, key: int, name: str) -> ElementAccessor:
    sequence = element.get_from_key(key, True)
    if not sequence:
        raise MissingRequiredElement(f"Missing or empty DICOM {name} sequence {format_tag(key)}")
    return sequence[0]


def _rgb(segment: Segment) -> Rgb | None:
    return segment.display_value if segment.is_rgb else None
