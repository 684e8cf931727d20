"""Shared test fixtures: synthetic DICOM SEG data."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pydicom
import pytest
from pydicom.dataset import Dataset, FileDataset, FileMetaDataset
from pydicom.uid import ExplicitVRLittleEndian, generate_uid

from seg2vol.io.dicom_accessor import DatasetAccessor

SEG_SOP_CLASS_UID = "1.2.840.10008.5.1.4.1.1.66.4"
CT_SOP_CLASS_UID = "1.2.840.10008.5.1.4.1.1.2"


def make_segment(
    number: int,
    label: str = "",
    grayscale: int | None = None,
    cielab: tuple[int, int, int] | None = None,
    algorithm_type: str = "MANUAL",
    algorithm_name: str | None = None,
) -> Dataset:
    """Build one Segment Sequence item."""
    item = Dataset()
    item.SegmentNumber = number
    item.SegmentLabel = label or f"Segment {number}"
    item.SegmentAlgorithmType = algorithm_type
    if algorithm_name is not None:
        item.SegmentAlgorithmName = algorithm_name
    if grayscale is not None:
        item.RecommendedDisplayGrayscaleValue = grayscale
    if cielab is not None:
        item.RecommendedDisplayCIELabValue = list(cielab)
    return item


def make_frame(
    position: tuple[float, float, float],
    segment_number: int,
    index: int = 1,
    orientation: tuple[float, ...] | None = None,
    spacing: tuple[float, ...] | None = None,
    source_uids: list[str] | None = None,
) -> Dataset:
    """Build one Per-frame Functional Groups Sequence item."""
    item = Dataset()

    if source_uids:
        source_images = []
        for uid in source_uids:
            source = Dataset()
            source.ReferencedSOPClassUID = CT_SOP_CLASS_UID
            source.ReferencedSOPInstanceUID = uid
            source_images.append(source)
        derivation = Dataset()
        derivation.SourceImageSequence = source_images
        item.DerivationImageSequence = [derivation]

    content = Dataset()
    content.DimensionIndexValues = [segment_number, index]
    item.FrameContentSequence = [content]

    segment_id = Dataset()
    segment_id.ReferencedSegmentNumber = segment_number
    item.SegmentIdentificationSequence = [segment_id]

    plane_position = Dataset()
    plane_position.ImagePositionPatient = list(position)
    item.PlanePositionSequence = [plane_position]

    if orientation is not None:
        plane_orientation = Dataset()
        plane_orientation.ImageOrientationPatient = list(orientation)
        item.PlaneOrientationSequence = [plane_orientation]

    if spacing is not None:
        item.PixelMeasuresSequence = [_measures(spacing)]

    return item


def build_seg_dataset(
    frames: list[Dataset],
    segments: list[Dataset] | None = None,
    rows: int = 2,
    columns: int = 2,
    spacing: tuple[float, ...] | None = (1.0, 1.0, 2.0),
    orientation: tuple[float, ...] | None = (1.0, 0.0, 0.0, 0.0, 1.0, 0.0),
    transfer_syntax: str = ExplicitVRLittleEndian,
    segmentation_type: str | None = "BINARY",
    number_of_frames: int | None = None,
) -> FileDataset:
    """Build an in-memory DICOM SEG dataset (no pixel data)."""
    file_meta = FileMetaDataset()
    file_meta.MediaStorageSOPClassUID = SEG_SOP_CLASS_UID
    file_meta.MediaStorageSOPInstanceUID = generate_uid()
    file_meta.TransferSyntaxUID = transfer_syntax

    ds = FileDataset("seg.dcm", {}, file_meta=file_meta, preamble=b"\x00" * 128)
    ds.SOPClassUID = SEG_SOP_CLASS_UID
    ds.SOPInstanceUID = file_meta.MediaStorageSOPInstanceUID
    ds.StudyInstanceUID = generate_uid()
    ds.SeriesInstanceUID = generate_uid()
    ds.Modality = "SEG"
    if segmentation_type is not None:
        ds.SegmentationType = segmentation_type
    ds.DimensionOrganizationType = "3D"

    org_uid = generate_uid()
    organization = Dataset()
    organization.DimensionOrganizationUID = org_uid
    ds.DimensionOrganizationSequence = [organization]
    ds.DimensionIndexSequence = [
        _dimension_index(org_uid, 0x0062000B, 0x0062000A, "ReferencedSegmentNumber"),
        _dimension_index(org_uid, 0x00200032, 0x00209113, "ImagePositionPatient"),
    ]

    ds.SegmentSequence = segments if segments is not None else [make_segment(1, grayscale=5)]

    ds.Rows = rows
    ds.Columns = columns
    ds.NumberOfFrames = number_of_frames if number_of_frames is not None else len(frames)
    ds.SamplesPerPixel = 1
    ds.PhotometricInterpretation = "MONOCHROME2"
    ds.BitsAllocated = 1
    ds.BitsStored = 1
    ds.HighBit = 0
    ds.PixelRepresentation = 0

    shared = Dataset()
    if orientation is not None:
        plane_orientation = Dataset()
        plane_orientation.ImageOrientationPatient = list(orientation)
        shared.PlaneOrientationSequence = [plane_orientation]
    if spacing is not None:
        shared.PixelMeasuresSequence = [_measures(spacing)]
    ds.SharedFunctionalGroupsSequence = [shared]
    ds.PerFrameFunctionalGroupsSequence = frames
    return ds


def write_seg_file(path: Path, ds: FileDataset, pixels: np.ndarray) -> Path:
    """Bit-pack *pixels* into the dataset and save it to *path*."""
    packed = np.packbits(np.asarray(pixels, dtype=np.uint8).ravel(), bitorder="little")
    data = packed.tobytes()
    if len(data) % 2:
        data += b"\x00"
    ds.PixelData = data
    ds["PixelData"].VR = "OB"
    ds.save_as(str(path))
    return path


def _dimension_index(org_uid: str, pointer: int, group: int, label: str) -> Dataset:
    item = Dataset()
    item.DimensionOrganizationUID = org_uid
    item.DimensionIndexPointer = pointer
    item.FunctionalGroupPointer = group
    item.DimensionDescriptionLabel = label
    return item


def _measures(spacing: tuple[float, ...]) -> Dataset:
    measures = Dataset()
    measures.PixelSpacing = [spacing[0], spacing[1]]
    if len(spacing) > 2:
        measures.SpacingBetweenSlices = spacing[2]
    return measures


@pytest.fixture
def scalar_seg() -> tuple[DatasetAccessor, np.ndarray]:
    """One grayscale segment (value 5), one 2x2 frame with a diagonal mask."""
    ds = build_seg_dataset([make_frame((0.0, 0.0, 0.0), 1)])
    return DatasetAccessor(ds), np.array([1, 0, 0, 1], dtype=np.uint8)


@pytest.fixture
def rgb_seg() -> tuple[DatasetAccessor, np.ndarray]:
    """One CIELab segment, one 2x2 frame with its first pixel set."""
    ds = build_seg_dataset(
        [make_frame((0.0, 0.0, 0.0), 1)],
        segments=[make_segment(1, cielab=(65535, 32896, 32896))],
    )
    return DatasetAccessor(ds), np.array([1, 0, 0, 0], dtype=np.uint8)


@pytest.fixture
def gapped_seg() -> tuple[DatasetAccessor, np.ndarray]:
    """Two segments over z = 10 (twice) and z = 6 with 2mm spacing: z = 8 is empty."""
    frames = [
        make_frame((0.0, 0.0, 10.0), 1, index=1, source_uids=[generate_uid()]),
        make_frame((0.0, 0.0, 10.0), 2, index=1),
        make_frame((0.0, 0.0, 6.0), 1, index=3),
    ]
    segments = [
        make_segment(1, label="Liver", grayscale=1, algorithm_name="threshold"),
        make_segment(2, label="Tumor", grayscale=2),
    ]
    ds = build_seg_dataset(frames, segments=segments)
    pixels = np.array(
        [
            [1, 1, 0, 0],
            [0, 1, 1, 0],
            [0, 0, 0, 1],
        ],
        dtype=np.uint8,
    )
    return DatasetAccessor(ds), pixels.ravel()


@pytest.fixture
def seg_file(tmp_path) -> Path:
    """A SEG file on disk with two 4x4 frames three slices apart."""
    frames = [
        make_frame((-10.0, -10.0, 4.0), 1, index=1),
        make_frame((-10.0, -10.0, 0.0), 1, index=3),
    ]
    ds = build_seg_dataset(
        frames,
        segments=[make_segment(1, label="Lesion", grayscale=1)],
        rows=4,
        columns=4,
        spacing=(0.5, 0.5, 2.0),
    )
    pixels = np.zeros((2, 4, 4), dtype=np.uint8)
    pixels[0, 1:3, 1:3] = 1
    pixels[1, 1:3, 1:3] = 1
    return write_seg_file(tmp_path / "seg.dcm", ds, pixels)
