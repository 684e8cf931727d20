"""Unit tests for the pydicom element accessor."""

from __future__ import annotations

import pytest
from pydicom.dataset import Dataset, FileMetaDataset
from pydicom.uid import ExplicitVRLittleEndian, ImplicitVRLittleEndian, RLELossless

from seg2vol.io.dicom_accessor import (
    DatasetAccessor,
    clean_string,
    decompression_name,
    format_tag,
)


@pytest.fixture
def accessor() -> DatasetAccessor:
    ds = Dataset()
    ds.Rows = 3
    ds.Columns = 4
    ds.SegmentationType = "BINARY"
    ds.PixelSpacing = [0.5, 0.25]
    ds.SeriesDescription = ""
    item = Dataset()
    item.SegmentNumber = 1
    ds.SegmentSequence = [item]
    ds.PerFrameFunctionalGroupsSequence = []
    ds.file_meta = FileMetaDataset()
    ds.file_meta.TransferSyntaxUID = ExplicitVRLittleEndian
    return DatasetAccessor(ds)


def test_scalar_value(accessor):
    assert accessor.get_from_key(0x00280010) == 3
    assert accessor.get_from_key("SegmentationType") == "BINARY"


def test_multi_value_as_list(accessor):
    assert accessor.get_from_key(0x00280030) == [0.5, 0.25]


def test_absent_and_empty_are_none(accessor):
    assert accessor.get_from_key(0x00209311) is None
    assert accessor.get_from_key("SeriesDescription") is None
    assert 0x00209311 not in accessor
    assert 0x00280010 in accessor


def test_sequence_items_are_accessors(accessor):
    items = accessor.get_from_key(0x00620002, True)
    assert len(items) == 1
    assert isinstance(items[0], DatasetAccessor)
    assert items[0].get_from_key(0x00620004) == 1


def test_empty_sequence(accessor):
    assert accessor.get_from_key(0x52009230, True) == []


def test_as_sequence_on_non_sequence(accessor):
    with pytest.raises(ValueError, match="not a sequence"):
        accessor.get_from_key(0x00280010, True)


def test_file_meta_lookup(accessor):
    assert accessor.get_from_key(0x00020010) == ExplicitVRLittleEndian


def test_image_size(accessor):
    assert accessor.get_image_size() == (4, 3)
    assert DatasetAccessor(Dataset()).get_image_size() is None


def test_clean_string():
    assert clean_string("BINARY ") == "BINARY"
    assert clean_string("3D\x00") == "3D"
    assert clean_string(b"BINARY\x00") == "BINARY"
    assert clean_string(None) == ""


def test_format_tag():
    assert format_tag(0x00200032) == "(0020,0032)"
    assert format_tag(0x0062000B) == "(0062,000B)"


def test_decompression_name():
    assert decompression_name(ExplicitVRLittleEndian) is None
    assert decompression_name(ImplicitVRLittleEndian + "\x00") is None
    assert decompression_name(RLELossless) == "RLE Lossless"
