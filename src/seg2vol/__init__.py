"""seg2vol: decode DICOM Segmentation objects into labeled 3D volumes."""

__version__ = "0.1.0"
