"""Errors raised while decoding a DICOM SEG object.

Every error is fatal to the decode call. They all derive from ValueError so
callers that already treat bad input as ValueError keep working.
"""

from __future__ import annotations


class SegDecodeError(ValueError):
    """Base class for DICOM SEG decoding failures."""


class UnsupportedTransferSyntax(SegDecodeError):
    """Pixel data is stored with a compressed transfer syntax."""


class InvalidSegmentationType(SegDecodeError):
    """Segmentation type is missing, not BINARY, or display values are mixed."""


class UnsupportedDimensionOrganization(SegDecodeError):
    """Dimension organization type, count or index layout is not supported."""


class MissingRequiredElement(SegDecodeError):
    """A required DICOM element is absent or empty."""


class UnknownSegmentReference(MissingRequiredElement):
    """A frame references a segment number absent from the segment sequence."""


class FrameCountMismatch(SegDecodeError):
    """Declared frame count disagrees with the buffer or per-frame groups."""


class MultiOrientationUnsupported(SegDecodeError):
    """Frames disagree on image orientation."""


class MultiResolutionUnsupported(SegDecodeError):
    """Frames disagree on pixel spacing."""


class MissingGeometry(SegDecodeError):
    """Spacing or orientation could not be resolved from any functional group."""
