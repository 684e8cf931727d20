"""Exporters for decoded SEG volumes: NPZ arrays and per-segment surfaces."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict
from pathlib import Path

import numpy as np
import trimesh
from skimage import measure

from seg2vol.core.types import Rgb, Segment
from seg2vol.core.volume import SegVolume

logger = logging.getLogger(__name__)


def export_npz(volume: SegVolume, output_path: Path) -> None:
    """Export voxels, geometry and segment records to a compressed NPZ archive."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    geometry = volume.geometry
    np.savez_compressed(
        output_path,
        voxels=volume.voxels,
        spacing=np.asarray(volume.spacing, dtype=np.float64),
        origin=np.asarray(geometry.origin, dtype=np.float64),
        origins=np.asarray(geometry.origins, dtype=np.float64),
        orientation=np.asarray(
            volume.meta.get("ImageOrientationPatient") or (), dtype=np.float64
        ),
        segments=np.array(json.dumps([asdict(s) for s in volume.segments])),
        photometric_interpretation=np.array(volume.photometric_interpretation),
    )


def export_segment_meshes(
    volume: SegVolume,
    output_path: Path,
    format: str = "stl",
) -> int:
    """Extract one marching-cubes surface per segment and export them.

    Vertices are in patient coordinates (mm). Segments without any voxel
    are skipped. Returns the number of exported surfaces.
    """
    if format not in ("stl", "obj"):
        raise ValueError(f"Unsupported mesh format: {format}")
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    meshes: list[tuple[str, trimesh.Trimesh]] = []
    for segment in volume.segments:
        mask = segment_mask(volume, segment)
        if not mask.any():
            logger.warning(f"Segment {segment.number} ({segment.label}) has no voxels, skipped")
            continue
        meshes.append((segment.label or f"segment_{segment.number}", _surface(volume, mask)))

    if not meshes:
        raise ValueError("No segment produced a surface")

    if format == "stl":
        combined = trimesh.util.concatenate([tri for _, tri in meshes])
        combined.export(str(output_path), file_type="stl")
    else:
        scene = trimesh.Scene()
        for name, tri in meshes:
            scene.add_geometry(tri, node_name=name)
        scene.export(str(output_path), file_type="obj")
    return len(meshes)


def segment_mask(volume: SegVolume, segment: Segment) -> np.ndarray:
    """Boolean [Z, Y, X] mask of voxels carrying *segment*'s display value."""
    voxels = volume.voxels
    if isinstance(segment.display_value, Rgb):
        return np.all(voxels == np.asarray(segment.display_value.as_tuple()), axis=-1)
    return voxels == segment.display_value


def _surface(volume: SegVolume, mask: np.ndarray) -> trimesh.Trimesh:
    """Marching cubes on a zero-padded mask, mapped to patient coordinates."""
    padded = np.pad(mask.astype(np.float32), 1)
    verts, faces, _, _ = measure.marching_cubes(padded, level=0.5)
    # (k, j, i) index space without padding
    verts = verts - 1.0
    patient = _index_to_patient(volume) @ np.c_[verts[:, ::-1], np.ones(len(verts))].T
    return trimesh.Trimesh(vertices=patient.T[:, :3], faces=faces, process=False)


def _index_to_patient(volume: SegVolume) -> np.ndarray:
    """Affine mapping (column i, row j, slice k, 1) to patient (x, y, z, 1)."""
    geometry = volume.geometry
    orientation = volume.meta.get("ImageOrientationPatient") or (1, 0, 0, 0, 1, 0)
    row_cosine = np.asarray(orientation[:3], dtype=np.float64)
    column_cosine = np.asarray(orientation[3:], dtype=np.float64)
    row_spacing, column_spacing, through = geometry.spacing

    origins = np.asarray(geometry.origins, dtype=np.float64)
    if len(origins) > 1:
        slice_step = (origins[-1] - origins[0]) / (len(origins) - 1)
    else:
        slice_step = np.cross(row_cosine, column_cosine) * through

    affine = np.eye(4)
    affine[:3, 0] = row_cosine * column_spacing
    affine[:3, 1] = column_cosine * row_spacing
    affine[:3, 2] = slice_step
    affine[:3, 3] = origins[0]
    return affine


def volume_summary(volume: SegVolume) -> dict:
    """Flat summary of the decoded geometry, for display."""
    slices, rows, columns = volume.geometry.shape
    return {
        "series_uid": volume.meta.get("SeriesInstanceUID", ""),
        "dimensions": f"{columns}x{rows}x{slices}",
        "spacing": "x".join(f"{v:g}" for v in volume.geometry.spacing),
        "origin": ", ".join(f"{v:g}" for v in volume.geometry.origin),
        "photometric_interpretation": volume.photometric_interpretation,
        "frames": len(volume.frame_infos),
        "segments": len(volume.segments),
    }


def segment_rows(volume: SegVolume) -> list[dict]:
    """One display row per segment with its frame and voxel counts."""
    frame_counts: dict[int, int] = {}
    for info in volume.frame_infos:
        frame_counts[info.ref_segment_number] = frame_counts.get(info.ref_segment_number, 0) + 1

    rows = []
    for segment in volume.segments:
        value = segment.display_value
        rows.append(
            {
                "number": segment.number,
                "label": segment.label,
                "algorithm": " / ".join(
                    v for v in (segment.algorithm_type, segment.algorithm_name) if v
                ),
                "display_value": (
                    f"rgb({value.r}, {value.g}, {value.b})" if isinstance(value, Rgb) else str(value)
                ),
                "frames": frame_counts.get(segment.number, 0),
                "voxels": int(segment_mask(volume, segment).sum()),
            }
        )
    return rows
