"""SEG pipeline: load, decode, summarize and export."""

from __future__ import annotations

import logging
import time
from pathlib import Path

from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from seg2vol.core.types import SegConfig
from seg2vol.core.volume import SegVolume

logger = logging.getLogger("seg2vol")

SUPPORTED_FORMATS = ("npz", "stl", "obj")

console = Console()
err_console = Console(stderr=True)


def print_segment_table(volume: SegVolume, input_path: Path) -> None:
    """Display a Rich table of the decoded segments."""
    from seg2vol.io.exporters import segment_rows

    table = Table(title=f"Segments in {input_path}")
    table.add_column("#", style="bold", justify="right")
    table.add_column("Label", style="green", max_width=40)
    table.add_column("Algorithm", style="cyan")
    table.add_column("Display Value", style="magenta")
    table.add_column("Frames", justify="right")
    table.add_column("Voxels", justify="right")

    for row in segment_rows(volume):
        table.add_row(
            str(row["number"]),
            row["label"] or "(no label)",
            row["algorithm"],
            row["display_value"],
            str(row["frames"]),
            f"{row['voxels']:,}",
        )

    console.print(table)


def print_volume_summary(volume: SegVolume) -> None:
    from seg2vol.io.exporters import volume_summary

    summary = volume_summary(volume)
    console.print(f"  Series:   {summary['series_uid']}")
    console.print(f"  Size:     {summary['dimensions']} ({summary['photometric_interpretation']})")
    console.print(f"  Spacing:  {summary['spacing']} mm")
    console.print(f"  Origin:   {summary['origin']}")
    console.print(f"  Frames:   {summary['frames']}")


def make_output_path(input_path: Path, format: str) -> Path:
    """Default output path: <input_stem>.<format> next to the input."""
    input_path = Path(input_path)
    return input_path.parent / f"{input_path.stem}.{format}"


def export_volume(volume: SegVolume, output: Path, format: str) -> None:
    """Export a decoded volume in the requested format."""
    from seg2vol.io.exporters import export_npz, export_segment_meshes

    if format == "npz":
        export_npz(volume, output)
    elif format in ("stl", "obj"):
        n_meshes = export_segment_meshes(volume, output, format=format)
        logger.info(f"Exported {n_meshes} segment surface(s)")
    else:
        raise ValueError(
            f"Unsupported format: {format}. Choose one of {', '.join(SUPPORTED_FORMATS)}."
        )


def run_seg_from_config(config: SegConfig) -> SegVolume:
    """Execute the SEG pipeline from a CLI-produced config."""
    from seg2vol.io.seg_loader import load_seg_file
    from seg2vol.io.seg_decoder import decode_seg

    if config.format not in SUPPORTED_FORMATS:
        raise ValueError(
            f"Unsupported format: {config.format}. Choose one of {', '.join(SUPPORTED_FORMATS)}."
        )

    start_time = time.time()

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(bar_width=20),
        MofNCompleteColumn(),
        console=console,
    ) as progress:
        task = progress.add_task("Loading DICOM SEG...", total=None)

        def on_progress(desc: str, current: int, total: int) -> None:
            progress.update(task, description=desc, completed=current, total=total)

        accessor, buffer = load_seg_file(config.input_path, progress=on_progress)
        progress.remove_task(task)

        task = progress.add_task("Decoding segmentation...", total=None)
        volume = decode_seg(accessor, buffer)
        progress.remove_task(task)

        output = None
        if not config.list_segments:
            output = config.output or make_output_path(config.input_path, config.format)
            task = progress.add_task(f"Exporting {config.format.upper()}...", total=None)
            export_volume(volume, output, config.format)
            progress.remove_task(task)

    print_segment_table(volume, config.input_path)
    print_volume_summary(volume)

    if output is not None:
        elapsed = time.time() - start_time
        file_size = output.stat().st_size / 1024
        console.print("\n[green]Decoding complete![/green]")
        console.print(f"  Output:   {output}")
        console.print(f"  Size:     {file_size:.1f} KB")
        console.print(f"  Time:     {elapsed:.1f}s")

    return volume
