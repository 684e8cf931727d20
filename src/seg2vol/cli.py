"""CLI entry point for seg2vol."""

from __future__ import annotations

import logging
from pathlib import Path

import typer

from seg2vol import __version__
from seg2vol._pipeline import console, err_console, run_seg_from_config
from seg2vol.core.types import SegConfig

app = typer.Typer(
    name="seg2vol",
    help="Decode DICOM Segmentation objects into labeled 3D volumes.",
    add_completion=False,
)

logger = logging.getLogger("seg2vol")


def version_callback(value: bool):
    if value:
        console.print(f"seg2vol {__version__}")
        raise typer.Exit()


@app.command()
def main(
    input_path: Path = typer.Argument(
        ...,
        help="Path to a DICOM SEG file or a zip archive containing one.",
        exists=True,
    ),
    output: Path = typer.Option(
        None,
        "-o",
        "--output",
        help="Output file path (default: <input_name>.<format>).",
    ),
    format: str = typer.Option(
        "npz",
        "-f",
        "--format",
        help="Output format: npz (labeled volume), stl, obj (segment surfaces).",
    ),
    list_segments: bool = typer.Option(
        False,
        "--list-segments",
        help="Decode, list segments and geometry, and exit without writing output.",
    ),
    verbose: bool = typer.Option(
        False,
        "-v",
        "--verbose",
        help="Show detailed processing information.",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
):
    """Decode DICOM Segmentation objects into labeled 3D volumes."""
    log_level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=log_level, format="%(levelname)s: %(message)s")

    config = SegConfig(
        input_path=input_path,
        output=output,
        format=format.lower(),
        list_segments=list_segments,
        verbose=verbose,
    )

    try:
        run_seg_from_config(config)
    except ValueError as e:
        err_console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1)
    except FileNotFoundError as e:
        err_console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=4)
    except Exception as e:
        err_console.print(f"[red]Error: {e}[/red]")
        if verbose:
            import traceback
            err_console.print(traceback.format_exc())
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
