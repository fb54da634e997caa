"""
Command-line interface for pdfassemblex.
"""

import logging
import sys
from pathlib import Path
from typing import List, Sequence, Tuple

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn
from rich.table import Table

from pdfassemblex import __version__
from pdfassemblex.config import AssemblyOptions
from pdfassemblex.exceptions import InvalidRotationError, MergeError
from pdfassemblex.session import AssemblySession
from pdfassemblex.types import PageReference, SourceDocument, UploadBatchResult, normalize_rotation
from pdfassemblex.utils import format_file_size

console = Console()


def parse_layout(layout: str, sources: Sequence[SourceDocument]) -> List[PageReference]:
    """
    Turn a layout string into page references.

    Each comma separated item is ``FILE:PAGE[@ROTATION]`` where ``FILE`` and
    ``PAGE`` are 1-based, ``PAGE`` may be ``*`` for every page, and
    ``ROTATION`` is a clockwise angle in degrees.

    Example: ``2:1,1:*@90`` puts the first page of the second file first,
    followed by every page of the first file turned a quarter clockwise.
    """
    references: List[PageReference] = []
    for raw_item in layout.split(","):
        item = raw_item.strip()
        if not item:
            continue
        target, _, rotation_text = item.partition("@")
        file_text, sep, page_text = target.partition(":")
        if not sep:
            raise click.BadParameter(f"Expected FILE:PAGE, got '{item}'", param_hint="--layout")
        try:
            file_number = int(file_text)
            rotation = normalize_rotation(int(rotation_text)) if rotation_text else 0
        except (ValueError, InvalidRotationError) as exc:
            raise click.BadParameter(f"Invalid item '{item}': {exc}", param_hint="--layout") from exc
        if not 1 <= file_number <= len(sources):
            raise click.BadParameter(
                f"File number {file_number} is out of range (1-{len(sources)})",
                param_hint="--layout",
            )
        source = sources[file_number - 1]

        if page_text.strip() == "*":
            indexes = range(source.page_count)
        else:
            try:
                page_number = int(page_text)
            except ValueError as exc:
                raise click.BadParameter(f"Invalid page in '{item}'", param_hint="--layout") from exc
            if not 1 <= page_number <= source.page_count:
                raise click.BadParameter(
                    f"Page {page_number} is out of range for {source.name} "
                    f"(1-{source.page_count})",
                    param_hint="--layout",
                )
            indexes = range(page_number - 1, page_number)

        references.extend(
            PageReference(source_id=source.id, page_index=index, rotation=rotation)
            for index in indexes
        )
    return references


def _load_files(session: AssemblySession, files: Tuple[str, ...]) -> UploadBatchResult:
    result = session.add_paths(Path(name) for name in files)
    for name, error in result.failed:
        console.print(f"[yellow]⚠ Skipped {escape(name)}:[/yellow] {escape(error)}")
    for name in result.skipped:
        console.print(f"[yellow]⚠ Skipped {escape(name)}:[/yellow] not a PDF")
    return result


@click.group()
@click.version_option(version=__version__)
@click.option('--verbose', '-v', is_flag=True, help='Show debug logging')
def cli(verbose):
    """
    pdfassemblex - Assemble one PDF from pages of several PDFs.
    """
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=console, show_path=False)],
        )


@cli.command(name="info")
@click.argument('files', nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
def show_info(files):
    """
    Display page counts of one or more PDF files.

    Example:

        pdfassemblex info a.pdf b.pdf
    """
    with AssemblySession() as session:
        _load_files(session, files)

        table = Table(title="Sources")
        table.add_column("#", style="dim")
        table.add_column("File", style="cyan")
        table.add_column("Pages", style="green", justify="right")
        table.add_column("Size", style="green", justify="right")
        for number, source in enumerate(session.sources, start=1):
            table.add_row(str(number), source.name, str(source.page_count), format_file_size(source.size))
        console.print(table)

        if not session.sources:
            sys.exit(1)


@cli.command(name="assemble")
@click.argument('files', nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option(
    '--output', '-o',
    default='.',
    help='Output PDF path, or a directory to write a generated file name into',
    type=click.Path()
)
@click.option(
    '--layout', '-l',
    default=None,
    help='Pages to include, e.g. "2:1,1:*@90" (default: every page of every file)',
    type=str
)
@click.option('--copy-metadata', is_flag=True, help='Copy document info from the first source')
def assemble(files, output, layout, copy_metadata):
    """
    Assemble pages of FILES into one PDF.

    Examples:

        pdfassemblex assemble a.pdf b.pdf -o merged.pdf

        pdfassemblex assemble a.pdf b.pdf -l "1:3,2:*,1:1@180" -o out/
    """
    options = AssemblyOptions(copy_metadata=copy_metadata)
    with AssemblySession(options) as session:
        _load_files(session, files)
        if not session.sources:
            console.print("[bold red]✗ Error:[/bold red] No readable PDF files were given")
            sys.exit(1)

        sequence = session.start_editing()
        if layout is not None:
            references = parse_layout(layout, session.sources)
            sequence.clear()
            sequence.extend(references)

        output_path = Path(output)
        try:
            if output_path.is_dir() or output.endswith(("/", "\\")):
                target = session.save(output_path)
                page_count = len(session.sequence)
            else:
                result = session.export()
                output_path.parent.mkdir(parents=True, exist_ok=True)
                output_path.write_bytes(result.content)
                target, page_count = output_path, result.page_count
        except MergeError as e:
            console.print(f"\n[bold red]✗ Error:[/bold red] {e.user_message}")
            console.print(f"[dim]{escape(str(e))}[/dim]")
            sys.exit(1)

        console.print(f"\n[bold green]✓ Wrote {page_count} pages to {target}[/bold green]")


@cli.command(name="thumbnails")
@click.argument('input_pdf', type=click.Path(exists=True, dir_okay=False))
@click.option(
    '--output-dir', '-o',
    default='./thumbnails',
    help='Output directory for preview images',
    type=click.Path()
)
@click.option('--scale', default=None, type=float, help='Rasterization scale (default 0.4)')
@click.option(
    '--format', 'fmt',
    default='JPEG',
    type=click.Choice(['JPEG', 'PNG'], case_sensitive=False),
    help='Image format'
)
def thumbnails(input_pdf, output_dir, scale, fmt):
    """
    Write one preview image per page of INPUT_PDF.

    Example:

        pdfassemblex thumbnails input.pdf -o previews --format png
    """
    options = AssemblyOptions(thumbnail_format=fmt.upper()).with_updates(thumbnail_scale=scale)
    with AssemblySession(options) as session:
        result = _load_files(session, (input_pdf,))
        if not result.added:
            sys.exit(1)

        sequence = session.start_editing()
        target_dir = Path(output_dir)
        target_dir.mkdir(parents=True, exist_ok=True)
        extension = "jpg" if options.thumbnail_format == "JPEG" else "png"

        failures = 0
        with Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=console
        ) as progress:
            task = progress.add_task("Rendering pages", total=len(sequence))
            for number, reference in enumerate(sequence, start=1):
                outcome = session.renderer.render_many([reference])[0]
                if outcome.ok:
                    path = target_dir / f"page-{number:03d}.{extension}"
                    path.write_bytes(session.renderer.encode(outcome.image))
                else:
                    failures += 1
                    console.print(f"[yellow]⚠ Page {number}:[/yellow] {escape(outcome.error or '')}")
                progress.update(task, completed=number)

        console.print(
            f"\n[bold green]✓ Rendered {len(sequence) - failures} of {len(sequence)} pages[/bold green]"
        )
        console.print(f"[dim]Output directory: {target_dir.resolve()}[/dim]")


def main():
    cli()


if __name__ == "__main__":
    main()
