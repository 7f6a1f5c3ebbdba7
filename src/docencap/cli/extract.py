import pathlib

import click

from docencap.loggers import logger
from docencap.markup import DEFAULT_MAX_DEPTH


@click.command(name="dcm-extract", no_args_is_help=True)
@click.argument(
    "cda_file",
    type=click.Path(
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
        path_type=pathlib.Path,
    ),
)
@click.option(
    "--field",
    "-f",
    "fields",
    multiple=True,
    metavar="NAME",
    help="Also search the document for this field or attribute name. Repeatable.",
)
@click.option(
    "--max-depth",
    type=click.IntRange(min=1),
    default=DEFAULT_MAX_DEPTH,
    show_default=True,
    help="Maximum element nesting accepted.",
)
@click.help_option("-h", "--help")
@click.pass_context
def dcm_extract(
    ctx: click.Context,
    cda_file: pathlib.Path,
    fields: tuple[str, ...],
    max_depth: int,
) -> None:
    """Show the metadata that would be taken from a CDA document.

    \b
    Examples:
      docencap dcm-extract report.xml
      docencap dcm-extract report.xml -f mediaType -f classCode
    """
    from rich.console import Console
    from rich.markup import escape
    from rich.table import Table

    from docencap.exceptions import EncapsulationError
    from docencap.markup import parse_markup, search
    from docencap.metadata import MetadataRecord, extract_from_tree

    console = Console()
    logger.debug("Debug Args", args=locals())
    try:
        root = parse_markup(cda_file, max_depth=max_depth)
        record = extract_from_tree(root, MetadataRecord(), max_depth=max_depth)
        extra = {name: search(root, name, max_depth=max_depth) for name in fields}
    except EncapsulationError as e:
        Console(stderr=True).print(f"[bold red]Error:[/bold red] {escape(str(e))}")
        ctx.exit(e.exit_code)

    table = Table(title=escape(str(cda_file)))
    table.add_column("Field", style="cyan", no_wrap=True)
    table.add_column("Value", style="magenta")
    for name, value in record.as_dict().items():
        table.add_row(name, escape(value))
    if record.media_types:
        table.add_row("mediaType", escape(", ".join(record.media_types)))
    for name, result in extra.items():
        value = escape(result.joined) if result.found else "[dim]<not found>[/dim]"
        table.add_row(escape(name), value)
    console.print(table)
