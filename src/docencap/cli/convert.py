import pathlib
from typing import Any

import click

from docencap.cli.options import (
    encapsulation_options,
    run_encapsulation,
    settings_from_options,
)
from docencap.documents import DocumentKind
from docencap.loggers import logger

INPUT = click.argument(
    "input_file",
    type=click.Path(
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
        path_type=pathlib.Path,
    ),
)
OUTPUT = click.argument(
    "output_file",
    type=click.Path(dir_okay=False, writable=True, path_type=pathlib.Path),
)


def _run(
    ctx: click.Context,
    kind: DocumentKind,
    input_file: pathlib.Path,
    output_file: pathlib.Path,
    params: dict[str, Any],
) -> None:
    logger.debug("Debug Args", command=ctx.info_name, args=params)
    settings = settings_from_options(input_file, output_file, kind, params)
    run_encapsulation(ctx, settings)


@click.command(no_args_is_help=True)
@INPUT
@OUTPUT
@encapsulation_options()
@click.help_option("-h", "--help")
@click.pass_context
def cda2dcm(
    ctx: click.Context,
    input_file: pathlib.Path,
    output_file: pathlib.Path,
    **params: Any,  # noqa
) -> None:
    """Encapsulate a CDA document into a DICOM file.

    Patient, concept and title are taken from the document. Values given on
    the command line or found in --series-from must agree with it unless
    --override is given.

    \b
    Examples:
      docencap cda2dcm report.xml report.dcm
      docencap cda2dcm report.xml report.dcm --series-from study/ --increment
    """
    _run(ctx, DocumentKind.CDA, input_file, output_file, params)


@click.command(no_args_is_help=True)
@INPUT
@OUTPUT
@encapsulation_options()
@click.help_option("-h", "--help")
@click.pass_context
def pdf2dcm(
    ctx: click.Context,
    input_file: pathlib.Path,
    output_file: pathlib.Path,
    **params: Any,  # noqa
) -> None:
    """Encapsulate a PDF document into a DICOM file.

    \b
    Examples:
      docencap pdf2dcm scan.pdf scan.dcm --patient-name 'Doe^John' --patient-id 123
      docencap pdf2dcm scan.pdf scan.dcm -k 'InstitutionName=General Hospital'
    """
    _run(ctx, DocumentKind.PDF, input_file, output_file, params)


@click.command(no_args_is_help=True)
@INPUT
@OUTPUT
@encapsulation_options(model=True)
@click.help_option("-h", "--help")
@click.pass_context
def stl2dcm(
    ctx: click.Context,
    input_file: pathlib.Path,
    output_file: pathlib.Path,
    **params: Any,  # noqa
) -> None:
    """Encapsulate an STL 3D model into a DICOM file."""
    _run(ctx, DocumentKind.STL, input_file, output_file, params)


@click.command(no_args_is_help=True)
@INPUT
@OUTPUT
@click.option(
    "--kind",
    "model_kind",
    type=click.Choice(["stl", "obj", "mtl"], case_sensitive=False),
    default=None,
    help="Model format, guessed from the input suffix when omitted.",
)
@encapsulation_options(model=True)
@click.help_option("-h", "--help")
@click.pass_context
def model2dcm(
    ctx: click.Context,
    input_file: pathlib.Path,
    output_file: pathlib.Path,
    model_kind: str | None,
    **params: Any,  # noqa
) -> None:
    """Encapsulate a 3D model (STL, OBJ or MTL) into a DICOM file."""
    if model_kind is not None:
        kind = DocumentKind(model_kind.lower())
    else:
        suffix = input_file.suffix.lower().lstrip(".")
        if suffix not in ("stl", "obj", "mtl"):
            raise click.UsageError(
                f"Cannot determine the model format of {input_file}, use --kind"
            )
        kind = DocumentKind(suffix)
    _run(ctx, kind, input_file, output_file, params)
