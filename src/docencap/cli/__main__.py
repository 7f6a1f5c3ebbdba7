"""Command-line interface for docencap.

Commands are declared in ``SECTIONS`` and listed section by section by
SectionedGroup, together with the exit statuses they can end with. To add a
command, implement it as a click command and add it to a section below.
"""

import click

from docencap import __version__
from docencap.exceptions import (
    DataConflictError,
    InvalidIdentifierError,
    IOFailureError,
    MalformedInputError,
    PayloadTooLargeError,
    PersistFailureError,
    SeriesContextUnavailableError,
    UnknownAttributeError,
)

from . import set_log_verbosity
from .convert import cda2dcm, model2dcm, pdf2dcm, stl2dcm
from .extract import dcm_extract
from .sectioned_group import HelpSection, SectionedGroup

SECTIONS = [
    HelpSection(
        "conversion",
        "Encapsulate documents into DICOM files",
        (cda2dcm, pdf2dcm, stl2dcm, model2dcm),
        (
            IOFailureError,
            MalformedInputError,
            SeriesContextUnavailableError,
            UnknownAttributeError,
            PersistFailureError,
            InvalidIdentifierError,
            PayloadTooLargeError,
            DataConflictError,
        ),
    ),
    HelpSection(
        "inspection",
        "Inspect source documents",
        (dcm_extract,),
        (IOFailureError, MalformedInputError, UnknownAttributeError),
    ),
]


@click.group(cls=SectionedGroup, sections=SECTIONS, no_args_is_help=True)
@set_log_verbosity()
@click.version_option(
    version=__version__,
    package_name="med-docencap",
    prog_name="docencap",
    message="%(package)s:%(prog)s:%(version)s",
)
@click.help_option("-h", "--help")
def cli(verbose: int, quiet: bool) -> None:
    """Encapsulate CDA, PDF and 3D model documents into DICOM files.

    Invalid command line usage exits with status 2.
    """
    pass


if __name__ == "__main__":
    cli()
