"""Options shared by the document-to-DICOM commands."""

from __future__ import annotations

import pathlib
from typing import Any, Callable

import click
from click.decorators import FC
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

from docencap.config import (
    EncapsulationSettings,
    GroupLengthMode,
    SequenceLength,
    TransferSyntax,
    WriteMode,
)
from docencap.documents import DocumentKind
from docencap.engine import encapsulate
from docencap.exceptions import EncapsulationError


def _choices(enum: type) -> click.Choice:
    return click.Choice([member.value for member in enum], case_sensitive=False)


ENCAPSULATION_OPTIONS: list[Callable[[FC], FC]] = [
    # patient
    click.option("--patient-name", help="Patient's name, e.g. 'Doe^John'."),
    click.option("--patient-id", help="Patient ID."),
    click.option("--patient-birthdate", help="Patient's birth date (YYYYMMDD)."),
    click.option(
        "--patient-sex", type=click.Choice(["M", "F", "O"], case_sensitive=False)
    ),
    # document
    click.option("--title", help="Document title."),
    click.option(
        "--concept-name",
        nargs=3,
        type=str,
        default=None,
        metavar="VALUE SCHEME MEANING",
        help="Concept name code of the document, e.g. '18842-5 LN \"Discharge summary\"'.",
    ),
    click.option(
        "--no-annotation",
        is_flag=True,
        help="Mark the document as free of burned in patient identification.",
    ),
    # series and instance
    click.option(
        "--series-from",
        type=click.Path(path_type=pathlib.Path),
        help="DICOM file, or directory of DICOM files, of the series to append to.",
    ),
    click.option(
        "--fallback-new",
        is_flag=True,
        help="Continue with new study/series identifiers if --series-from cannot be read.",
    ),
    click.option("--study-uid", help="Study Instance UID to use."),
    click.option("--series-uid", help="Series Instance UID to use."),
    click.option("--sop-uid", help="SOP Instance UID to use."),
    click.option("--instance-number", type=click.IntRange(min=1)),
    click.option(
        "--increment",
        is_flag=True,
        help="Instance number is one more than the highest in --series-from.",
    ),
    click.option("--uid-root", help="Root for generated UIDs, ending with a dot."),
    # encoding
    click.option("--transfer-syntax", "-t", type=_choices(TransferSyntax)),
    click.option("--group-length", type=_choices(GroupLengthMode)),
    click.option("--sequence-length", type=_choices(SequenceLength)),
    click.option(
        "--padding",
        type=click.IntRange(min=0),
        help="Pad the file to a multiple of this many bytes (even, 0 disables).",
    ),
    click.option(
        "--item-padding",
        type=click.IntRange(min=0),
        help="Pad every sequence item to a multiple of this many bytes (even, 0 disables).",
    ),
    click.option(
        "--write-mode",
        type=_choices(WriteMode),
        help="Write a DICOM file (default) or only the encoded data set.",
    ),
    # overrides
    click.option(
        "--key",
        "-k",
        "keys",
        multiple=True,
        metavar="PATH[=VALUE]",
        help="Set an attribute after encapsulation, e.g. 'InstitutionName=General'. "
        "Repeatable, applied in order.",
    ),
    click.option(
        "--override",
        is_flag=True,
        help="Keep user supplied values when the document or series disagree.",
    ),
    click.option(
        "--max-depth",
        type=click.IntRange(min=1),
        help="Maximum element nesting accepted in CDA documents.",
    ),
    click.option(
        "--config",
        "-c",
        "config_file",
        type=click.Path(exists=True, dir_okay=False, path_type=pathlib.Path),
        help="YAML configuration file, command line options take precedence.",
    ),
]

MODEL_OPTIONS: list[Callable[[FC], FC]] = [
    click.option("--manufacturer", help="Manufacturer of the model."),
    click.option("--model-name", help="Manufacturer's model name."),
    click.option("--serial-number", help="Device serial number."),
    click.option("--software-versions", help="Software versions."),
    click.option("--frame-of-reference-uid", help="Frame of Reference UID."),
    click.option(
        "--measurement-units",
        nargs=3,
        type=str,
        default=None,
        metavar="VALUE SCHEME MEANING",
        help="Units of the model coordinates [default: mm UCUM mm].",
    ),
]


def encapsulation_options(model: bool = False) -> Callable[[FC], FC]:
    """Attach the common options (and the 3D model options when `model`)."""
    options = ENCAPSULATION_OPTIONS + (MODEL_OPTIONS if model else [])

    def decorator(func: FC) -> FC:
        for option in reversed(options):
            func = option(func)
        return func

    return decorator


def _prune(values: dict[str, Any]) -> dict[str, Any]:
    """Drop unset options so they do not shadow configuration file values."""
    pruned = {}
    for key, value in values.items():
        if isinstance(value, dict):
            value = _prune(value)
            if not value:
                continue
        elif value is None:
            continue
        pruned[key] = value
    return pruned


def _concept(values: tuple[str, str, str] | None) -> dict[str, str | None]:
    if not values:
        return {}
    code_value, coding_scheme, code_meaning = values
    return {
        "code_value": code_value,
        "coding_scheme": coding_scheme,
        "code_meaning": code_meaning,
    }


def settings_from_options(
    input_path: pathlib.Path,
    output_path: pathlib.Path,
    kind: DocumentKind,
    params: dict[str, Any],
) -> EncapsulationSettings:
    """Build the run settings from command line parameters.

    Raises
    ------
    click.UsageError
        If the resulting configuration does not validate.
    """
    overrides = _prune(
        {
            "input": input_path,
            "output": output_path,
            "kind": kind,
            "patient": {
                "name": params.get("patient_name"),
                "id": params.get("patient_id"),
                "birth_date": params.get("patient_birthdate"),
                "sex": params.get("patient_sex"),
            },
            "concept": _concept(params.get("concept_name")),
            "document": {
                "title": params.get("title"),
                "burned_in_annotation": False if params.get("no_annotation") else None,
            },
            "series": {
                "file": params.get("series_from"),
                "fallback_to_new": params.get("fallback_new") or None,
                "study_instance_uid": params.get("study_uid"),
                "series_instance_uid": params.get("series_uid"),
                "sop_instance_uid": params.get("sop_uid"),
                "instance_number": params.get("instance_number"),
                "increment": params.get("increment") or None,
            },
            "equipment": {
                "manufacturer": params.get("manufacturer"),
                "model_name": params.get("model_name"),
                "device_serial_number": params.get("serial_number"),
                "software_versions": params.get("software_versions"),
                "frame_of_reference_uid": params.get("frame_of_reference_uid"),
                "measurement_units": _concept(params.get("measurement_units")),
            },
            "encoding": {
                "transfer_syntax": params.get("transfer_syntax"),
                "group_length": params.get("group_length"),
                "sequence_length": params.get("sequence_length"),
                "file_pad": params.get("padding"),
                "item_pad": params.get("item_padding"),
                "write_mode": params.get("write_mode"),
            },
            "uid_root": params.get("uid_root"),
            "override_conflicts": params.get("override") or None,
            "max_markup_depth": params.get("max_depth"),
        }
    )
    config_file = params.get("config_file")
    try:
        if config_file is not None:
            settings = EncapsulationSettings.from_user_yaml(config_file, **overrides)
        else:
            settings = EncapsulationSettings(**overrides)
    except ValidationError as e:
        raise click.UsageError(str(e)) from e

    keys = params.get("keys") or ()
    settings.override_keys = [*settings.override_keys, *keys]
    return settings


def run_encapsulation(ctx: click.Context, settings: EncapsulationSettings) -> None:
    """Run the pipeline, report the outcome and exit with the error's status."""
    console = Console(stderr=True)
    try:
        result = encapsulate(settings)
    except EncapsulationError as e:
        console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
        ctx.exit(e.exit_code)
    console.print(
        f"[green]Wrote[/green] {escape(str(result.output))} "
        f"({result.kind.value}, {result.document_length} bytes, "
        f"instance {result.identifiers.instance_number})",
        highlight=False,
    )
