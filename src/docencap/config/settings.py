from __future__ import annotations

import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Type

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)
from pydicom.uid import RE_VALID_UID_PREFIX

from docencap.documents import DocumentKind, SourceDocument
from docencap.markup import DEFAULT_MAX_DEPTH

DEFAULT_CONFIG_FILE = "docencap.yaml"

# Python's own recursion limit sits at 1000 frames
MAX_MARKUP_DEPTH_LIMIT = 900


class TransferSyntax(str, Enum):
    """Transfer syntaxes the persister can write."""

    EXPLICIT_LITTLE = "explicit-little"
    IMPLICIT_LITTLE = "implicit-little"
    EXPLICIT_BIG = "explicit-big"
    DEFLATED = "deflated"


class GroupLengthMode(str, Enum):
    """Handling of group length elements (gggg,0000) when writing."""

    RECALC = "recalc"
    WITH = "with"
    WITHOUT = "without"


class SequenceLength(str, Enum):
    """Length encoding for sequences and sequence items."""

    EXPLICIT = "explicit"
    UNDEFINED = "undefined"


class WriteMode(str, Enum):
    """Whether to write a DICOM file or a bare data set."""

    FILE = "file"
    DATASET = "dataset"


class CodedConcept(BaseModel):
    """A coded entry (code value, coding scheme designator, code meaning)."""

    code_value: str | None = Field(default=None, title="Code Value")
    coding_scheme: str | None = Field(
        default=None, title="Coding Scheme Designator", examples=["LN", "DCM"]
    )
    code_meaning: str | None = Field(default=None, title="Code Meaning")

    @property
    def complete(self) -> bool:
        return bool(self.code_value and self.coding_scheme and self.code_meaning)


class PatientInfo(BaseModel):
    name: str | None = Field(
        default=None,
        description="Patient's name in DICOM PN format.",
        examples=["Doe^John"],
    )
    id: str | None = Field(default=None, description="Patient ID.")
    birth_date: str | None = Field(
        default=None,
        description="Patient's birth date as YYYYMMDD.",
        examples=["19700101"],
    )
    sex: str | None = Field(
        default=None, description="Patient's sex: M, F or O."
    )

    @field_validator("birth_date")
    @classmethod
    def _validate_birth_date(cls, v: str | None) -> str | None:
        if not v:
            return v
        try:
            datetime.datetime.strptime(v, "%Y%m%d")
        except ValueError as e:
            msg = f"Birth date must be a valid YYYYMMDD date, got '{v}'"
            raise ValueError(msg) from e
        return v

    @field_validator("sex")
    @classmethod
    def _validate_sex(cls, v: str | None) -> str | None:
        if not v:
            return v
        v = v.upper()
        if v not in {"M", "F", "O"}:
            msg = f"Patient sex must be one of M, F, O, got '{v}'"
            raise ValueError(msg)
        return v


class DocumentInfo(BaseModel):
    title: str | None = Field(default=None, description="Document title.")
    burned_in_annotation: bool = Field(
        default=True,
        description="Whether the document contains patient identifying information.",
    )
    hl7_instance_identifier: str | None = Field(
        default=None, description="HL7 instance identifier, root^extension."
    )


class SeriesOptions(BaseModel):
    file: Path | None = Field(
        default=None,
        description="Existing DICOM file (or directory of files) of the series "
        "the new instance belongs to. Study and series identifiers are reused.",
    )
    study_instance_uid: str | None = None
    series_instance_uid: str | None = None
    sop_instance_uid: str | None = None
    instance_number: int | None = Field(default=None, ge=1)
    increment: bool = Field(
        default=False,
        description="Set the instance number to one more than the highest "
        "instance number found in the series file.",
    )
    fallback_to_new: bool = Field(
        default=False,
        description="Continue with new identifiers if the series file cannot be read.",
    )


class EquipmentInfo(BaseModel):
    manufacturer: str | None = None
    model_name: str | None = None
    device_serial_number: str | None = None
    software_versions: str | None = None
    frame_of_reference_uid: str | None = None
    measurement_units: CodedConcept = Field(
        default_factory=lambda: CodedConcept(
            code_value="mm", coding_scheme="UCUM", code_meaning="mm"
        ),
        description="Units of the 3D model coordinates.",
    )

    @field_validator("measurement_units")
    @classmethod
    def _validate_units(cls, v: CodedConcept) -> CodedConcept:
        if not v.complete:
            msg = "Measurement units need a code value, coding scheme and code meaning"
            raise ValueError(msg)
        return v


class EncodingOptions(BaseModel):
    transfer_syntax: TransferSyntax = TransferSyntax.EXPLICIT_LITTLE
    group_length: GroupLengthMode = GroupLengthMode.RECALC
    sequence_length: SequenceLength = SequenceLength.EXPLICIT
    file_pad: int = Field(
        default=0,
        ge=0,
        description="Pad the data set to a multiple of this many bytes, 0 disables.",
    )
    item_pad: int = Field(
        default=0,
        ge=0,
        description="Pad every sequence item to a multiple of this many bytes, "
        "0 disables.",
    )
    write_mode: WriteMode = Field(
        default=WriteMode.FILE,
        description="'file' writes preamble and file meta information, "
        "'dataset' only the encoded data set.",
    )

    @field_validator("file_pad", "item_pad")
    @classmethod
    def _validate_padding(cls, v: int) -> int:
        if v % 2:
            msg = f"Padding must be an even number of bytes, got {v}"
            raise ValueError(msg)
        return v


class EncapsulationSettings(BaseSettings):
    """
    Configuration of one encapsulation run.

    Values come from (highest priority first) keyword arguments, environment
    variables prefixed with ``DOCENCAP_`` (``__`` separates nested fields,
    e.g. ``DOCENCAP_PATIENT__ID``) and ``docencap.yaml`` in the current
    working directory.

    Examples
    --------
    >>> settings = EncapsulationSettings(
    ...     input="report.pdf",
    ...     output="report.dcm",
    ...     patient={"name": "Doe^John", "id": "123"},
    ...     override_keys=["InstitutionName=General Hospital"],
    ... )
    >>> settings.source_document().kind
    <DocumentKind.PDF: 'pdf'>
    """

    input: Path | None = Field(default=None, description="Document to encapsulate.")
    output: Path | None = Field(default=None, description="DICOM file to write.")
    kind: DocumentKind | None = Field(
        default=None,
        description="Document kind, guessed from the input suffix when omitted.",
    )
    patient: PatientInfo = Field(default_factory=PatientInfo)
    concept: CodedConcept = Field(
        default_factory=CodedConcept,
        description="Concept name code of the document.",
    )
    document: DocumentInfo = Field(default_factory=DocumentInfo)
    series: SeriesOptions = Field(default_factory=SeriesOptions)
    equipment: EquipmentInfo = Field(default_factory=EquipmentInfo)
    encoding: EncodingOptions = Field(default_factory=EncodingOptions)
    uid_root: str | None = Field(
        default=None,
        description="Prefix for generated UIDs, ending with a dot. "
        "Defaults to the pydicom root.",
        examples=["1.2.826.0.1.3680043.8.498."],
    )
    override_keys: list[str] = Field(
        default_factory=list,
        description="Attributes set after encapsulation without validation, "
        "e.g. 'PatientName=Doe^John' or '(0010,0020)=123'.",
    )
    override_conflicts: bool = Field(
        default=False,
        description="On disagreement between sources keep the first value "
        "(configuration wins) and log a warning instead of failing.",
    )
    max_markup_depth: int = Field(
        default=DEFAULT_MAX_DEPTH, ge=1, le=MAX_MARKUP_DEPTH_LIMIT
    )

    model_config = SettingsConfigDict(
        env_prefix="DOCENCAP_",
        env_nested_delimiter="__",
        yaml_file=(Path().cwd() / DEFAULT_CONFIG_FILE,),
        extra="ignore",
    )

    @field_validator("uid_root")
    @classmethod
    def _validate_uid_root(cls, v: str | None) -> str | None:
        if v is None:
            return v
        if not RE_VALID_UID_PREFIX.match(v) or len(v) > 54:
            msg = (
                f"UID root must be dot-separated numbers ending with a dot "
                f"and at most 54 characters, got '{v}'"
            )
            raise ValueError(msg)
        return v

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            YamlConfigSettingsSource(settings_cls),
        )

    @classmethod
    def from_user_yaml(cls, path: Path, **overrides: Any) -> EncapsulationSettings:  # noqa: ANN401
        """Load settings from a YAML file, `overrides` take precedence."""
        source = YamlConfigSettingsSource(cls, yaml_file=path)
        return cls(**_deep_merge(source(), overrides))

    def to_yaml(self, path: Path) -> None:
        """Write the effective settings to a YAML file."""
        import yaml  # type: ignore

        model = self.model_dump(mode="json")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("w") as f:
                yaml.dump(model, f, sort_keys=False)
        except OSError as e:
            msg = f"Failed to save settings to {path}: {e}"
            raise ValueError(msg) from e

    def source_document(self) -> SourceDocument:
        """The configured input as a :class:`SourceDocument`."""
        if self.input is None:
            msg = "No input document configured"
            raise ValueError(msg)
        return SourceDocument.from_path(self.input, self.kind)


def _deep_merge(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged
