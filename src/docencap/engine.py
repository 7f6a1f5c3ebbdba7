"""
The encapsulation pipeline.

A run reconciles metadata from the configuration, an optional existing
series and (for CDA) the document itself, decides the identifiers of the
new instance, builds the header, inserts the document, applies override
keys and writes the file. Each stage is a plain function of the settings so
that callers can run the stages separately. No output file is created when
any stage fails.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass
from pathlib import Path

from pydicom.dataset import Dataset

from docencap.config import EncapsulationSettings
from docencap.dataset import (
    apply_override_keys,
    build_header,
    insert_payload,
    write_dataset,
)
from docencap.documents import DocumentKind, SourceDocument
from docencap.exceptions import (
    EncapsulationError,
    IOFailureError,
    PersistFailureError,
    SeriesContextUnavailableError,
)
from docencap.identifiers import (
    IdentifierSet,
    SeriesContext,
    load_series_context,
    offer_series_context,
    validate_configured_uids,
)
from docencap.identifiers import resolve_identifiers as _resolve_identifiers
from docencap.loggers import logger
from docencap.metadata import MetadataRecord, MetadataSource, extract_metadata


@dataclass(frozen=True)
class EncapsulationResult:
    """Outcome of a successful run."""

    output: Path
    kind: DocumentKind
    identifiers: IdentifierSet
    document_length: int
    metadata: dict[str, str]


def seed_record(settings: EncapsulationSettings) -> MetadataRecord:
    """A new record holding the user supplied values."""
    record = MetadataRecord(override_conflicts=settings.override_conflicts)
    record.update(
        {
            "PatientName": settings.patient.name,
            "PatientID": settings.patient.id,
            "PatientBirthDate": settings.patient.birth_date,
            "PatientSex": settings.patient.sex,
            "CodeValue": settings.concept.code_value,
            "CodingSchemeDesignator": settings.concept.coding_scheme,
            "CodeMeaning": settings.concept.code_meaning,
            "DocumentTitle": settings.document.title,
            "HL7InstanceIdentifier": settings.document.hl7_instance_identifier,
            "StudyInstanceUID": settings.series.study_instance_uid,
            "SeriesInstanceUID": settings.series.series_instance_uid,
        },
        MetadataSource.CONFIG,
    )
    return record


def load_context(settings: EncapsulationSettings) -> SeriesContext | None:
    """Load the configured series context, if any.

    Raises
    ------
    SeriesContextUnavailableError
        If the context cannot be loaded and ``series.fallback_to_new`` is
        not set.
    """
    path = settings.series.file
    if path is None:
        return None
    try:
        return load_series_context(path)
    except SeriesContextUnavailableError as e:
        if not settings.series.fallback_to_new:
            raise
        logger.warning(
            "Series context unavailable, continuing with new identifiers",
            path=path,
            reason=e.reason,
        )
        return None


def extract_metadata_from_source(
    settings: EncapsulationSettings, context: SeriesContext | None = None
) -> MetadataRecord:
    """Reconcile configuration, series context and document metadata.

    Sources are consulted in the order configuration, series context,
    markup document. Only CDA documents carry extractable metadata.

    Raises
    ------
    DataConflictError
        If two sources disagree and conflicts are not overridden.
    IOFailureError, MalformedInputError
        If the CDA document cannot be read or parsed.
    """
    record = seed_record(settings)
    if context is not None:
        offer_series_context(record, context)

    source = settings.source_document()
    if source.kind is DocumentKind.CDA:
        extract_metadata(source.path, record, max_depth=settings.max_markup_depth)
    return record


def resolve_identifiers(
    settings: EncapsulationSettings,
    record: MetadataRecord,
    context: SeriesContext | None = None,
) -> IdentifierSet:
    """Decide the study, series and instance identifiers of the new instance."""
    return _resolve_identifiers(settings, record, context)


def build_dataset(
    settings: EncapsulationSettings,
    record: MetadataRecord,
    identifiers: IdentifierSet,
    source: SourceDocument,
    context: SeriesContext | None = None,
    now: datetime.datetime | None = None,
) -> Dataset:
    """Header, document and overrides, ready to be written."""
    ds = build_header(record, identifiers, source.kind, settings, context, now)
    insert_payload(ds, source)
    apply_override_keys(ds, settings.override_keys)
    return ds


def _output_path(settings: EncapsulationSettings) -> Path:
    if settings.output is None:
        raise PersistFailureError("<unset>", ValueError("no output file configured"))
    return settings.output


def build_and_persist(
    settings: EncapsulationSettings,
    record: MetadataRecord,
    identifiers: IdentifierSet,
    source: SourceDocument,
    context: SeriesContext | None = None,
) -> int:
    """Build the dataset and write it to ``settings.output``.

    Returns
    -------
    int
        ``EXIT_NO_ERROR``.
    """
    ds = build_dataset(settings, record, identifiers, source, context)
    return write_dataset(ds, _output_path(settings), settings.encoding)


def _check_source(source: SourceDocument) -> None:
    if not source.path.is_file():
        msg = f"Source document {source.path} does not exist or is not a file"
        raise IOFailureError(msg)
    source.check_signature()


def encapsulate(
    settings: EncapsulationSettings, now: datetime.datetime | None = None
) -> EncapsulationResult:
    """Run the full pipeline for one document.

    Parameters
    ----------
    settings : EncapsulationSettings
        The run configuration.
    now : datetime.datetime, optional
        Creation time written to the header, the current time when omitted.

    Returns
    -------
    EncapsulationResult
        The written file, the document kind, the identifiers used and the
        reconciled metadata.

    Raises
    ------
    EncapsulationError
        Any of its subclasses; the error is logged before being re-raised
        and no output file is created.
    """
    try:
        output = _output_path(settings)
        if settings.input is None:
            raise IOFailureError("No input document configured")
        source = settings.source_document()
        _check_source(source)
        validate_configured_uids(settings)
        logger.info(
            "Encapsulating document",
            input=source.path,
            output=output,
            kind=source.kind.value,
        )

        context = load_context(settings)
        record = extract_metadata_from_source(settings, context)
        identifiers = resolve_identifiers(settings, record, context)
        ds = build_dataset(settings, record, identifiers, source, context, now)
        write_dataset(ds, output, settings.encoding)
    except EncapsulationError as e:
        logger.error(
            "Encapsulation failed",
            error=str(e),
            error_type=type(e).__name__,
            exit_code=e.exit_code,
        )
        raise

    return EncapsulationResult(
        output=output,
        kind=source.kind,
        identifiers=identifiers,
        document_length=int(ds.EncapsulatedDocumentLength),
        metadata=record.as_dict(),
    )
