"""
Resolution of the study, series and instance identifiers of a new instance.

Identifiers come, in order of precedence, from the configuration, from an
existing series (the series context), or are generated. User supplied and
context values for the study and series UIDs are reconciled through the
:class:`~docencap.metadata.record.MetadataRecord`, so a disagreement
surfaces as a :class:`~docencap.exceptions.DataConflictError`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from pydicom.uid import UID

from docencap.identifiers.series_context import SeriesContext
from docencap.identifiers.uids import new_uid, validate_uid
from docencap.loggers import logger
from docencap.metadata import MetadataRecord, MetadataSource

if TYPE_CHECKING:
    from docencap.config import EncapsulationSettings

DEFAULT_INSTANCE_NUMBER = 1


@dataclass(frozen=True)
class IdentifierSet:
    """Identifiers of the instance being created."""

    study_instance_uid: UID
    series_instance_uid: UID
    sop_instance_uid: UID
    instance_number: int


def validate_configured_uids(settings: EncapsulationSettings) -> None:
    """Check every user supplied UID.

    Raises
    ------
    InvalidIdentifierError
        On the first syntactically invalid UID.
    """
    configured = {
        "StudyInstanceUID": settings.series.study_instance_uid,
        "SeriesInstanceUID": settings.series.series_instance_uid,
        "SOPInstanceUID": settings.series.sop_instance_uid,
        "FrameOfReferenceUID": settings.equipment.frame_of_reference_uid,
    }
    for field, uid in configured.items():
        if uid is not None:
            validate_uid(uid, field)


def offer_series_context(record: MetadataRecord, context: SeriesContext) -> None:
    """Offer the patient and study/series identity of `context` to `record`.

    Raises
    ------
    DataConflictError
        If the existing series disagrees with a configured value.
    """
    record.update(context.patient, MetadataSource.SERIES_CONTEXT)
    record.update(
        {
            "StudyInstanceUID": context.study_instance_uid,
            "SeriesInstanceUID": context.series_instance_uid,
        },
        MetadataSource.SERIES_CONTEXT,
    )


def _instance_number(
    settings: EncapsulationSettings, context: SeriesContext | None
) -> int:
    options = settings.series
    if options.instance_number is not None:
        if options.increment:
            logger.warning(
                "Explicit instance number given, ignoring increment",
                instance_number=options.instance_number,
            )
        return options.instance_number
    if options.increment:
        if context is None:
            logger.warning(
                "Cannot increment the instance number without a series file",
                instance_number=DEFAULT_INSTANCE_NUMBER,
            )
            return DEFAULT_INSTANCE_NUMBER
        return context.next_instance_number
    return DEFAULT_INSTANCE_NUMBER


def _uid_from_record(
    record: MetadataRecord,
    field: str,
    prefix: str | None,
    inherited: str | None = None,
) -> UID:
    if (uid := record.get(field) or inherited) is not None:
        return validate_uid(uid, field)
    generated = new_uid(prefix, field)
    logger.debug("Generated UID", field=field, uid=generated)
    return generated


def resolve_identifiers(
    settings: EncapsulationSettings,
    record: MetadataRecord,
    context: SeriesContext | None = None,
) -> IdentifierSet:
    """Decide the identifiers of the new instance.

    Parameters
    ----------
    settings : EncapsulationSettings
        The run configuration, consulted for explicit UIDs, the instance
        number, increment and the UID root.
    record : MetadataRecord
        Record reconciled with the series context (see
        :func:`offer_series_context`). Configured study and series UIDs are
        offered to it first, then the UIDs it holds are reused.
    context : SeriesContext, optional
        The series the new instance is appended to.

    Returns
    -------
    IdentifierSet
        Validated identifiers. Missing UIDs are generated once per call.

    Raises
    ------
    InvalidIdentifierError
        If a supplied or inherited UID is invalid.
    DataConflictError
        If a configured UID disagrees with the one already in `record`.
    """
    validate_configured_uids(settings)
    record.update(
        {
            "StudyInstanceUID": settings.series.study_instance_uid,
            "SeriesInstanceUID": settings.series.series_instance_uid,
        },
        MetadataSource.CONFIG,
    )

    prefix = settings.uid_root
    study_uid = _uid_from_record(
        record, "StudyInstanceUID", prefix, context and context.study_instance_uid
    )
    series_uid = _uid_from_record(
        record, "SeriesInstanceUID", prefix, context and context.series_instance_uid
    )
    if settings.series.sop_instance_uid is not None:
        sop_uid = validate_uid(settings.series.sop_instance_uid, "SOPInstanceUID")
    else:
        sop_uid = new_uid(prefix, "SOPInstanceUID")

    identifiers = IdentifierSet(
        study_instance_uid=study_uid,
        series_instance_uid=series_uid,
        sop_instance_uid=sop_uid,
        instance_number=_instance_number(settings, context),
    )
    logger.info(
        "Resolved identifiers",
        study_uid=identifiers.study_instance_uid,
        series_uid=identifiers.series_instance_uid,
        sop_uid=identifiers.sop_instance_uid,
        instance_number=identifiers.instance_number,
    )
    return identifiers
