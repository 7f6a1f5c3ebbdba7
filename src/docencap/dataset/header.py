"""
Construction of the DICOM header of an encapsulated document instance.

The header is assembled module by module (SOP Common, Patient, General
Study, Encapsulated Document Series, equipment, Encapsulated Document and,
for 3D models, Frame of Reference and Manufacturing 3D Model). The builder
is deterministic for given inputs; the current time is injectable.
"""

from __future__ import annotations

import datetime
from typing import TYPE_CHECKING

from pydicom.dataset import Dataset, FileMetaDataset
from pydicom.sequence import Sequence
from pydicom.uid import PYDICOM_IMPLEMENTATION_UID

from docencap.documents import DocumentKind
from docencap.identifiers import IdentifierSet, SeriesContext, new_uid, validate_uid
from docencap.loggers import logger
from docencap.metadata import MetadataRecord

if TYPE_CHECKING:
    from docencap.config import CodedConcept, EncapsulationSettings

SPECIFIC_CHARACTER_SET = "ISO_IR 192"
CONVERSION_TYPE = "WSD"
DEFAULT_SERIES_NUMBER = "1"

# type 2 attributes of the General Study module, empty unless inherited
STUDY_TYPE2_KEYWORDS = ("ReferringPhysicianName", "StudyID", "AccessionNumber")


def _package_name_and_version() -> tuple[str, str]:
    from docencap import __version__

    return "docencap", __version__


def implementation_version_name() -> str:
    """ImplementationVersionName (SH, at most 16 characters)."""
    name, version = _package_name_and_version()
    return f"{name.upper()}_{version}"[:16]


def coded_item(value: str, scheme: str, meaning: str) -> Dataset:
    """A code sequence item."""
    item = Dataset()
    item.CodeValue = value
    item.CodingSchemeDesignator = scheme
    item.CodeMeaning = meaning
    return item


def _concept_name_sequence(record: MetadataRecord) -> Sequence:
    value = record["CodeValue"]
    scheme = record["CodingSchemeDesignator"]
    meaning = record["CodeMeaning"]
    if value and scheme and meaning:
        return Sequence([coded_item(value, scheme, meaning)])
    if value or scheme or meaning:
        logger.warning(
            "Incomplete concept name code, leaving ConceptNameCodeSequence empty",
            code_value=value,
            coding_scheme=scheme,
            code_meaning=meaning,
        )
    return Sequence()


def _add_sop_common(
    ds: Dataset, kind: DocumentKind, identifiers: IdentifierSet, now: datetime.datetime
) -> None:
    ds.SpecificCharacterSet = SPECIFIC_CHARACTER_SET
    ds.InstanceCreationDate = now.strftime("%Y%m%d")
    ds.InstanceCreationTime = now.strftime("%H%M%S")
    ds.SOPClassUID = kind.sop_class_uid
    ds.SOPInstanceUID = identifiers.sop_instance_uid


def _add_patient(ds: Dataset, record: MetadataRecord) -> None:
    ds.PatientName = record["PatientName"]
    ds.PatientID = record["PatientID"]
    ds.PatientBirthDate = record["PatientBirthDate"]
    ds.PatientSex = record["PatientSex"]


def _add_study(
    ds: Dataset,
    identifiers: IdentifierSet,
    context: SeriesContext | None,
    now: datetime.datetime,
) -> None:
    inherited = context.study_series_attributes if context else {}
    ds.StudyInstanceUID = identifiers.study_instance_uid
    ds.StudyDate = inherited.get("StudyDate", now.strftime("%Y%m%d"))
    ds.StudyTime = inherited.get("StudyTime", now.strftime("%H%M%S"))
    for keyword in STUDY_TYPE2_KEYWORDS:
        setattr(ds, keyword, inherited.get(keyword, ""))
    if "StudyDescription" in inherited:
        ds.StudyDescription = inherited["StudyDescription"]


def _add_series(
    ds: Dataset,
    kind: DocumentKind,
    identifiers: IdentifierSet,
    context: SeriesContext | None,
) -> None:
    inherited = context.study_series_attributes if context else {}
    ds.Modality = kind.modality
    ds.SeriesInstanceUID = identifiers.series_instance_uid
    ds.SeriesNumber = inherited.get("SeriesNumber", DEFAULT_SERIES_NUMBER)
    for keyword in ("SeriesDate", "SeriesTime", "SeriesDescription"):
        if keyword in inherited:
            setattr(ds, keyword, inherited[keyword])


def _add_equipment(
    ds: Dataset, kind: DocumentKind, settings: EncapsulationSettings
) -> None:
    equipment = settings.equipment
    name, version = _package_name_and_version()
    if not kind.is_model:
        ds.Manufacturer = equipment.manufacturer or ""
        ds.ConversionType = CONVERSION_TYPE
        return

    # Enhanced General Equipment: all type 1
    ds.Manufacturer = equipment.manufacturer or name
    ds.ManufacturerModelName = equipment.model_name or name
    ds.DeviceSerialNumber = equipment.device_serial_number or "0"
    ds.SoftwareVersions = equipment.software_versions or f"{name} {version}"
    ds.ConversionType = CONVERSION_TYPE


def _add_model(
    ds: Dataset, settings: EncapsulationSettings, units: CodedConcept
) -> None:
    frame_uid = settings.equipment.frame_of_reference_uid
    ds.FrameOfReferenceUID = (
        validate_uid(frame_uid, "FrameOfReferenceUID")
        if frame_uid
        else new_uid(settings.uid_root, "FrameOfReferenceUID")
    )
    ds.PositionReferenceIndicator = ""
    ds.MeasurementUnitsCodeSequence = Sequence(
        [coded_item(units.code_value, units.coding_scheme, units.code_meaning)]
    )


def _add_document(
    ds: Dataset,
    kind: DocumentKind,
    record: MetadataRecord,
    identifiers: IdentifierSet,
    settings: EncapsulationSettings,
    now: datetime.datetime,
) -> None:
    ds.InstanceNumber = identifiers.instance_number
    ds.ContentDate = now.strftime("%Y%m%d")
    ds.ContentTime = now.strftime("%H%M%S")
    ds.AcquisitionDateTime = now.strftime("%Y%m%d%H%M%S")
    ds.BurnedInAnnotation = "YES" if settings.document.burned_in_annotation else "NO"
    ds.DocumentTitle = record["DocumentTitle"]
    ds.ConceptNameCodeSequence = _concept_name_sequence(record)
    ds.MIMETypeOfEncapsulatedDocument = kind.mime_type

    if kind is DocumentKind.CDA:
        ds.HL7InstanceIdentifier = record["HL7InstanceIdentifier"]
        if record.media_types:
            ds.ListOfMIMETypes = record.media_types


def build_file_meta(kind: DocumentKind, identifiers: IdentifierSet) -> FileMetaDataset:
    """File meta information, without the transfer syntax."""
    meta = FileMetaDataset()
    meta.FileMetaInformationVersion = b"\x00\x01"
    meta.MediaStorageSOPClassUID = kind.sop_class_uid
    meta.MediaStorageSOPInstanceUID = identifiers.sop_instance_uid
    meta.ImplementationClassUID = PYDICOM_IMPLEMENTATION_UID
    meta.ImplementationVersionName = implementation_version_name()
    return meta


def build_header(
    record: MetadataRecord,
    identifiers: IdentifierSet,
    kind: DocumentKind,
    settings: EncapsulationSettings,
    context: SeriesContext | None = None,
    now: datetime.datetime | None = None,
) -> Dataset:
    """Build the header of an encapsulated document instance.

    Parameters
    ----------
    record : MetadataRecord
        Reconciled patient, concept and document metadata. Unknown type 2
        attributes are written empty.
    identifiers : IdentifierSet
        Study, series and SOP instance UIDs and the instance number.
    kind : DocumentKind
        Selects the SOP class, modality and kind specific modules.
    settings : EncapsulationSettings
        Document and equipment options.
    context : SeriesContext, optional
        Existing series whose study/series attributes are repeated.
    now : datetime.datetime, optional
        Creation time, the current local time when omitted.

    Returns
    -------
    Dataset
        The header with file meta information, without the document.

    Examples
    --------
    >>> from docencap.config import EncapsulationSettings
    >>> ids = IdentifierSet("1.2.3", "1.2.3.4", "1.2.3.4.5", 1)
    >>> ds = build_header(
    ...     MetadataRecord(), ids, DocumentKind.PDF, EncapsulationSettings()
    ... )
    >>> ds.Modality, ds.MIMETypeOfEncapsulatedDocument
    ('DOC', 'application/pdf')
    """
    now = now or datetime.datetime.now()

    ds = Dataset()
    _add_sop_common(ds, kind, identifiers, now)
    _add_patient(ds, record)
    _add_study(ds, identifiers, context, now)
    _add_series(ds, kind, identifiers, context)
    _add_equipment(ds, kind, settings)
    if kind.is_model:
        _add_model(ds, settings, settings.equipment.measurement_units)
    _add_document(ds, kind, record, identifiers, settings, now)
    ds.file_meta = build_file_meta(kind, identifiers)

    logger.debug(
        "Built header",
        kind=kind.value,
        sop_class=kind.sop_class_uid.name,
        sop_uid=identifiers.sop_instance_uid,
        elements=len(ds),
    )
    return ds
