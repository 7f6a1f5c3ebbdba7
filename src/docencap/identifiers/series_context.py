"""
Loading of an existing series to append a new instance to.

A series context is a DICOM file, or a directory of DICOM files, belonging
to a single series. Only the identifying study/series attributes, the
patient attributes and the highest instance number are read from it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from pydicom import dcmread
from pydicom.dataset import Dataset
from pydicom.errors import InvalidDicomError
from pydicom.misc import is_dicom

from docencap.exceptions import SeriesContextUnavailableError
from docencap.loggers import logger

PATIENT_KEYWORDS = ("PatientName", "PatientID", "PatientBirthDate", "PatientSex")

STUDY_SERIES_KEYWORDS = (
    "StudyDate",
    "StudyTime",
    "StudyID",
    "AccessionNumber",
    "ReferringPhysicianName",
    "StudyDescription",
    "SeriesDate",
    "SeriesTime",
    "SeriesNumber",
    "SeriesDescription",
)
"""Attributes repeated unchanged in every instance of a series."""

CONTEXT_TAGS = [
    "StudyInstanceUID",
    "SeriesInstanceUID",
    "InstanceNumber",
    *PATIENT_KEYWORDS,
    *STUDY_SERIES_KEYWORDS,
]


@dataclass(frozen=True)
class SeriesContext:
    """Identifiers and shared attributes of an existing series."""

    path: Path
    study_instance_uid: str
    series_instance_uid: str
    max_instance_number: int | None = None
    patient: dict[str, str] = field(default_factory=dict)
    study_series_attributes: dict[str, str] = field(default_factory=dict)

    @property
    def next_instance_number(self) -> int:
        return (self.max_instance_number or 0) + 1


def _read_context_dataset(path: Path) -> Dataset:
    try:
        return dcmread(path, specific_tags=CONTEXT_TAGS, stop_before_pixels=True)
    except FileNotFoundError as e:
        raise SeriesContextUnavailableError(path, "file not found") from e
    except InvalidDicomError as e:
        raise SeriesContextUnavailableError(path, f"not a DICOM file: {e}") from e
    except (OSError, ValueError, EOFError) as e:
        raise SeriesContextUnavailableError(path, f"cannot decode: {e}") from e


def _string_values(ds: Dataset, keywords: Iterable[str]) -> dict[str, str]:
    return {
        keyword: str(ds[keyword].value)
        for keyword in keywords
        if keyword in ds and ds[keyword].value not in (None, "")
    }


def _instance_number(ds: Dataset, path: Path) -> int | None:
    value = ds.get("InstanceNumber")
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise SeriesContextUnavailableError(
            path, f"invalid InstanceNumber '{value}'"
        ) from e


def _context_files(path: Path) -> list[Path]:
    if path.is_dir():
        try:
            files = sorted(
                p for p in path.rglob("*") if p.is_file() and is_dicom(p)
            )
        except OSError as e:
            raise SeriesContextUnavailableError(
                path, f"cannot scan directory: {e}"
            ) from e
        if not files:
            raise SeriesContextUnavailableError(path, "no DICOM files in directory")
        return files
    if not path.exists():
        raise SeriesContextUnavailableError(path, "file not found")
    return [path]


def load_series_context(path: Path) -> SeriesContext:
    """Read the study/series identity of an existing series.

    Parameters
    ----------
    path : Path
        A DICOM file of the series, or a directory whose DICOM files all
        belong to the same series.

    Returns
    -------
    SeriesContext
        Study and series UIDs, the highest instance number seen, patient
        attributes and study/series attributes of the first file.

    Raises
    ------
    SeriesContextUnavailableError
        If the path cannot be read or decoded, lacks study/series UIDs, or a
        directory holds files from more than one series.
    """
    path = Path(path)
    files = _context_files(path)

    first: Dataset | None = None
    series_uids: set[str] = set()
    instance_numbers: list[int] = []
    for file in files:
        ds = _read_context_dataset(file)
        study_uid = ds.get("StudyInstanceUID")
        series_uid = ds.get("SeriesInstanceUID")
        if not study_uid or not series_uid:
            raise SeriesContextUnavailableError(
                file, "missing StudyInstanceUID or SeriesInstanceUID"
            )
        series_uids.add(str(series_uid))
        if (number := _instance_number(ds, file)) is not None:
            instance_numbers.append(number)
        if first is None:
            first = ds

    if len(series_uids) > 1:
        raise SeriesContextUnavailableError(
            path, f"files belong to {len(series_uids)} different series"
        )
    if first is None:
        raise SeriesContextUnavailableError(path, "no DICOM files read")

    context = SeriesContext(
        path=path,
        study_instance_uid=str(first.StudyInstanceUID),
        series_instance_uid=str(first.SeriesInstanceUID),
        max_instance_number=max(instance_numbers) if instance_numbers else None,
        patient=_string_values(first, PATIENT_KEYWORDS),
        study_series_attributes=_string_values(first, STUDY_SERIES_KEYWORDS),
    )
    logger.info(
        "Loaded series context",
        path=path,
        files=len(files),
        study_uid=context.study_instance_uid,
        series_uid=context.series_instance_uid,
        max_instance_number=context.max_instance_number,
    )
    return context
