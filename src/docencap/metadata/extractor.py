"""
Extraction of patient, concept and document metadata from a CDA document.

Each semantic field is searched in the markup tree and offered to the
:class:`~docencap.metadata.record.MetadataRecord` with source ``MARKUP``.
Values already present in the record (configuration, series context) are
checked against the document; the first disagreement aborts extraction.
All ``mediaType`` attributes found anywhere in the document are collected
into the record's media type list.
"""

from __future__ import annotations

from pathlib import Path

from docencap.loggers import logger
from docencap.markup import (
    DEFAULT_MAX_DEPTH,
    SEMANTIC_FIELDS,
    MarkupNode,
    parse_markup,
    search,
)
from docencap.metadata.record import MetadataRecord, MetadataSource

MEDIA_TYPE_ATTRIBUTE = "mediaType"


def extract_from_tree(
    root: MarkupNode,
    record: MetadataRecord,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> MetadataRecord:
    """Offer every semantic field found under `root` to `record`.

    Raises
    ------
    DataConflictError
        On the first field whose document value disagrees with the record.
    MalformedInputError
        If the tree is deeper than `max_depth`.
    """
    for field in SEMANTIC_FIELDS:
        result = search(root, field, max_depth=max_depth)
        if not result.found:
            logger.debug("Field not present in document", field=field)
            continue
        if len(result.values) > 1:
            logger.warning(
                "Several values for a single-valued field, storing them joined",
                field=field,
                values=len(result.values),
            )
        record.offer(field, result.joined, MetadataSource.MARKUP)

    media_types = search(root, MEDIA_TYPE_ATTRIBUTE, max_depth=max_depth)
    record.add_media_types(media_types.values)
    if record.media_types:
        logger.debug("Collected media types", media_types=record.media_types)
    return record


def extract_metadata(
    path: Path,
    record: MetadataRecord | None = None,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> MetadataRecord:
    """Parse a CDA document and reconcile its metadata into `record`.

    Parameters
    ----------
    path : Path
        The CDA document.
    record : MetadataRecord, optional
        Record holding previously known values. A new record is created
        when omitted.
    max_depth : int
        Maximum element nesting accepted.

    Returns
    -------
    MetadataRecord
        The updated record.

    Raises
    ------
    IOFailureError
        If the document cannot be read.
    MalformedInputError
        If the document is not well-formed or has no ``ClinicalDocument`` root.
    DataConflictError
        If a document value disagrees with a known value.
    """
    record = record if record is not None else MetadataRecord()
    root = parse_markup(path, max_depth=max_depth)
    logger.info("Extracting metadata from CDA document", path=path)
    return extract_from_tree(root, record, max_depth=max_depth)
