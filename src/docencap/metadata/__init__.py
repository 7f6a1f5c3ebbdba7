from docencap.metadata.extractor import extract_from_tree, extract_metadata
from docencap.metadata.record import (
    RECORD_FIELDS,
    FieldState,
    FieldValue,
    MetadataRecord,
    MetadataSource,
)

__all__ = [
    "RECORD_FIELDS",
    "FieldState",
    "FieldValue",
    "MetadataRecord",
    "MetadataSource",
    "extract_from_tree",
    "extract_metadata",
]
