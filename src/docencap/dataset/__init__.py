"""Construction, modification and writing of the encapsulated document dataset."""

from docencap.dataset.header import build_file_meta, build_header, coded_item
from docencap.dataset.overrides import (
    OverrideKey,
    PathComponent,
    apply_override_key,
    apply_override_keys,
    parse_override_key,
)
from docencap.dataset.payload import MAX_PAYLOAD_LENGTH, insert_payload
from docencap.dataset.persist import encode_file, write_dataset

__all__ = [
    "MAX_PAYLOAD_LENGTH",
    "OverrideKey",
    "PathComponent",
    "apply_override_key",
    "apply_override_keys",
    "build_file_meta",
    "build_header",
    "coded_item",
    "encode_file",
    "insert_payload",
    "parse_override_key",
    "write_dataset",
]
