from docencap.identifiers.manager import (
    DEFAULT_INSTANCE_NUMBER,
    IdentifierSet,
    offer_series_context,
    resolve_identifiers,
    validate_configured_uids,
)
from docencap.identifiers.series_context import (
    SeriesContext,
    load_series_context,
)
from docencap.identifiers.uids import is_valid_uid, new_uid, validate_uid

__all__ = [
    "DEFAULT_INSTANCE_NUMBER",
    "IdentifierSet",
    "SeriesContext",
    "is_valid_uid",
    "load_series_context",
    "new_uid",
    "offer_series_context",
    "resolve_identifiers",
    "validate_configured_uids",
    "validate_uid",
]
