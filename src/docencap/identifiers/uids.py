"""UID validation and generation."""

from __future__ import annotations

from pydicom.uid import PYDICOM_ROOT_UID, UID, generate_uid

from docencap.exceptions import InvalidIdentifierError

MAX_UID_LENGTH = 64


def is_valid_uid(uid: str | None) -> bool:
    """Check a UID: dot-separated numeric components, no leading zeros, <= 64 chars.

    Examples
    --------
    >>> is_valid_uid("1.2.840.10008.5.1.4.1.1.104.1")
    True
    >>> is_valid_uid("1..2")
    False
    >>> is_valid_uid("1.02")
    False
    """
    return bool(uid) and UID(uid).is_valid


def validate_uid(uid: str, field: str) -> UID:
    """Return `uid` as a :class:`~pydicom.uid.UID` or raise.

    Raises
    ------
    InvalidIdentifierError
        If `uid` is not a syntactically valid UID.
    """
    if not is_valid_uid(uid):
        raise InvalidIdentifierError(field, uid)
    return UID(uid)


def new_uid(prefix: str | None = None, field: str = "generated UID") -> UID:
    """Generate a globally unique UID below `prefix` (pydicom root by default)."""
    uid = generate_uid(prefix=prefix or PYDICOM_ROOT_UID)
    return validate_uid(uid, field)
