"""
DICOM dictionary utilities.

This module provides utilities for:
- Resolving DICOM keywords or ``(gggg,eeee)`` strings to tags.
- Checking the existence of DICOM keywords.
- Finding similar DICOM keywords for error messages.
"""

import difflib
import functools
import re
from typing import FrozenSet, List, Union

from pydicom._dicom_dict import DicomDictionary
from pydicom.datadict import dictionary_has_tag, tag_for_keyword
from pydicom.tag import BaseTag, Tag

from docencap.exceptions import UnknownAttributeError

ALL_DICOM_TAGS: FrozenSet[str] = frozenset(
    value[4] for value in DicomDictionary.values()
)

TAG_PATTERN = re.compile(
    r"^\(?\s*([0-9A-Fa-f]{4})\s*,\s*([0-9A-Fa-f]{4})\s*\)?$"
)


@functools.lru_cache(maxsize=1024)
def tag_exists(keyword: Union[str, int]) -> bool:
    """Boolean check if a DICOM tag exists for a given keyword or tag.

    Examples
    --------
    >>> tag_exists("PatientID")
    True

    >>> tag_exists("InvalidKeyword")
    False

    >>> tag_exists(0x00100020)
    True
    """
    return dictionary_has_tag(keyword)


@functools.lru_cache(maxsize=1024)
def similar_tags(
    keyword: str, n: int = 3, threshold: float = 0.6
) -> List[str]:
    """Find similar DICOM keywords for a given, possibly misspelled, keyword.

    Parameters
    ----------
    keyword : str
        The keyword to search for similar tags.
    n : int, optional
        Maximum number of similar tags to return (default is 3).
    threshold : float, optional
        Minimum similarity ratio (default is 0.6).

    Examples
    --------
    >>> similar_tags("PatinetID")
    ['PatientID', 'PatientName', 'PatientBirthDate']
    """
    return difflib.get_close_matches(keyword, ALL_DICOM_TAGS, n, threshold)


def resolve_tag(key: str) -> BaseTag:
    """Resolve a DICOM keyword or tag string to a tag.

    Accepts keywords (``PatientName``) and group/element pairs with or
    without parentheses (``(0010,0010)``, ``0010,0010``).

    Raises
    ------
    UnknownAttributeError
        If the key is neither a dictionary keyword nor a tag string.

    Examples
    --------
    >>> resolve_tag("PatientName")
    (0010,0010)
    >>> resolve_tag("(0010,0020)")
    (0010,0020)
    """
    key = key.strip()
    if match := TAG_PATTERN.match(key):
        return Tag(int(match.group(1), 16), int(match.group(2), 16))
    if (tag := tag_for_keyword(key)) is not None:
        return Tag(tag)
    raise UnknownAttributeError(key, similar_tags(key))
