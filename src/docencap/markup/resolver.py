"""
Mapping of semantic metadata fields to CDA search paths.

The CDA to DICOM attribute mapping follows DICOM PS3.20 Annex A.8. Each
semantic field resolves to one or more :class:`SearchPath` objects that
describe where in the tree the value lives (relative to the
``ClinicalDocument`` root) and how the value is read from a matching node.
Any other key that is a valid XML attribute name resolves to an
"anywhere" path which collects that attribute from every node.

Examples
--------
>>> [p.tags for p in resolve("PatientID")]
[('recordTarget', 'patientRole', 'id')]
>>> resolve("mediaType")[0].anywhere
True
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable

from docencap.exceptions import UnknownAttributeError
from docencap.markup.node import MarkupNode

NodeReader = Callable[[MarkupNode], "str | None"]
"""Reads a value from a matched node.

Element readers return ``""`` for an empty element, so the match still counts.
Attribute readers return ``None`` when the attribute is absent.
"""

XML_NAME = re.compile(r"^[A-Za-z_][\w.\-]*$")

PATIENT = ("recordTarget", "patientRole", "patient")

HL7_TO_DICOM_SEX = {"M": "M", "F": "F", "UN": "O"}


@dataclass(frozen=True)
class SearchPath:
    """Location of a value in the markup tree.

    Attributes
    ----------
    tags : tuple[str, ...]
        Element names from the root's children down to the matching node.
    reader : NodeReader
        Extracts the value from a matching node.
    anywhere : bool
        Match nodes at any depth, ignoring `tags`.
    """

    tags: tuple[str, ...]
    reader: NodeReader
    anywhere: bool = False

    def matches(self, trail: tuple[str, ...]) -> bool:
        return self.anywhere or trail == self.tags


def attribute(name: str) -> NodeReader:
    def read(node: MarkupNode) -> str | None:
        return node.get(name)

    read.__name__ = f"attribute_{name}"
    return read


def element_text(node: MarkupNode) -> str:
    return node.text or ""


def person_name(node: MarkupNode) -> str:
    """Compose a DICOM PN value from an HL7 ``name`` element.

    Components are family^given^middle^prefix^suffix, where every ``given``
    after the first is treated as a middle name. Trailing empty
    components are dropped. A name given as plain text is returned as is,
    an empty ``name`` element gives an empty string.
    """

    def text_of(tag: str) -> str:
        child = node.find(tag)
        if child is None:
            return ""
        return child.text or ""

    given = [child.text or "" for child in node.find_all("given")]
    components = [
        text_of("family"),
        given[0] if given else "",
        " ".join(name for name in given[1:] if name),
        text_of("prefix"),
        text_of("suffix"),
    ]
    value = "^".join(components).rstrip("^")
    return value or node.text or ""


def birth_date(node: MarkupNode) -> str | None:
    """HL7 TS values carry a time part, DICOM DA keeps YYYYMMDD."""
    value = node.get("value")
    return value[:8] if value is not None else None


def administrative_sex(node: MarkupNode) -> str | None:
    code = node.get("code")
    if code is None:
        return None
    return HL7_TO_DICOM_SEX.get(code.upper(), code.upper())


def instance_identifier(node: MarkupNode) -> str | None:
    root = node.get("root")
    if root is None:
        return None
    extension = node.get("extension")
    return f"{root}^{extension}" if extension else root


FIELD_PATHS: dict[str, tuple[SearchPath, ...]] = {
    "PatientName": (SearchPath((*PATIENT, "name"), person_name),),
    "PatientID": (
        SearchPath(("recordTarget", "patientRole", "id"), attribute("extension")),
    ),
    "PatientBirthDate": (SearchPath((*PATIENT, "birthTime"), birth_date),),
    "PatientSex": (
        SearchPath((*PATIENT, "administrativeGenderCode"), administrative_sex),
    ),
    "CodeValue": (SearchPath(("code",), attribute("code")),),
    "CodingSchemeDesignator": (SearchPath(("code",), attribute("codeSystemName")),),
    "CodeMeaning": (SearchPath(("code",), attribute("displayName")),),
    "DocumentTitle": (SearchPath(("title",), element_text),),
    "HL7InstanceIdentifier": (SearchPath(("id",), instance_identifier),),
}
"""Semantic field name to the CDA paths holding its value."""

SEMANTIC_FIELDS: tuple[str, ...] = tuple(FIELD_PATHS)


def resolve(key: str) -> tuple[SearchPath, ...]:
    """Return the search paths for a semantic field or raw attribute name.

    Raises
    ------
    UnknownAttributeError
        If `key` is neither a semantic field nor a valid attribute name.
    """
    if key in FIELD_PATHS:
        return FIELD_PATHS[key]
    if XML_NAME.match(key):
        return (SearchPath((), attribute(key), anywhere=True),)
    raise UnknownAttributeError(key)
