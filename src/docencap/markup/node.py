"""Read-only markup tree built from a CDA document.

The tree is produced once by :func:`parse_markup` from the output of the
hardened ``defusedxml`` parser and is then only read by the searcher.
XML namespaces are stripped from tag and attribute names so that paths
can be written as plain CDA element names.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Iterator, Mapping

from defusedxml import DefusedXmlException
from defusedxml.ElementTree import ParseError, fromstring

from docencap.exceptions import IOFailureError, MalformedInputError
from docencap.loggers import logger

if TYPE_CHECKING:
    from xml.etree.ElementTree import Element

CDA_ROOT_TAG = "ClinicalDocument"
DEFAULT_MAX_DEPTH = 256


@dataclass(frozen=True)
class MarkupNode:
    """A node of a parsed markup tree.

    Attributes
    ----------
    tag : str
        Element name without namespace.
    attributes : Mapping[str, str]
        Attribute name to value, names without namespace.
    children : tuple[MarkupNode, ...]
        Child elements in document order.
    text : str | None
        Stripped element text, ``None`` if the element has no text.
    """

    tag: str
    attributes: Mapping[str, str] = field(default_factory=dict)
    children: tuple[MarkupNode, ...] = ()
    text: str | None = None

    def get(self, attribute: str) -> str | None:
        return self.attributes.get(attribute)

    def has(self, attribute: str) -> bool:
        return attribute in self.attributes

    def find(self, tag: str) -> MarkupNode | None:
        """First direct child with the given tag."""
        return next((c for c in self.children if c.tag == tag), None)

    def find_all(self, tag: str) -> list[MarkupNode]:
        return [c for c in self.children if c.tag == tag]

    def __iter__(self) -> Iterator[MarkupNode]:
        return iter(self.children)


def strip_namespace(name: str) -> str:
    """Drop a ``{namespace}`` prefix from an element or attribute name.

    >>> strip_namespace("{urn:hl7-org:v3}ClinicalDocument")
    'ClinicalDocument'
    """
    return name.rsplit("}", 1)[-1] if name.startswith("{") else name


def from_element(element: Element, max_depth: int = DEFAULT_MAX_DEPTH) -> MarkupNode:
    """Convert an ElementTree element into an immutable :class:`MarkupNode` tree.

    Children have to exist before their parent can be frozen, so the tree is
    built post-order using an explicit stack rather than recursion.

    Raises
    ------
    MalformedInputError
        If the element nesting is deeper than `max_depth`.
    """
    built: dict[int, MarkupNode] = {}
    stack: list[tuple[Element, int, bool]] = [(element, 0, False)]

    while stack:
        current, depth, expanded = stack.pop()
        if depth > max_depth:
            msg = f"Markup nesting exceeds the maximum depth of {max_depth}"
            raise MalformedInputError(msg)

        if not expanded:
            stack.append((current, depth, True))
            stack.extend(
                (child, depth + 1, False) for child in reversed(list(current))
            )
            continue

        text = current.text.strip() if current.text is not None else None
        built[id(current)] = MarkupNode(
            tag=strip_namespace(current.tag),
            attributes={
                strip_namespace(name): value
                for name, value in current.attrib.items()
            },
            children=tuple(built.pop(id(child)) for child in current),
            text=text,
        )

    return built[id(element)]


def parse_markup(
    source: Path | str | bytes,
    root_tag: str | None = CDA_ROOT_TAG,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> MarkupNode:
    """Parse a markup document into a :class:`MarkupNode` tree.

    Parameters
    ----------
    source : Path | str | bytes
        Path to the document, or the raw document bytes.
    root_tag : str | None
        Mandatory root element name. ``None`` accepts any root.
    max_depth : int
        Maximum element nesting accepted.

    Raises
    ------
    IOFailureError
        If the file cannot be read.
    MalformedInputError
        If the document is not well-formed XML, uses forbidden DTD entity
        constructs, or its root element is not `root_tag`.
    """
    if isinstance(source, bytes):
        data = source
        origin = "<bytes>"
    else:
        path = Path(source)
        origin = str(path)
        try:
            with path.open("rb") as f:
                data = f.read()
        except OSError as e:
            msg = f"Cannot read markup document {path}: {e}"
            raise IOFailureError(msg) from e

    try:
        element = fromstring(data)
    except ParseError as e:
        msg = f"Markup document {origin} is not well-formed: {e}"
        raise MalformedInputError(msg) from e
    except DefusedXmlException as e:
        msg = f"Markup document {origin} uses a forbidden construct: {e}"
        raise MalformedInputError(msg) from e

    root = from_element(element, max_depth=max_depth)
    if root_tag is not None and root.tag != root_tag:
        msg = (
            f"Markup document {origin} is missing the mandatory root "
            f"element '{root_tag}' (found '{root.tag}')"
        )
        raise MalformedInputError(msg)

    logger.debug("Parsed markup document", source=origin, root=root.tag)
    return root
