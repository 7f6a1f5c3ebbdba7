"""
Override keys: attribute assignments applied to the finished dataset.

An override key has the form ``path[=value]``. The path is a ``.``
separated list of components, each a dictionary keyword or a tag written
as ``(gggg,eeee)`` or ``gggg,eeee``, optionally followed by ``[n]`` to
select item ``n`` of a sequence::

    PatientName=Doe^John
    (0010,0020)=12345
    ConceptNameCodeSequence[0].CodeMeaning=Discharge summary
    InstitutionName

Overrides are applied in order without semantic validation, so a later
key replaces the result of an earlier one.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Iterable

from pydicom.datadict import dictionary_VR, keyword_for_tag
from pydicom.dataset import Dataset
from pydicom.sequence import Sequence
from pydicom.tag import BaseTag

from docencap.dicom import resolve_tag, tag_exists
from docencap.exceptions import MalformedInputError, UnknownAttributeError
from docencap.loggers import logger

COMPONENT_PATTERN = re.compile(
    r"^(?P<name>\([^)]*\)|[^\[\]]+)(?:\[(?P<index>\d+)\])?$"
)

INT_VRS = frozenset({"US", "UL", "SS", "SL", "UV", "SV"})
FLOAT_VRS = frozenset({"FL", "FD"})
BINARY_VRS = frozenset({"OB", "OW", "OD", "OF", "OL", "OV", "UN"})


@dataclass(frozen=True)
class PathComponent:
    """One step of an attribute path."""

    tag: BaseTag
    item_index: int | None = None

    @property
    def vr(self) -> str:
        # ambiguous dictionary VRs ("US or SS") use the first choice
        return dictionary_VR(self.tag).split(" or ")[0]

    def __str__(self) -> str:
        name = keyword_for_tag(self.tag) or str(self.tag)
        return name if self.item_index is None else f"{name}[{self.item_index}]"


@dataclass(frozen=True)
class OverrideKey:
    """An attribute path and the value to assign (empty when None)."""

    path: tuple[PathComponent, ...]
    value: str | None = None

    @property
    def leaf(self) -> PathComponent:
        return self.path[-1]

    def __str__(self) -> str:
        path = ".".join(str(component) for component in self.path)
        return path if self.value is None else f"{path}={self.value}"


def _parse_component(text: str, key: str) -> PathComponent:
    match = COMPONENT_PATTERN.match(text.strip())
    if match is None:
        raise UnknownAttributeError(key)
    tag = resolve_tag(match.group("name"))
    if not tag_exists(tag):
        raise UnknownAttributeError(key)
    index = match.group("index")
    return PathComponent(tag, int(index) if index is not None else None)


def parse_override_key(key: str) -> OverrideKey:
    """Parse ``path[=value]`` into an :class:`OverrideKey`.

    Raises
    ------
    UnknownAttributeError
        If a path component is not a dictionary keyword or tag, or the path
        is malformed.

    Examples
    --------
    >>> str(parse_override_key("PatientName=Doe^John"))
    'PatientName=Doe^John'
    >>> parse_override_key("(0010,0020)").leaf.tag
    (0010,0020)
    """
    path_text, sep, value = key.partition("=")
    if not path_text.strip():
        raise UnknownAttributeError(key)
    components = tuple(
        _parse_component(part, key) for part in path_text.split(".")
    )
    for component in components[:-1]:
        if component.vr != "SQ":
            msg = f"{key} ({component} is not a sequence)"
            raise UnknownAttributeError(msg)
    return OverrideKey(components, value if sep else None)


def _convert(value: str | None, vr: str, key: OverrideKey) -> Any:  # noqa: ANN401
    if not value:
        return None
    try:
        if vr in INT_VRS:
            values = [int(v) for v in value.split("\\")]
        elif vr in FLOAT_VRS:
            values = [float(v) for v in value.split("\\")]
        elif vr in BINARY_VRS:
            return value.encode("utf-8")
        elif vr == "AT":
            values = [resolve_tag(v) for v in value.split("\\")]
        else:
            return value
    except (ValueError, UnknownAttributeError) as e:
        msg = f"Invalid value for {key.leaf} (VR {vr}): '{value}'"
        raise MalformedInputError(msg) from e
    return values[0] if len(values) == 1 else values


def _sequence_item(dataset: Dataset, component: PathComponent) -> Dataset:
    if component.tag not in dataset:
        dataset.add_new(component.tag, "SQ", Sequence())
    sequence = dataset[component.tag].value
    index = component.item_index or 0
    while len(sequence) <= index:
        sequence.append(Dataset())
    return sequence[index]


def apply_override_key(dataset: Dataset, key: OverrideKey) -> None:
    """Insert or replace the attribute addressed by `key`."""
    target = dataset
    for component in key.path[:-1]:
        target = _sequence_item(target, component)

    leaf = key.leaf
    if leaf.vr == "SQ":
        if key.value:
            msg = f"Cannot assign a value to sequence {leaf}: '{key.value}'"
            raise MalformedInputError(msg)
        if leaf.item_index is not None:
            _sequence_item(target, leaf)
        elif leaf.tag not in target:
            target.add_new(leaf.tag, "SQ", Sequence())
        return

    if leaf.item_index is not None:
        msg = f"{leaf} selects an item but is not a sequence"
        raise UnknownAttributeError(msg)
    value = _convert(key.value, leaf.vr, key)
    if leaf.tag in target:
        target[leaf.tag].value = value
    else:
        target.add_new(leaf.tag, leaf.vr, value)


def apply_override_keys(
    dataset: Dataset, keys: Iterable[OverrideKey | str]
) -> Dataset:
    """Apply override keys to `dataset` in the given order.

    Parameters
    ----------
    dataset : Dataset
        The dataset to modify in place.
    keys : Iterable[OverrideKey | str]
        Parsed keys or ``path[=value]`` strings.

    Returns
    -------
    Dataset
        The modified dataset.

    Raises
    ------
    UnknownAttributeError
        If a key does not resolve to a dictionary attribute.
    MalformedInputError
        If a value cannot be converted to the attribute's VR.
    """
    for key in keys:
        parsed = parse_override_key(key) if isinstance(key, str) else key
        apply_override_key(dataset, parsed)
        logger.debug("Applied override", key=str(parsed))
    return dataset
