"""Depth-first search of a markup tree for the values of a field or attribute."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from docencap.exceptions import MalformedInputError
from docencap.markup.node import DEFAULT_MAX_DEPTH, MarkupNode
from docencap.markup.resolver import SearchPath, resolve

MULTI_VALUE_SEPARATOR = "\\\\"
"""Two backslashes, placed between the values of a multi-match search."""


@dataclass(frozen=True)
class SearchResult:
    """Values collected by :func:`search`, in document order.

    ``found`` is ``True`` as soon as one node matched, even when every
    matched value is empty.
    """

    values: tuple[str, ...] = ()

    @property
    def found(self) -> bool:
        return bool(self.values)

    @property
    def joined(self) -> str:
        return MULTI_VALUE_SEPARATOR.join(self.values)

    @property
    def first(self) -> str | None:
        return self.values[0] if self.values else None


def _walk(
    node: MarkupNode,
    trail: tuple[str, ...],
    paths: Sequence[SearchPath],
    results: list[str],
    depth: int,
    max_depth: int,
) -> None:
    if depth > max_depth:
        msg = (
            f"Markup nesting exceeds the maximum depth of {max_depth} "
            f"at '{'/'.join(trail)}'"
        )
        raise MalformedInputError(msg)

    for path in paths:
        if path.matches(trail) and (value := path.reader(node)) is not None:
            results.append(value)

    for child in node.children:
        _walk(child, (*trail, child.tag), paths, results, depth + 1, max_depth)


def search(
    root: MarkupNode,
    key: str,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> SearchResult:
    """Collect every value for `key` below `root`, pre-order, document order.

    Parameters
    ----------
    root : MarkupNode
        Root of the tree, paths are relative to it.
    key : str
        A semantic field (see :data:`~docencap.markup.resolver.FIELD_PATHS`)
        or a raw attribute name searched at every depth.
    max_depth : int
        Recursion ceiling.

    Raises
    ------
    MalformedInputError
        If the tree is deeper than `max_depth`.
    UnknownAttributeError
        If `key` cannot be resolved.
    """
    results: list[str] = []
    _walk(root, (), resolve(key), results, 0, max_depth)
    return SearchResult(tuple(results))


def get_all_attribute_values(
    root: MarkupNode, attribute: str, max_depth: int = DEFAULT_MAX_DEPTH
) -> str:
    """All values of `attribute` in the tree joined by the two-backslash separator."""
    return search(root, attribute, max_depth=max_depth).joined
