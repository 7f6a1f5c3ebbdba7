# ruff: noqa
from .utils import resolve_tag, similar_tags, tag_exists

__all__ = [
    "resolve_tag",
    "similar_tags",
    "tag_exists",
]
