__version__ = "1.0.0"

from .config import EncapsulationSettings
from .documents import DocumentKind, SourceDocument
from .engine import EncapsulationResult, encapsulate
from .exceptions import EncapsulationError
from .loggers import logger
from .markup import parse_markup, search
from .metadata import MetadataRecord, MetadataSource, extract_metadata

__all__ = [
    "DocumentKind",
    "EncapsulationError",
    "EncapsulationResult",
    "EncapsulationSettings",
    "MetadataRecord",
    "MetadataSource",
    "SourceDocument",
    "encapsulate",
    "extract_metadata",
    "logger",
    "parse_markup",
    "search",
]
