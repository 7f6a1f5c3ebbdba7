"""Error kinds raised by the encapsulation engine.

Every error carries a stable ``exit_code`` so that the command line layer
can report a distinct status per error kind, and a short ``summary`` used
when listing those statuses.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from docencap.metadata.record import MetadataSource

EXIT_NO_ERROR = 0


class EncapsulationError(Exception):
    """Base exception for document encapsulation errors."""

    exit_code: int = 1
    summary: str = "encapsulation failed"

    def __init__(
        self, message: str = "An error occurred during encapsulation"
    ) -> None:
        super().__init__(message)


class IOFailureError(EncapsulationError):
    """Raised when the source document cannot be fully read."""

    exit_code = 20
    summary = "input unreadable"


class MalformedInputError(EncapsulationError):
    """Raised when the source is unparseable or structurally unexpected."""

    exit_code = 22
    summary = "malformed input"


class SeriesContextUnavailableError(EncapsulationError):
    """Raised when a series context file is missing or unreadable.

    Recoverable: the caller may retry with fresh identifiers.
    """

    exit_code = 23
    summary = "series context unavailable"

    def __init__(self, path: object, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Series context unavailable ({path}): {reason}")


class UnknownAttributeError(EncapsulationError, KeyError):
    """Raised when an attribute name or path does not resolve to a tag."""

    exit_code = 24
    summary = "unknown attribute"

    def __init__(self, key: str, suggestions: list[str] | None = None) -> None:
        self.key = key
        self.suggestions = suggestions or []
        message = f"Unknown attribute: {key}"
        if self.suggestions:
            message += f" (did you mean {', '.join(self.suggestions)}?)"
        super().__init__(message)

    def __str__(self) -> str:
        # KeyError quotes its argument, keep the plain message
        return str(self.args[0])


class PersistFailureError(EncapsulationError):
    """Raised when the final dataset cannot be written."""

    exit_code = 40
    summary = "write failure"

    def __init__(self, path: object, cause: BaseException) -> None:
        self.path = path
        self.cause = cause
        super().__init__(f"Failed to write {path}: {cause}")


class InvalidIdentifierError(EncapsulationError, ValueError):
    """Raised when a supplied UID is syntactically invalid."""

    exit_code = 60
    summary = "invalid UID"

    def __init__(self, field: str, uid: str) -> None:
        self.field = field
        self.uid = uid
        super().__init__(f"Invalid UID for {field}: '{uid}'")


class PayloadTooLargeError(EncapsulationError):
    """Raised when a payload exceeds the representable element length."""

    exit_code = 61
    summary = "document too large"

    def __init__(self, path: object, length: int, limit: int) -> None:
        self.path = path
        self.length = length
        self.limit = limit
        super().__init__(
            f"Document {path} is too large to encapsulate: "
            f"{length} bytes exceeds the limit of {limit} bytes"
        )


class DataConflictError(EncapsulationError):
    """Raised when two trusted sources disagree on a metadata field."""

    exit_code = 65
    summary = "conflicting metadata"

    def __init__(
        self,
        field: str,
        existing: str,
        incoming: str,
        existing_source: MetadataSource,
        incoming_source: MetadataSource,
    ) -> None:
        self.field = field
        self.existing = existing
        self.incoming = incoming
        self.existing_source = existing_source
        self.incoming_source = incoming_source
        super().__init__(
            f"Conflicting values for {field}: '{existing}' "
            f"({existing_source.value}) vs '{incoming}' ({incoming_source.value})"
        )
