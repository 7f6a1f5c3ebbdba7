"""
Metadata record with explicit per-field reconciliation state.

Every field moves through the states ``UNSET -> SET -> CONFLICTED``. Offering
an empty value is a no-op, offering the same value again is a no-op, and
offering a different non-empty value marks the field as conflicted and
raises :class:`~docencap.exceptions.DataConflictError`. When the record is
created with ``override_conflicts=True`` the first recorded value is kept
and the disagreement is only logged.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterable, Iterator

from docencap.exceptions import DataConflictError, UnknownAttributeError
from docencap.loggers import logger

RECORD_FIELDS: tuple[str, ...] = (
    "PatientName",
    "PatientID",
    "PatientBirthDate",
    "PatientSex",
    "CodeValue",
    "CodingSchemeDesignator",
    "CodeMeaning",
    "DocumentTitle",
    "HL7InstanceIdentifier",
    "StudyInstanceUID",
    "SeriesInstanceUID",
)


class MetadataSource(str, Enum):
    """Where a field value came from, in the order sources are consulted."""

    CONFIG = "configuration"
    SERIES_CONTEXT = "series context"
    MARKUP = "markup document"


class FieldState(Enum):
    UNSET = "unset"
    SET = "set"
    CONFLICTED = "conflicted"


@dataclass(frozen=True)
class FieldValue:
    """Immutable reconciliation state of a single field."""

    state: FieldState = FieldState.UNSET
    value: str = ""
    source: MetadataSource | None = None
    rejected: str | None = None
    rejected_source: MetadataSource | None = None

    def offer(self, value: str | None, source: MetadataSource) -> FieldValue:
        """Return the state after `source` proposes `value`."""
        if not value:
            return self
        if self.state is FieldState.UNSET:
            return FieldValue(FieldState.SET, value, source)
        if value == self.value:
            return self
        return replace(
            self,
            state=FieldState.CONFLICTED,
            rejected=value,
            rejected_source=source,
        )


class MetadataRecord:
    """Reconciled metadata of one encapsulation run.

    Parameters
    ----------
    override_conflicts : bool
        Keep the first recorded value on disagreement instead of raising.

    Examples
    --------
    >>> record = MetadataRecord()
    >>> record.offer("PatientID", "123", MetadataSource.CONFIG)
    >>> record.offer("PatientID", "123", MetadataSource.MARKUP)
    >>> record["PatientID"]
    '123'
    >>> record.offer("PatientID", "456", MetadataSource.MARKUP)
    Traceback (most recent call last):
    ...
    docencap.exceptions.DataConflictError: Conflicting values for PatientID: ...
    """

    def __init__(self, override_conflicts: bool = False) -> None:
        self.override_conflicts = override_conflicts
        self._fields: dict[str, FieldValue] = {
            name: FieldValue() for name in RECORD_FIELDS
        }
        self._media_types: list[str] = []

    def _field(self, name: str) -> FieldValue:
        try:
            return self._fields[name]
        except KeyError as e:
            raise UnknownAttributeError(name) from e

    def offer(
        self, name: str, value: str | None, source: MetadataSource
    ) -> None:
        """Propose `value` for field `name`.

        Raises
        ------
        DataConflictError
            If the field already holds a different non-empty value and
            conflicts are not overridden.
        UnknownAttributeError
            If `name` is not a record field.
        """
        current = self._field(name)
        updated = current.offer(value, source)
        if updated is current:
            return

        if updated.state is FieldState.CONFLICTED:
            if current.source is None:
                msg = f"Field {name} holds a value without a recorded source"
                raise RuntimeError(msg)
            if self.override_conflicts:
                logger.warning(
                    "Conflicting values, keeping the first one",
                    field=name,
                    kept=current.value,
                    kept_source=current.source.value,
                    ignored=value,
                    ignored_source=source.value,
                )
                return
            self._fields[name] = updated
            raise DataConflictError(
                field=name,
                existing=current.value,
                incoming=str(value),
                existing_source=current.source,
                incoming_source=source,
            )

        logger.debug("Recorded field", field=name, value=value, source=source.value)
        self._fields[name] = updated

    def update(
        self, values: dict[str, str | None], source: MetadataSource
    ) -> None:
        """Offer several fields from one source, stopping at the first conflict."""
        for name, value in values.items():
            self.offer(name, value, source)

    def state(self, name: str) -> FieldState:
        return self._field(name).state

    def source(self, name: str) -> MetadataSource | None:
        return self._field(name).source

    def get(self, name: str, default: str | None = None) -> str | None:
        field = self._field(name)
        return field.value if field.state is FieldState.SET else default

    def __getitem__(self, name: str) -> str:
        return self.get(name, "") or ""

    def __contains__(self, name: object) -> bool:
        return (
            isinstance(name, str)
            and name in self._fields
            and self._fields[name].state is FieldState.SET
        )

    def __iter__(self) -> Iterator[str]:
        return (name for name in RECORD_FIELDS if name in self)

    @property
    def conflicts(self) -> dict[str, FieldValue]:
        return {
            name: field
            for name, field in self._fields.items()
            if field.state is FieldState.CONFLICTED
        }

    @property
    def media_types(self) -> list[str]:
        return list(self._media_types)

    def add_media_types(self, media_types: Iterable[str]) -> None:
        """Append media types keeping first-seen order and dropping duplicates."""
        for media_type in media_types:
            media_type = media_type.strip()
            if media_type and media_type not in self._media_types:
                self._media_types.append(media_type)

    def as_dict(self) -> dict[str, str]:
        return {name: self[name] for name in self}

    def __repr__(self) -> str:
        return f"MetadataRecord({self.as_dict()!r}, media_types={self._media_types!r})"
