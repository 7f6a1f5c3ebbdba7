"""Supported document kinds and the source document handed to the engine."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from pydicom.uid import (
    UID,
    EncapsulatedCDAStorage,
    EncapsulatedMTLStorage,
    EncapsulatedOBJStorage,
    EncapsulatedPDFStorage,
    EncapsulatedSTLStorage,
)

from docencap.exceptions import IOFailureError, MalformedInputError

PDF_MAGIC = b"%PDF-"


class DocumentKind(str, Enum):
    """Kinds of documents that can be encapsulated."""

    CDA = "cda"
    PDF = "pdf"
    STL = "stl"
    OBJ = "obj"
    MTL = "mtl"

    @property
    def sop_class_uid(self) -> UID:
        return _SOP_CLASSES[self]

    @property
    def modality(self) -> str:
        return "M3D" if self.is_model else "DOC"

    @property
    def mime_type(self) -> str:
        return _MIME_TYPES[self]

    @property
    def is_model(self) -> bool:
        return self in (DocumentKind.STL, DocumentKind.OBJ, DocumentKind.MTL)

    @classmethod
    def from_suffix(cls, path: Path) -> DocumentKind:
        """Guess the kind from a file suffix.

        Raises
        ------
        MalformedInputError
            If the suffix is not one of the supported kinds.
        """
        suffix = path.suffix.lower().lstrip(".")
        if suffix == "xml":
            return cls.CDA
        try:
            return cls(suffix)
        except ValueError as e:
            msg = (
                f"Cannot determine the document kind of {path}, "
                f"supported kinds are {', '.join(k.value for k in cls)}"
            )
            raise MalformedInputError(msg) from e


_SOP_CLASSES = {
    DocumentKind.CDA: EncapsulatedCDAStorage,
    DocumentKind.PDF: EncapsulatedPDFStorage,
    DocumentKind.STL: EncapsulatedSTLStorage,
    DocumentKind.OBJ: EncapsulatedOBJStorage,
    DocumentKind.MTL: EncapsulatedMTLStorage,
}

_MIME_TYPES = {
    DocumentKind.CDA: "text/XML",
    DocumentKind.PDF: "application/pdf",
    DocumentKind.STL: "model/stl",
    DocumentKind.OBJ: "model/obj",
    DocumentKind.MTL: "model/mtl",
}


@dataclass(frozen=True)
class SourceDocument:
    """The document to encapsulate. Read-only to the engine."""

    path: Path
    kind: DocumentKind

    @classmethod
    def from_path(
        cls, path: Path | str, kind: DocumentKind | str | None = None
    ) -> SourceDocument:
        path = Path(path)
        if kind is None:
            return cls(path, DocumentKind.from_suffix(path))
        return cls(path, DocumentKind(kind))

    def check_signature(self) -> None:
        """Reject a PDF source that does not start with the PDF header.

        CDA sources are checked when parsed, model files carry no reliable
        signature.

        Raises
        ------
        IOFailureError
            If the file cannot be opened.
        MalformedInputError
            If a PDF source lacks the ``%PDF-`` header.
        """
        if self.kind is not DocumentKind.PDF:
            return
        try:
            with self.path.open("rb") as f:
                head = f.read(len(PDF_MAGIC))
        except OSError as e:
            msg = f"Cannot read source document {self.path}: {e}"
            raise IOFailureError(msg) from e
        if head != PDF_MAGIC:
            msg = f"{self.path} is not a PDF document (missing '%PDF-' header)"
            raise MalformedInputError(msg)
