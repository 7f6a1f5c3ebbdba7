from __future__ import annotations

from pydicom.dataset import Dataset

from docencap.documents import SourceDocument
from docencap.exceptions import IOFailureError, PayloadTooLargeError
from docencap.loggers import logger

# 0xFFFFFFFF is reserved for undefined length
MAX_PAYLOAD_LENGTH = 0xFFFFFFFE


def insert_payload(
    dataset: Dataset,
    source: SourceDocument,
    max_length: int = MAX_PAYLOAD_LENGTH,
) -> int:
    """
    Store the source document as ``EncapsulatedDocument``.

    The document is read whole, padded with a single ``\\x00`` when its length
    is odd and stored with VR OB. ``EncapsulatedDocumentLength`` records the
    unpadded length.

    Parameters
    ----------
    dataset : Dataset
        Header built for the document.
    source : SourceDocument
        The document to embed.
    max_length : int
        Largest padded length accepted.

    Returns
    -------
    int
        The unpadded document length in bytes.

    Raises
    ------
    IOFailureError
        If the document cannot be fully read.
    PayloadTooLargeError
        If the padded document is longer than `max_length`.
    """
    try:
        size = source.path.stat().st_size
        padded_size = size + (size % 2)
        if padded_size > max_length:
            raise PayloadTooLargeError(source.path, padded_size, max_length)
        with source.path.open("rb") as f:
            payload = f.read()
    except OSError as e:
        msg = f"Cannot read source document {source.path}: {e}"
        raise IOFailureError(msg) from e

    if len(payload) != size:
        msg = (
            f"Short read from {source.path}: "
            f"expected {size} bytes, got {len(payload)}"
        )
        raise IOFailureError(msg)

    length = len(payload)
    if length % 2:
        payload += b"\x00"

    dataset.add_new("EncapsulatedDocument", "OB", payload)
    dataset.EncapsulatedDocumentLength = length
    logger.info(
        "Inserted document",
        path=source.path,
        length=length,
        padded=len(payload) != length,
    )
    return length
