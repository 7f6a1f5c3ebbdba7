"""
Encoding and atomic writing of the finished dataset.

The data set is encoded group by group so that group length elements can be
added, recalculated or stripped, and so that sequences can be written with
undefined length. The file is written to a temporary file next to the target
and moved into place only once it is complete.
"""

from __future__ import annotations

import os
import tempfile
import zlib
from itertools import groupby
from pathlib import Path

from pydicom import filewriter
from pydicom.charset import default_encoding
from pydicom.dataelem import DataElement
from pydicom.dataset import Dataset
from pydicom.filebase import DicomBytesIO
from pydicom.tag import Tag
from pydicom.uid import (
    UID,
    DeflatedExplicitVRLittleEndian,
    ExplicitVRBigEndian,
    ExplicitVRLittleEndian,
    ImplicitVRLittleEndian,
)

from docencap.config import (
    EncodingOptions,
    GroupLengthMode,
    SequenceLength,
    TransferSyntax,
    WriteMode,
)
from docencap.exceptions import EXIT_NO_ERROR, PersistFailureError
from docencap.loggers import logger

PREAMBLE = b"\x00" * 128
PREFIX = b"DICM"
TRAILING_PADDING_TAG = Tag(0xFFFC, 0xFFFC)

TRANSFER_SYNTAX_UIDS: dict[TransferSyntax, UID] = {
    TransferSyntax.EXPLICIT_LITTLE: ExplicitVRLittleEndian,
    TransferSyntax.IMPLICIT_LITTLE: ImplicitVRLittleEndian,
    TransferSyntax.EXPLICIT_BIG: ExplicitVRBigEndian,
    TransferSyntax.DEFLATED: DeflatedExplicitVRLittleEndian,
}

# (is_implicit_VR, is_little_endian) of the data set body
ENCODINGS: dict[TransferSyntax, tuple[bool, bool]] = {
    TransferSyntax.EXPLICIT_LITTLE: (False, True),
    TransferSyntax.IMPLICIT_LITTLE: (True, True),
    TransferSyntax.EXPLICIT_BIG: (False, False),
    TransferSyntax.DEFLATED: (False, True),
}


def _buffer(encoding: tuple[bool, bool]) -> DicomBytesIO:
    fp = DicomBytesIO()
    fp.is_implicit_VR, fp.is_little_endian = encoding
    return fp


def set_sequence_length(dataset: Dataset, mode: SequenceLength) -> None:
    """Mark every sequence and item in `dataset` as defined or undefined length."""
    undefined = mode is SequenceLength.UNDEFINED
    for elem in dataset:
        if elem.VR != "SQ":
            continue
        elem.is_undefined_length = undefined
        for item in elem.value:
            item.is_undefined_length_sequence_item = undefined
            set_sequence_length(item, mode)


def encode_dataset(
    dataset: Dataset,
    encoding: tuple[bool, bool],
    group_length: GroupLengthMode = GroupLengthMode.RECALC,
) -> bytes:
    """Encode the top level data set, handling group length elements.

    Parameters
    ----------
    dataset : Dataset
        The data set, without file meta information.
    encoding : tuple[bool, bool]
        ``(is_implicit_VR, is_little_endian)``.
    group_length : GroupLengthMode
        ``recalc`` writes a recomputed group length for groups that already
        carry one, ``with`` writes one for every group, ``without`` none.

    Returns
    -------
    bytes
        The encoded data set.
    """
    _, little = encoding
    dataset = filewriter.correct_ambiguous_vr(dataset, little)
    encodings = dataset.get("SpecificCharacterSet", default_encoding)

    out = _buffer(encoding)
    for group, tags in groupby(sorted(dataset.keys()), key=lambda t: t.group):
        tags = list(tags)
        body = _buffer(encoding)
        for tag in tags:
            if tag.element == 0:
                continue
            filewriter.write_data_element(body, dataset.get_item(tag), encodings)

        has_length = tags[0].element == 0
        if group != 0xFFFC and (
            group_length is GroupLengthMode.WITH
            or (group_length is GroupLengthMode.RECALC and has_length)
        ):
            length = DataElement(Tag(group, 0), "UL", body.tell())
            filewriter.write_data_element(out, length, encodings)
        out.write(body.getvalue())
    return out.getvalue()


def _padding_element(
    offset: int, block: int, encoding: tuple[bool, bool]
) -> DataElement:
    implicit, _ = encoding
    header = 8 if implicit else 12
    length = (-(offset + header)) % block
    return DataElement(TRAILING_PADDING_TAG, "OB", b"\x00" * length)


def trailing_padding(
    offset: int, block: int, encoding: tuple[bool, bool]
) -> bytes:
    """The ``DataSetTrailingPadding`` element that pads `offset` to a multiple of `block`."""
    fp = _buffer(encoding)
    filewriter.write_data_element(fp, _padding_element(offset, block, encoding))
    return fp.getvalue()


def pad_items(
    dataset: Dataset, block: int, encoding: tuple[bool, bool]
) -> None:
    """Pad the content of every sequence item to a multiple of `block` bytes.

    Nested items are padded first, their padding counts towards the length
    of the enclosing item.
    """
    encodings = dataset.get("SpecificCharacterSet", default_encoding)
    for elem in dataset:
        if elem.VR != "SQ":
            continue
        for item in elem.value:
            if TRAILING_PADDING_TAG in item:
                del item[TRAILING_PADDING_TAG]
            pad_items(item, block, encoding)
            length = filewriter.write_dataset(_buffer(encoding), item, encodings)
            item.add(_padding_element(length, block, encoding))


def encode_file(dataset: Dataset, options: EncodingOptions) -> bytes:
    """Encode `dataset` as a DICOM file, or as a bare data set.

    In ``file`` write mode the preamble and file meta information precede
    the data set. Item padding is applied before encoding, file padding to
    the encoded output.
    """
    syntax = options.transfer_syntax
    encoding = ENCODINGS[syntax]

    header = b""
    if options.write_mode is WriteMode.FILE:
        file_meta = dataset.file_meta
        file_meta.TransferSyntaxUID = TRANSFER_SYNTAX_UIDS[syntax]
        meta = _buffer((False, True))
        filewriter.write_file_meta_info(meta, file_meta, enforce_standard=True)
        header = PREAMBLE + PREFIX + meta.getvalue()

    if TRAILING_PADDING_TAG in dataset:
        del dataset[TRAILING_PADDING_TAG]
    set_sequence_length(dataset, options.sequence_length)
    if options.item_pad:
        filewriter.correct_ambiguous_vr(dataset, encoding[1])
        pad_items(dataset, options.item_pad, encoding)
    body = encode_dataset(dataset, encoding, options.group_length)

    if syntax is TransferSyntax.DEFLATED:
        compressor = zlib.compressobj(wbits=-zlib.MAX_WBITS)
        body = compressor.compress(body) + compressor.flush()
        if len(body) % 2:
            body += b"\x00"
        if options.file_pad:
            logger.warning("File padding is not applied to deflated data sets")
        return header + body

    content = header + body
    if options.file_pad:
        content += trailing_padding(len(content), options.file_pad, encoding)
    return content


def write_dataset(
    dataset: Dataset,
    path: Path,
    options: EncodingOptions | None = None,
) -> int:
    """Write `dataset` to `path` atomically.

    Parameters
    ----------
    dataset : Dataset
        The complete dataset, including ``file_meta``.
    path : Path
        Target file. Replaced if it exists.
    options : EncodingOptions, optional
        Transfer syntax, group length, sequence length, padding and write
        mode.

    Returns
    -------
    int
        ``EXIT_NO_ERROR``.

    Raises
    ------
    PersistFailureError
        If encoding or writing fails. No partial file is left behind.
    """
    options = options or EncodingOptions()
    path = Path(path)
    tmp_name: str | None = None
    try:
        content = encode_file(dataset, options)
        fd, tmp_name = tempfile.mkstemp(
            dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
        )
        with os.fdopen(fd, "wb") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except (
        AttributeError, OSError, TypeError, ValueError, NotImplementedError
    ) as e:
        if tmp_name is not None and os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise PersistFailureError(path, e) from e

    logger.info(
        "Wrote DICOM file",
        path=path,
        transfer_syntax=options.transfer_syntax.value,
        write_mode=options.write_mode.value,
        size=len(content),
    )
    return EXIT_NO_ERROR
