import os

import pytest
from pydicom import dcmread, filewriter
from pydicom.dataset import Dataset, FileMetaDataset
from pydicom.filebase import DicomBytesIO
from pydicom.uid import (
    DeflatedExplicitVRLittleEndian,
    EncapsulatedPDFStorage,
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
from docencap.dataset import apply_override_keys, parse_override_key, write_dataset
from docencap.dataset.header import coded_item
from docencap.exceptions import (
    EXIT_NO_ERROR,
    MalformedInputError,
    PersistFailureError,
    UnknownAttributeError,
)


@pytest.fixture
def dataset() -> Dataset:
    ds = Dataset()
    ds.SpecificCharacterSet = "ISO_IR 192"
    ds.SOPClassUID = EncapsulatedPDFStorage
    ds.SOPInstanceUID = "1.2.3.3"
    ds.PatientName = "Doe^John"
    ds.PatientID = "123"
    ds.ConceptNameCodeSequence = [coded_item("18842-5", "LN", "Discharge summary")]
    ds.add_new("EncapsulatedDocument", "OB", b"%PDF-1.4 test\n")
    ds.EncapsulatedDocumentLength = 14

    meta = FileMetaDataset()
    meta.MediaStorageSOPClassUID = EncapsulatedPDFStorage
    meta.MediaStorageSOPInstanceUID = "1.2.3.3"
    meta.ImplementationClassUID = "1.2.3.4"
    ds.file_meta = meta
    return ds


class TestParseOverrideKey:
    def test_keyword_with_value(self) -> None:
        key = parse_override_key("PatientName=Doe^Jane")
        assert key.leaf.tag == 0x00100010
        assert key.value == "Doe^Jane"

    def test_tag_forms(self) -> None:
        assert parse_override_key("(0010,0020)=1").leaf.tag == 0x00100020
        assert parse_override_key("0010,0020").leaf.tag == 0x00100020
        assert parse_override_key("0010,0020").value is None

    def test_value_may_contain_equals(self) -> None:
        assert parse_override_key("StudyDescription=a=b").value == "a=b"

    def test_sequence_path(self) -> None:
        key = parse_override_key("ConceptNameCodeSequence[1].CodeMeaning=x")
        assert [c.item_index for c in key.path] == [1, None]
        assert str(key) == "ConceptNameCodeSequence[1].CodeMeaning=x"

    def test_unknown_keyword_suggests(self) -> None:
        with pytest.raises(UnknownAttributeError, match="PatientName") as excinfo:
            parse_override_key("PatinetName=x")
        assert excinfo.value.exit_code == 24

    def test_tag_not_in_dictionary(self) -> None:
        with pytest.raises(UnknownAttributeError):
            parse_override_key("(0011,1010)=x")

    def test_intermediate_must_be_sequence(self) -> None:
        with pytest.raises(UnknownAttributeError, match="not a sequence"):
            parse_override_key("PatientName.CodeValue=x")


class TestApplyOverrideKeys:
    def test_replace_and_insert(self, dataset) -> None:
        apply_override_keys(
            dataset, ["PatientName=Doe^Jane", "InstitutionName=General Hospital"]
        )
        assert dataset.PatientName == "Doe^Jane"
        assert dataset.InstitutionName == "General Hospital"

    def test_applied_in_order(self, dataset) -> None:
        apply_override_keys(dataset, ["PatientID=1", "PatientID=2"])
        assert dataset.PatientID == "2"

    def test_without_value_sets_empty(self, dataset) -> None:
        apply_override_keys(dataset, ["PatientID"])
        assert "PatientID" in dataset
        assert not dataset.PatientID

    def test_numeric_vr(self, dataset) -> None:
        apply_override_keys(dataset, ["EncapsulatedDocumentLength=99"])
        assert dataset.EncapsulatedDocumentLength == 99

    def test_invalid_numeric_value(self, dataset) -> None:
        with pytest.raises(MalformedInputError):
            apply_override_keys(dataset, ["EncapsulatedDocumentLength=many"])

    def test_existing_sequence_item(self, dataset) -> None:
        apply_override_keys(dataset, ["ConceptNameCodeSequence[0].CodeMeaning=Note"])
        assert dataset.ConceptNameCodeSequence[0].CodeMeaning == "Note"
        assert dataset.ConceptNameCodeSequence[0].CodeValue == "18842-5"

    def test_creates_sequences_and_items(self, dataset) -> None:
        apply_override_keys(dataset, ["ReferencedSeriesSequence[1].SeriesInstanceUID=1.2.3"])
        sequence = dataset.ReferencedSeriesSequence
        assert len(sequence) == 2
        assert sequence[1].SeriesInstanceUID == "1.2.3"


class TestWriteDataset:
    @pytest.mark.parametrize(
        "syntax, uid",
        [
            (TransferSyntax.EXPLICIT_LITTLE, ExplicitVRLittleEndian),
            (TransferSyntax.IMPLICIT_LITTLE, ImplicitVRLittleEndian),
            (TransferSyntax.EXPLICIT_BIG, ExplicitVRBigEndian),
            (TransferSyntax.DEFLATED, DeflatedExplicitVRLittleEndian),
        ],
    )
    def test_transfer_syntaxes(self, tmp_path, dataset, syntax, uid) -> None:
        path = tmp_path / "out.dcm"
        status = write_dataset(dataset, path, EncodingOptions(transfer_syntax=syntax))
        assert status == EXIT_NO_ERROR

        ds = dcmread(path)
        assert ds.file_meta.TransferSyntaxUID == uid
        assert ds.PatientName == "Doe^John"
        assert ds.EncapsulatedDocument == b"%PDF-1.4 test\n"
        assert ds.ConceptNameCodeSequence[0].CodeValue == "18842-5"

    def test_group_length_with(self, tmp_path, dataset) -> None:
        path = tmp_path / "out.dcm"
        write_dataset(
            dataset, path, EncodingOptions(group_length=GroupLengthMode.WITH)
        )
        ds = dcmread(path)
        assert 0x00100000 in ds
        assert 0x00080000 in ds
        # PatientName "Doe^John" (8 + 8) and PatientID "123 " (8 + 4)
        assert ds[0x00100000].value == 28

    def test_group_length_without(self, tmp_path, dataset) -> None:
        dataset.add_new(0x00100000, "UL", 1)
        path = tmp_path / "out.dcm"
        write_dataset(
            dataset, path, EncodingOptions(group_length=GroupLengthMode.WITHOUT)
        )
        assert 0x00100000 not in dcmread(path)

    def test_group_length_recalculated(self, tmp_path, dataset) -> None:
        dataset.add_new(0x00100000, "UL", 1)
        path = tmp_path / "out.dcm"
        write_dataset(dataset, path, EncodingOptions())
        ds = dcmread(path)
        assert ds[0x00100000].value == 28
        assert 0x00080000 not in ds

    def test_undefined_length_sequences(self, tmp_path, dataset) -> None:
        path = tmp_path / "out.dcm"
        write_dataset(
            dataset, path, EncodingOptions(sequence_length=SequenceLength.UNDEFINED)
        )
        ds = dcmread(path)
        assert ds["ConceptNameCodeSequence"].is_undefined_length
        assert ds.ConceptNameCodeSequence[0].is_undefined_length_sequence_item
        assert ds.ConceptNameCodeSequence[0].CodeMeaning == "Discharge summary"

    @pytest.mark.parametrize("block", [256, 1024])
    def test_file_padding(self, tmp_path, dataset, block) -> None:
        path = tmp_path / "out.dcm"
        write_dataset(dataset, path, EncodingOptions(file_pad=block))
        assert path.stat().st_size % block == 0
        assert "DataSetTrailingPadding" in dcmread(path)

    def test_padding_must_be_even(self) -> None:
        with pytest.raises(ValueError):
            EncodingOptions(file_pad=3)
        with pytest.raises(ValueError):
            EncodingOptions(item_pad=5)

    @pytest.mark.parametrize(
        "syntax", [TransferSyntax.EXPLICIT_LITTLE, TransferSyntax.IMPLICIT_LITTLE]
    )
    def test_item_padding(self, tmp_path, dataset, syntax) -> None:
        path = tmp_path / "out.dcm"
        write_dataset(
            dataset,
            path,
            EncodingOptions(transfer_syntax=syntax, item_pad=64, file_pad=256),
        )
        assert path.stat().st_size % 256 == 0

        item = dcmread(path).ConceptNameCodeSequence[0]
        assert "DataSetTrailingPadding" in item
        assert item.CodeMeaning == "Discharge summary"
        fp = DicomBytesIO()
        fp.is_implicit_VR = syntax is TransferSyntax.IMPLICIT_LITTLE
        fp.is_little_endian = True
        assert filewriter.write_dataset(fp, item) % 64 == 0

    def test_dataset_write_mode(self, tmp_path, dataset) -> None:
        path = tmp_path / "out.dcm"
        write_dataset(dataset, path, EncodingOptions(write_mode=WriteMode.DATASET))
        # starts directly with (0008,0005), no preamble or file meta
        assert path.read_bytes()[:4] == b"\x08\x00\x05\x00"

        ds = dcmread(path, force=True)
        assert ds.PatientName == "Doe^John"
        assert ds.EncapsulatedDocument == b"%PDF-1.4 test\n"

    def test_replaces_existing_file(self, tmp_path, dataset) -> None:
        path = tmp_path / "out.dcm"
        path.write_bytes(b"old")
        write_dataset(dataset, path)
        assert dcmread(path).PatientID == "123"

    def test_failure_leaves_no_file(self, tmp_path, dataset) -> None:
        path = tmp_path / "missing-dir" / "out.dcm"
        with pytest.raises(PersistFailureError) as excinfo:
            write_dataset(dataset, path)
        assert excinfo.value.exit_code == 40
        assert not path.exists()

    def test_failed_replace_removes_temporary_file(
        self, tmp_path, dataset, mocker
    ) -> None:
        mocker.patch(
            "docencap.dataset.persist.os.replace", side_effect=OSError("disk full")
        )
        with pytest.raises(PersistFailureError, match="disk full"):
            write_dataset(dataset, tmp_path / "out.dcm")
        assert os.listdir(tmp_path) == []
