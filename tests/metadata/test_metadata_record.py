import pytest

from docencap.exceptions import DataConflictError, UnknownAttributeError
from docencap.markup import parse_markup
from docencap.metadata import (
    FieldState,
    MetadataRecord,
    MetadataSource,
    extract_from_tree,
    extract_metadata,
)


class TestMetadataRecord:
    def test_first_offer_sets_field(self) -> None:
        record = MetadataRecord()
        assert record.state("PatientID") is FieldState.UNSET
        record.offer("PatientID", "123", MetadataSource.CONFIG)
        assert record.state("PatientID") is FieldState.SET
        assert record["PatientID"] == "123"
        assert record.source("PatientID") is MetadataSource.CONFIG
        assert "PatientID" in record

    def test_empty_offer_is_ignored(self) -> None:
        record = MetadataRecord()
        record.offer("PatientID", "", MetadataSource.CONFIG)
        record.offer("PatientID", None, MetadataSource.MARKUP)
        assert record.state("PatientID") is FieldState.UNSET
        assert record["PatientID"] == ""
        assert record.get("PatientID") is None

    def test_same_value_is_not_a_conflict(self) -> None:
        record = MetadataRecord()
        record.offer("PatientSex", "M", MetadataSource.CONFIG)
        record.offer("PatientSex", "M", MetadataSource.MARKUP)
        assert record.source("PatientSex") is MetadataSource.CONFIG

    def test_conflict_raises_and_marks_field(self) -> None:
        record = MetadataRecord()
        record.offer("PatientName", "Doe^John", MetadataSource.CONFIG)
        with pytest.raises(DataConflictError) as excinfo:
            record.offer("PatientName", "Doe^Jane", MetadataSource.MARKUP)

        error = excinfo.value
        assert error.field == "PatientName"
        assert error.existing == "Doe^John"
        assert error.incoming == "Doe^Jane"
        assert error.existing_source is MetadataSource.CONFIG
        assert error.incoming_source is MetadataSource.MARKUP
        assert error.exit_code == 65
        assert record.state("PatientName") is FieldState.CONFLICTED
        assert "PatientName" in record.conflicts
        assert "PatientName" not in record

    def test_override_keeps_first_value(self) -> None:
        record = MetadataRecord(override_conflicts=True)
        record.offer("PatientName", "Doe^John", MetadataSource.CONFIG)
        record.offer("PatientName", "Doe^Jane", MetadataSource.MARKUP)
        assert record["PatientName"] == "Doe^John"
        assert record.state("PatientName") is FieldState.SET
        assert not record.conflicts

    def test_unknown_field(self) -> None:
        with pytest.raises(UnknownAttributeError):
            MetadataRecord().offer("Modality", "DOC", MetadataSource.CONFIG)

    def test_media_types_are_ordered_and_unique(self) -> None:
        record = MetadataRecord()
        record.add_media_types(["image/png", "image/jpeg", "image/png", ""])
        record.add_media_types(["text/plain", "image/jpeg"])
        assert record.media_types == ["image/png", "image/jpeg", "text/plain"]

    def test_as_dict_lists_set_fields(self) -> None:
        record = MetadataRecord()
        record.update(
            {"PatientID": "1", "PatientName": None, "DocumentTitle": "Note"},
            MetadataSource.CONFIG,
        )
        assert record.as_dict() == {"PatientID": "1", "DocumentTitle": "Note"}


class TestExtractMetadata:
    def test_fields_from_document(self, cda_file) -> None:
        record = extract_metadata(cda_file)
        assert record.as_dict() == {
            "PatientName": "Levin^Henry^^^the 7th",
            "PatientID": "12345",
            "PatientBirthDate": "19320924",
            "PatientSex": "M",
            "CodeValue": "11488-4",
            "CodingSchemeDesignator": "LOINC",
            "CodeMeaning": "Consultation note",
            "DocumentTitle": "Good Health Clinic Consultation Note",
            "HL7InstanceIdentifier": "2.16.840.1.113883.19.4^c266",
        }
        assert all(record.source(f) is MetadataSource.MARKUP for f in record)
        assert record.media_types == ["image/jpeg", "image/png"]

    def test_agreeing_user_value(self, cda_file) -> None:
        record = MetadataRecord()
        record.offer("PatientID", "12345", MetadataSource.CONFIG)
        extract_metadata(cda_file, record)
        assert record.source("PatientID") is MetadataSource.CONFIG

    def test_conflicting_user_value(self, cda_file) -> None:
        record = MetadataRecord()
        record.offer("PatientID", "99999", MetadataSource.CONFIG)
        with pytest.raises(DataConflictError, match="PatientID"):
            extract_metadata(cda_file, record)

    def test_conflicting_user_value_overridden(self, cda_file) -> None:
        record = MetadataRecord(override_conflicts=True)
        record.offer("PatientID", "99999", MetadataSource.CONFIG)
        extract_metadata(cda_file, record)
        assert record["PatientID"] == "99999"
        assert record["PatientName"] == "Levin^Henry^^^the 7th"

    def test_repeated_single_valued_field_is_joined(self) -> None:
        document = b"""<ClinicalDocument><recordTarget>
<patientRole><id extension="111"/></patientRole>
<patientRole><id extension="222"/></patientRole>
</recordTarget><title/></ClinicalDocument>"""
        record = extract_from_tree(parse_markup(document), MetadataRecord())
        assert record["PatientID"] == "111\\\\222"
        assert "DocumentTitle" not in record
