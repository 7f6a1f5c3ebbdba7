import pytest

from docencap.exceptions import IOFailureError, MalformedInputError, UnknownAttributeError
from docencap.markup import (
    MULTI_VALUE_SEPARATOR,
    MarkupNode,
    get_all_attribute_values,
    parse_markup,
    search,
)


@pytest.fixture
def cda_root(cda_bytes) -> MarkupNode:
    return parse_markup(cda_bytes)


def nested(depth: int) -> MarkupNode:
    """A chain of `depth` nested ``section`` elements below the root."""
    node = MarkupNode("section", {"mediaType": "text/plain"})
    for _ in range(depth - 1):
        node = MarkupNode("section", children=(node,))
    return MarkupNode("ClinicalDocument", children=(node,))


class TestParseMarkup:
    def test_namespaces_are_stripped(self, cda_root) -> None:
        assert cda_root.tag == "ClinicalDocument"
        assert [child.tag for child in cda_root][:3] == ["id", "code", "title"]

    def test_reads_from_path(self, cda_file) -> None:
        root = parse_markup(cda_file)
        assert root.find("title").text == "Good Health Clinic Consultation Note"

    def test_missing_root_element(self) -> None:
        with pytest.raises(MalformedInputError, match="mandatory root element"):
            parse_markup(b"<Document><title>x</title></Document>")

    def test_any_root_when_unchecked(self) -> None:
        root = parse_markup(b"<Document/>", root_tag=None)
        assert root.tag == "Document"

    def test_not_well_formed(self) -> None:
        with pytest.raises(MalformedInputError, match="not well-formed"):
            parse_markup(b"<ClinicalDocument><title></ClinicalDocument>")

    def test_entity_expansion_rejected(self) -> None:
        document = b"""<?xml version="1.0"?>
<!DOCTYPE ClinicalDocument [<!ENTITY boom "boom">]>
<ClinicalDocument><title>&boom;</title></ClinicalDocument>"""
        with pytest.raises(MalformedInputError):
            parse_markup(document)

    def test_unreadable_file(self, tmp_path) -> None:
        with pytest.raises(IOFailureError):
            parse_markup(tmp_path / "missing.xml")

    def test_depth_ceiling_on_parse(self) -> None:
        document = b"<ClinicalDocument>" + b"<a>" * 20 + b"</a>" * 20 + b"</ClinicalDocument>"
        with pytest.raises(MalformedInputError, match="maximum depth of 10"):
            parse_markup(document, max_depth=10)
        assert parse_markup(document, max_depth=20).tag == "ClinicalDocument"


class TestSearch:
    @pytest.mark.parametrize(
        "field, expected",
        [
            ("PatientName", "Levin^Henry^^^the 7th"),
            ("PatientID", "12345"),
            ("PatientBirthDate", "19320924"),
            ("PatientSex", "M"),
            ("CodeValue", "11488-4"),
            ("CodingSchemeDesignator", "LOINC"),
            ("CodeMeaning", "Consultation note"),
            ("DocumentTitle", "Good Health Clinic Consultation Note"),
            ("HL7InstanceIdentifier", "2.16.840.1.113883.19.4^c266"),
        ],
    )
    def test_semantic_fields(self, cda_root, field, expected) -> None:
        result = search(cda_root, field)
        assert result.found
        assert result.joined == expected

    def test_multiple_matches_in_document_order(self, cda_root) -> None:
        result = search(cda_root, "mediaType")
        assert result.values == ("image/jpeg", "image/png", "image/jpeg")
        assert result.joined == "image/jpeg\\\\image/png\\\\image/jpeg"
        assert MULTI_VALUE_SEPARATOR == "\\" * 2

    def test_root_node_is_visited(self) -> None:
        root = MarkupNode("ClinicalDocument", {"classCode": "DOCCLIN"})
        assert search(root, "classCode").values == ("DOCCLIN",)

    def test_absent_and_empty_are_distinguished(self) -> None:
        root = MarkupNode(
            "ClinicalDocument", children=(MarkupNode("value", {"mediaType": ""}),)
        )
        empty = search(root, "mediaType")
        assert empty.found
        assert empty.joined == ""
        assert not search(root, "classCode").found

    def test_empty_elements_are_found(self) -> None:
        document = b"""<ClinicalDocument><title/><recordTarget><patientRole>
<patient><name></name></patient></patientRole></recordTarget></ClinicalDocument>"""
        root = parse_markup(document)
        for field in ("DocumentTitle", "PatientName"):
            result = search(root, field)
            assert result.found
            assert result.values == ("",)
        assert not search(root, "PatientID").found

    def test_unknown_key(self, cda_root) -> None:
        with pytest.raises(UnknownAttributeError):
            search(cda_root, "not a name!")

    def test_depth_ceiling(self) -> None:
        root = nested(12)
        assert search(root, "mediaType", max_depth=12).values == ("text/plain",)
        with pytest.raises(MalformedInputError, match="maximum depth of 11"):
            search(root, "mediaType", max_depth=11)

    def test_sex_unknown_maps_to_other(self) -> None:
        document = b"""<ClinicalDocument><recordTarget><patientRole><patient>
<administrativeGenderCode code="UN"/></patient></patientRole></recordTarget>
</ClinicalDocument>"""
        assert search(parse_markup(document), "PatientSex").joined == "O"

    def test_get_all_attribute_values(self, cda_root) -> None:
        assert get_all_attribute_values(cda_root, "codeSystemName") == "LOINC"
        assert get_all_attribute_values(cda_root, "classCode") == ""
