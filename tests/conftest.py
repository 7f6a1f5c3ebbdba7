from pathlib import Path
from typing import Callable

import pytest
from click.testing import CliRunner
from pydicom.dataset import Dataset, FileMetaDataset
from pydicom.uid import UID, EncapsulatedPDFStorage, ExplicitVRLittleEndian

STUDY_UID = "1.2.826.0.1.3680043.8.498.1001"
SERIES_UID = "1.2.826.0.1.3680043.8.498.1002"

CDA_DOCUMENT = b"""<?xml version="1.0" encoding="UTF-8"?>
<ClinicalDocument xmlns="urn:hl7-org:v3">
  <id root="2.16.840.1.113883.19.4" extension="c266"/>
  <code code="11488-4" codeSystem="2.16.840.1.113883.6.1"
        codeSystemName="LOINC" displayName="Consultation note"/>
  <title>Good Health Clinic Consultation Note</title>
  <recordTarget>
    <patientRole>
      <id extension="12345" root="2.16.840.1.113883.19.5"/>
      <patient>
        <name>
          <given>Henry</given>
          <family>Levin</family>
          <suffix>the 7th</suffix>
        </name>
        <administrativeGenderCode code="M" codeSystem="2.16.840.1.113883.5.1"/>
        <birthTime value="19320924"/>
      </patient>
    </patientRole>
  </recordTarget>
  <component>
    <structuredBody>
      <component>
        <section>
          <entry>
            <observationMedia>
              <value mediaType="image/jpeg"/>
            </observationMedia>
          </entry>
          <entry>
            <observationMedia>
              <value mediaType="image/png"/>
            </observationMedia>
          </entry>
          <entry>
            <observationMedia>
              <value mediaType="image/jpeg"/>
            </observationMedia>
          </entry>
        </section>
      </component>
    </structuredBody>
  </component>
</ClinicalDocument>
"""

# odd length on purpose
PDF_DOCUMENT = b"%PDF-1.4\n1 0 obj\n<< /Type /Catalog >>\nendobj\ntrailer\n%%EOF\n"

STL_DOCUMENT = b"""solid cube
  facet normal 0 0 1
    outer loop
      vertex 0 0 1
      vertex 1 0 1
      vertex 0 1 1
    endloop
  endfacet
endsolid cube
"""


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def cda_bytes() -> bytes:
    return CDA_DOCUMENT


@pytest.fixture
def cda_file(tmp_path: Path) -> Path:
    path = tmp_path / "report.xml"
    path.write_bytes(CDA_DOCUMENT)
    return path


@pytest.fixture
def pdf_file(tmp_path: Path) -> Path:
    path = tmp_path / "scan.pdf"
    path.write_bytes(PDF_DOCUMENT)
    return path


@pytest.fixture
def stl_file(tmp_path: Path) -> Path:
    path = tmp_path / "model.stl"
    path.write_bytes(STL_DOCUMENT)
    return path


@pytest.fixture
def make_series_file() -> Callable[..., Path]:
    """Factory writing a minimal DICOM instance of an existing series."""

    def _make(
        path: Path,
        instance_number: int | None = 1,
        study_uid: str = STUDY_UID,
        series_uid: str = SERIES_UID,
        patient_id: str = "12345",
        patient_name: str = "Levin^Henry^^^the 7th",
    ) -> Path:
        ds = Dataset()
        ds.SpecificCharacterSet = "ISO_IR 192"
        ds.SOPClassUID = EncapsulatedPDFStorage
        ds.SOPInstanceUID = UID(f"{series_uid}.{instance_number or 0}")
        ds.PatientName = patient_name
        ds.PatientID = patient_id
        ds.StudyInstanceUID = UID(study_uid)
        ds.SeriesInstanceUID = UID(series_uid)
        ds.StudyDate = "20240102"
        ds.StudyTime = "101500"
        ds.StudyID = "S1"
        ds.AccessionNumber = "A42"
        ds.SeriesNumber = "7"
        ds.Modality = "DOC"
        if instance_number is not None:
            ds.InstanceNumber = instance_number

        file_meta = FileMetaDataset()
        file_meta.MediaStorageSOPClassUID = ds.SOPClassUID
        file_meta.MediaStorageSOPInstanceUID = ds.SOPInstanceUID
        file_meta.ImplementationClassUID = UID("1.2.3.4")
        file_meta.TransferSyntaxUID = ExplicitVRLittleEndian
        ds.file_meta = file_meta

        path.parent.mkdir(parents=True, exist_ok=True)
        ds.save_as(path, enforce_file_format=True)
        return path

    return _make
