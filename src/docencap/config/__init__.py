from docencap.config.settings import (
    CodedConcept,
    DocumentInfo,
    EncapsulationSettings,
    EncodingOptions,
    EquipmentInfo,
    GroupLengthMode,
    PatientInfo,
    SequenceLength,
    SeriesOptions,
    TransferSyntax,
    WriteMode,
)

__all__ = [
    "CodedConcept",
    "DocumentInfo",
    "EncapsulationSettings",
    "EncodingOptions",
    "EquipmentInfo",
    "GroupLengthMode",
    "PatientInfo",
    "SequenceLength",
    "SeriesOptions",
    "TransferSyntax",
    "WriteMode",
]
