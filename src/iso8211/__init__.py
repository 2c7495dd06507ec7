"""Decoder for ISO/IEC 8211 interchange files such as S-57 chart cells."""
from .errors import (
    ISO8211Error,
    MalformedLeader,
    EmptyDirectory,
    MisalignedDirectory,
    InvalidDirectoryEntry,
    MissingFieldTerminator,
    UnsupportedFormatToken,
    MalformedFormatControl,
    FormatLabelMismatch,
    UnknownFieldTag,
    PositionMismatch,
    TruncatedRecord,
    UnexpectedEndOfStream,
    FieldLengthMismatch,
    InvalidSubfieldValue,
)
from .config import DecoderSettings, LengthPolicy
from .stream import ByteCursor
from .leader import Leader, EntryMap, LeaderIdentifier, decode_leader
from .directory import DirectoryEntry, decode_directory
from .formats import (
    SubfieldType, SubfieldDescriptor, FormatGrammar, FieldControls, FieldDefinition, DataStructure, DataType,
    parse_format_controls, parse_array_descriptor, parse_field_description
)
from .fields import DecodedField, decode_field
from .dictionary import FieldDictionary, FileControlField
from .reader import RecordReader, ReaderState, DecodedRecord, ISO8211File
