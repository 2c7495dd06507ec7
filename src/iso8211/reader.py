import enum
import logging
from pathlib import Path

from autoinject import injector

from .config import DecoderSettings, LengthPolicy
from .dictionary import FieldDictionary, is_file_control_tag, definition_as_decoded_field
from .directory import decode_directory
from .errors import (
    ISO8211Error, UnexpectedEndOfStream, TruncatedRecord, MalformedLeader, MissingFieldTerminator, PositionMismatch
)
from .fields import decode_field
from .leader import Leader, LEADER_LENGTH, decode_leader
from .stream import ByteCursor, FT


class ReaderState(enum.Enum):

    EXPECTING_DESCRIPTIVE_RECORD = 'descriptive'
    EXPECTING_DATA_RECORD = 'data'
    EXHAUSTED = 'exhausted'


class DecodedRecord:

    def __init__(self, leader: Leader, fields, offset: int = 0):
        self.leader = leader
        self.fields = list(fields)
        self.offset = offset

    @property
    def is_descriptive(self):
        return self.leader.is_descriptive

    @property
    def tags(self):
        return [f.tag for f in self.fields]

    def fields_with_tag(self, tag):
        return [f for f in self.fields if f.tag == tag]

    def __getitem__(self, tag):
        for field in self.fields:
            if field.tag == tag:
                return field
        raise KeyError(tag)

    def __contains__(self, tag):
        return any(f.tag == tag for f in self.fields)

    def __iter__(self):
        return iter(self.fields)

    def __len__(self):
        return len(self.fields)

    def __repr__(self):
        return "DecodedRecord({}, offset={}, tags={})".format(
            self.leader.leader_identifier.value, self.offset, self.tags
        )


class _CleanEnd(Exception):
    pass


class RecordReader:
    """Decodes the records of one ISO 8211 stream, one at a time.

    The first record must be the data descriptive record; decoding it builds
    :attr:`dictionary`, which every later data record is decoded against. The
    reader stops for good at the end of the stream or at the first failure.
    """

    settings: DecoderSettings = None

    @injector.construct
    def __init__(self, stream, text_encoding: str = None, length_policy=None):
        self._cursor = stream if isinstance(stream, ByteCursor) else ByteCursor(stream)
        self._text_encoding = text_encoding
        self._length_policy = LengthPolicy(length_policy) if length_policy is not None else None
        self._reused_layout = None
        self.state = ReaderState.EXPECTING_DESCRIPTIVE_RECORD
        self.dictionary = None

    @property
    def text_encoding(self):
        return self._text_encoding or self.settings.text_encoding

    @property
    def length_policy(self):
        return self._length_policy or self.settings.length_policy

    def position(self):
        return self._cursor.position()

    def __iter__(self):
        while True:
            record = self.read_record()
            if record is None:
                return
            yield record

    def read_record(self):
        """Return the next record, or None once the stream has ended cleanly."""
        if self.state == ReaderState.EXHAUSTED:
            return None
        record_start = self._cursor.position()
        try:
            if self.state == ReaderState.EXPECTING_DESCRIPTIVE_RECORD:
                record = self._read_descriptive_record(record_start)
                self.state = ReaderState.EXPECTING_DATA_RECORD
            else:
                record = self._read_data_record(record_start)
        except _CleanEnd:
            logging.getLogger(__name__).debug("End of stream at offset {}".format(record_start))
            self.state = ReaderState.EXHAUSTED
            return None
        except UnexpectedEndOfStream as ex:
            self.state = ReaderState.EXHAUSTED
            raise TruncatedRecord("Record starting at offset {} is truncated: {}".format(record_start, ex)) from ex
        except ISO8211Error:
            self.state = ReaderState.EXHAUSTED
            raise
        logging.getLogger(__name__).debug("Decoded record at offset {} with fields {}".format(
            record_start, ",".join(record.tags)
        ))
        return record

    def _read_layout(self, record_start):
        try:
            raw = self._cursor.read_exact(LEADER_LENGTH)
        except UnexpectedEndOfStream as ex:
            if ex.received == 0:
                raise _CleanEnd() from ex
            raise
        leader = decode_leader(raw)
        entries = decode_directory(self._cursor, leader.directory_size, leader.entry_map)
        return leader, entries, record_start + leader.base_address_of_field_data, record_start + leader.record_length

    def _read_descriptive_record(self, record_start):
        leader, entries, field_area_start, record_end = self._read_layout(record_start)
        if not leader.is_descriptive:
            raise MalformedLeader("First record must be a data descriptive record, found leader identifier {}".format(
                leader.leader_identifier.value
            ))
        field_data = list(self._read_field_area(entries, field_area_start, record_end))
        self.dictionary = FieldDictionary.from_descriptive_fields(
            field_data,
            leader.field_control_length,
            self.text_encoding
        )
        fields = []
        for tag, _ in field_data:
            if is_file_control_tag(tag) and self.dictionary.file_control is not None:
                fields.append(self.dictionary.file_control.as_decoded_field())
            else:
                fields.append(definition_as_decoded_field(self.dictionary.definition_for(tag)))
        return DecodedRecord(leader, fields, record_start)

    def _read_data_record(self, record_start):
        boundary_allowed = self._reused_layout is not None
        if boundary_allowed:
            leader, entries = self._reused_layout
            field_area_start = record_start
            record_end = record_start + leader.field_area_length
        else:
            leader, entries, field_area_start, record_end = self._read_layout(record_start)
            if leader.is_descriptive:
                raise MalformedLeader("Unexpected data descriptive record at offset {}".format(record_start))
            if leader.reuses_leader:
                self._reused_layout = (leader, entries)
        # Resolve every tag before consuming any field data
        grammars = [self.dictionary.grammar_for(entry.tag) for entry in entries]
        fields = []
        field_data = self._read_field_area(entries, field_area_start, record_end, boundary_allowed)
        for i, (tag, data) in enumerate(field_data):
            fields.append(decode_field(tag, data, grammars[i], self.text_encoding, self.length_policy))
        return DecodedRecord(leader, fields, record_start)

    def _read_field_area(self, entries, field_area_start, record_end, boundary_allowed=False):
        """Yield ``(tag, data)`` for each directory entry, data excluding its field terminator."""
        for i, entry in enumerate(entries):
            expected = field_area_start + entry.position
            actual = self._cursor.position()
            if actual != expected:
                raise PositionMismatch("Field {} does not start where the directory places it".format(entry.tag),
                                       expected, actual)
            if entry.length < 1:
                raise MissingFieldTerminator("Field {} has no room for a field terminator".format(entry.tag))
            try:
                raw = self._cursor.read_exact(entry.length)
            except UnexpectedEndOfStream as ex:
                if boundary_allowed and i == 0 and ex.received == 0:
                    raise _CleanEnd() from ex
                raise
            if raw[-1] != FT:
                raise MissingFieldTerminator("Field {} ends with 0x{:02x} instead of a field terminator".format(
                    entry.tag, raw[-1]
                ))
            yield entry.tag, raw[:-1]
        if self._cursor.position() != record_end:
            raise PositionMismatch("Fields do not fill the record length", record_end, self._cursor.position())


class ISO8211File:
    """Convenience access to the records of an ISO 8211 file on disk.

    Each call to :meth:`records` opens the file again and starts from the
    first record.
    """

    def __init__(self, path, **reader_kwargs):
        self.path = Path(path)
        self.reader_kwargs = reader_kwargs
        self.dictionary = None

    def records(self):
        with open(self.path, "rb") as h:
            reader = RecordReader(h, **self.reader_kwargs)
            for record in reader:
                self.dictionary = reader.dictionary
                yield record

    def data_records(self):
        for record in self.records():
            if not record.is_descriptive:
                yield record
