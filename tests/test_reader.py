import io
import pathlib
import tempfile
import unittest

from iso8211 import (
    RecordReader, ReaderState, ISO8211File, LengthPolicy,
    TruncatedRecord, MalformedLeader, UnknownFieldTag, MissingFieldTerminator, PositionMismatch,
    FieldLengthMismatch, MisalignedDirectory
)

from builders import (
    FT, UT, build_record, record_id, coordinates, sample_descriptive_record, sample_data_record
)


class TestRecordReader(unittest.TestCase):

    def setUp(self):
        self.ddr = sample_descriptive_record()

    def reader(self, *records, **kwargs):
        return RecordReader(io.BytesIO(self.ddr + b"".join(records)), **kwargs)

    def test_two_records(self):
        reader = self.reader(sample_data_record())
        records = list(reader)
        self.assertEqual(len(records), 2)
        self.assertTrue(records[0].is_descriptive)
        self.assertFalse(records[1].is_descriptive)
        self.assertEqual(records[1].tags, ["0001", "TEST"])
        self.assertEqual(len(records[1].fields_with_tag("TEST")), 1)
        self.assertIn("TEST", records[1])
        self.assertEqual(records[1]["TEST"].values, ["ABC", 42])
        self.assertEqual(records[1]["0001"].values, [1])
        self.assertEqual(records[1].offset, len(self.ddr))
        self.assertEqual(reader.state, ReaderState.EXHAUSTED)
        self.assertIsNone(reader.read_record())

    def test_state_transitions(self):
        reader = self.reader(sample_data_record())
        self.assertEqual(reader.state, ReaderState.EXPECTING_DESCRIPTIVE_RECORD)
        self.assertIsNone(reader.dictionary)
        reader.read_record()
        self.assertEqual(reader.state, ReaderState.EXPECTING_DATA_RECORD)
        self.assertIn("TEST", reader.dictionary)
        reader.read_record()
        self.assertEqual(reader.state, ReaderState.EXPECTING_DATA_RECORD)
        self.assertIsNone(reader.read_record())
        self.assertEqual(reader.state, ReaderState.EXHAUSTED)

    def test_descriptive_record_contents(self):
        record = self.reader().read_record()
        self.assertEqual(record.tags, ["0000", "0001", "TEST", "SG2D"])
        self.assertEqual(record["0000"]["file_title"], ["Sample"])
        self.assertEqual(record["0000"]["field_tree"], [["0001TEST", "0001SG2D"]])
        self.assertEqual(record["TEST"]["field_name"], ["Test field"])
        self.assertEqual(record["TEST"]["array_descriptor"], ["LABEL!VALUE"])
        self.assertEqual(record["TEST"]["format_controls"], ["(A,I)"])

    def test_repeating_field(self):
        record = build_record([("0001", record_id(2)), ("SG2D", coordinates((1, 2), (-3, 4)))])
        records = list(self.reader(record))
        self.assertEqual(records[1]["SG2D"].rows(), [{"YCOO": 1, "XCOO": 2}, {"YCOO": -3, "XCOO": 4}])

    def test_many_records(self):
        records = list(self.reader(*[sample_data_record(i, "L{}".format(i), i * 10) for i in range(1, 6)]))
        self.assertEqual(len(records), 6)
        self.assertEqual([r["TEST"]["VALUE"][0] for r in records[1:]], [10, 20, 30, 40, 50])

    def test_empty_stream(self):
        reader = RecordReader(io.BytesIO(b""))
        self.assertIsNone(reader.read_record())
        self.assertEqual(reader.state, ReaderState.EXHAUSTED)

    def test_truncated_second_record(self):
        data_record = sample_data_record()
        for cut in (3, 10, len(data_record) - 30, len(data_record) - 1):
            with self.subTest(cut=cut):
                reader = self.reader(data_record[:cut])
                first = reader.read_record()
                self.assertTrue(first.is_descriptive)
                self.assertEqual(first["TEST"]["format_controls"], ["(A,I)"])
                with self.assertRaises(TruncatedRecord):
                    reader.read_record()
                self.assertEqual(reader.state, ReaderState.EXHAUSTED)
                self.assertIsNone(reader.read_record())

    def test_truncated_descriptive_record(self):
        reader = RecordReader(io.BytesIO(self.ddr[:-5]))
        with self.assertRaises(TruncatedRecord):
            reader.read_record()

    def test_first_record_must_be_descriptive(self):
        reader = RecordReader(io.BytesIO(sample_data_record()))
        with self.assertRaises(MalformedLeader):
            reader.read_record()

    def test_second_descriptive_record(self):
        reader = self.reader(self.ddr)
        reader.read_record()
        with self.assertRaises(MalformedLeader):
            reader.read_record()

    def test_unknown_tag(self):
        record = build_record([("0001", record_id(1)), ("XXXX", b"1" + FT)])
        reader = self.reader(record, sample_data_record())
        reader.read_record()
        with self.assertRaises(UnknownFieldTag):
            reader.read_record()
        base_address = int(record[12:17])
        self.assertEqual(reader.position(), len(self.ddr) + base_address)
        self.assertIsNone(reader.read_record())

    def test_directory_without_terminator(self):
        record = bytearray(sample_data_record())
        base_address = int(record[12:17])
        record[base_address - 1] = 0x1f
        reader = self.reader(bytes(record))
        reader.read_record()
        with self.assertRaises(MissingFieldTerminator):
            reader.read_record()

    def test_misaligned_directory(self):
        record = bytearray(sample_data_record())
        record[20:24] = b"3304"
        reader = self.reader(bytes(record))
        reader.read_record()
        with self.assertRaises(MisalignedDirectory):
            reader.read_record()

    def test_field_without_terminator(self):
        record = build_record([("0001", b"\x01\x00" + UT)])
        reader = self.reader(record)
        reader.read_record()
        with self.assertRaises(MissingFieldTerminator):
            reader.read_record()

    def test_field_position_mismatch(self):
        record = build_record([("0001", record_id(1)), ("TEST", b"ABC" + UT + b"1" + FT)], positions=[0, 5])
        reader = self.reader(record)
        reader.read_record()
        with self.assertRaises(PositionMismatch) as ctx:
            reader.read_record()
        self.assertEqual(ctx.exception.expected - ctx.exception.actual, 2)

    def test_record_length_mismatch(self):
        record = bytearray(sample_data_record())
        record[0:5] = str(len(record) + 2).zfill(5).encode("ascii")
        reader = self.reader(bytes(record))
        reader.read_record()
        with self.assertRaises(PositionMismatch):
            reader.read_record()

    def test_field_length_mismatch(self):
        field = b"".join(v.to_bytes(4, "little", signed=True) for v in (1, 2, 3)) + FT
        record = build_record([("0001", record_id(1)), ("SG2D", field)])
        reader = self.reader(record)
        reader.read_record()
        with self.assertRaises(FieldLengthMismatch):
            reader.read_record()

    def test_field_length_mismatch_warn_policy(self):
        field = b"".join(v.to_bytes(4, "little", signed=True) for v in (1, 2, 3)) + FT
        record = build_record([("0001", record_id(1)), ("SG2D", field)])
        reader = self.reader(record, sample_data_record(), length_policy="warn")
        self.assertEqual(reader.length_policy, LengthPolicy.WARN)
        with self.assertLogs("iso8211.fields", level="WARNING"):
            records = list(reader)
        self.assertEqual(records[1]["SG2D"].rows(), [{"YCOO": 1, "XCOO": 2}])
        self.assertEqual(records[2]["TEST"].values, ["ABC", 42])

    def test_text_encoding_override(self):
        reader = self.reader(sample_data_record(label="Île"), text_encoding="latin-1")
        self.assertEqual(list(reader)[1]["TEST"]["LABEL"], ["Île"])
        record = build_record([("TEST", "Île".encode("utf-8") + UT + b"1" + FT)])
        reader = self.reader(record, text_encoding="utf-8")
        self.assertEqual(list(reader)[1]["TEST"]["LABEL"], ["Île"])

    def test_reused_leader(self):
        first = build_record([("0001", record_id(1)), ("TEST", b"ABC" + UT + b"42" + FT)], leader_id="R")
        second = record_id(2) + b"XYZ" + UT + b"07" + FT
        third = record_id(3) + b"DEF" + UT + b"99" + FT
        records = list(self.reader(first, second, third))
        self.assertEqual(len(records), 4)
        self.assertEqual([r["0001"].values[0] for r in records[1:]], [1, 2, 3])
        self.assertEqual(records[2]["TEST"].values, ["XYZ", 7])
        self.assertIs(records[2].leader, records[1].leader)
        self.assertEqual(records[3].offset, len(self.ddr) + len(first) + len(second))

    def test_reused_leader_truncated(self):
        first = build_record([("0001", record_id(1)), ("TEST", b"ABC" + UT + b"42" + FT)], leader_id="R")
        reader = self.reader(first, record_id(2)[:2])
        reader.read_record()
        reader.read_record()
        with self.assertRaises(TruncatedRecord):
            reader.read_record()

    def test_independent_readers(self):
        first = self.reader(sample_data_record(1, "A", 1))
        second = self.reader(sample_data_record(2, "B", 2))
        first.read_record()
        second.read_record()
        self.assertEqual(second.read_record()["TEST"].values, ["B", 2])
        self.assertEqual(first.read_record()["TEST"].values, ["A", 1])


class TestISO8211File(unittest.TestCase):

    def test_records_restart(self):
        with tempfile.TemporaryDirectory() as d:
            path = pathlib.Path(d) / "SAMPLE.000"
            path.write_bytes(sample_descriptive_record() + sample_data_record() + sample_data_record(2, "DEF", 7))
            iso_file = ISO8211File(path)
            self.assertEqual(len(list(iso_file.records())), 3)
            self.assertEqual([r["TEST"].values for r in iso_file.data_records()], [["ABC", 42], ["DEF", 7]])
            self.assertEqual(iso_file.dictionary.file_title, "Sample")
