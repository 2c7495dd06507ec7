import decimal
import logging
import struct

from .config import LengthPolicy
from .errors import FieldLengthMismatch, InvalidSubfieldValue
from .formats import FormatGrammar, SubfieldDescriptor, SubfieldType


class DecodedField:
    """The decoded subfields of one field, in the order they were read."""

    def __init__(self, tag: str, subfields, repeat_from=None, repeat_size=0):
        self.tag = tag
        self.subfields = tuple(subfields)
        self.repeat_from = repeat_from
        self.repeat_size = repeat_size

    @property
    def values(self):
        return [value for _, value in self.subfields]

    @property
    def names(self):
        return [name for name, _ in self.subfields]

    def __getitem__(self, name):
        if isinstance(name, int):
            return self.subfields[name][1]
        values = [value for sf_name, value in self.subfields if sf_name == name]
        if not values:
            raise KeyError(name)
        return values

    def __contains__(self, name):
        return any(sf_name == name for sf_name, _ in self.subfields)

    def __len__(self):
        return len(self.subfields)

    def __iter__(self):
        return iter(self.subfields)

    def rows(self):
        """Group the subfields into one dict per repetition.

        Non-repeating subfields are included in every row. A field without
        repetition gives a single row.
        """
        if self.repeat_from is None or not self.repeat_size:
            return [dict(self.subfields)]
        prefix = self.subfields[:self.repeat_from]
        repeated = self.subfields[self.repeat_from:]
        if not repeated:
            return [dict(prefix)]
        rows = []
        for i in range(0, len(repeated), self.repeat_size):
            row = dict(prefix)
            row.update(repeated[i:i+self.repeat_size])
            rows.append(row)
        return rows

    def __repr__(self):
        return "DecodedField({}, {!r})".format(self.tag, list(self.subfields))


class _FieldData:

    def __init__(self, tag, data: bytes):
        self.tag = tag
        self.data = data
        self.index = 0

    def exhausted(self):
        return self.index >= len(self.data)

    def take(self, descriptor: SubfieldDescriptor) -> bytes:
        if descriptor.width is not None:
            end = self.index + descriptor.width
            if end > len(self.data):
                raise FieldLengthMismatch(
                    "Field {}: subfield {!r} needs {} bytes at offset {} but only {} remain".format(
                        self.tag, descriptor.name, descriptor.width, self.index, len(self.data) - self.index
                    )
                )
        elif descriptor.delimiter is not None:
            # An empty value still needs its delimiter
            if self.exhausted():
                raise FieldLengthMismatch("Field {}: no data left for subfield {!r} at offset {}".format(
                    self.tag, descriptor.name, self.index
                ))
            end = self.data.find(descriptor.delimiter, self.index)
            if end == -1:
                end = len(self.data)
            chunk = self.data[self.index:end]
            self.index = min(end + len(descriptor.delimiter), len(self.data))
            return chunk
        else:
            end = len(self.data)
        chunk = self.data[self.index:end]
        self.index = end
        return chunk


def convert_value(descriptor: SubfieldDescriptor, raw: bytes, encoding: str):
    kind = descriptor.kind
    if kind == SubfieldType.TEXT:
        try:
            return raw.decode(encoding)
        except UnicodeDecodeError:
            raise InvalidSubfieldValue("Subfield {!r} is not valid {}: {!r}".format(
                descriptor.name, encoding, raw
            )) from None
    if kind == SubfieldType.BIT_STRING:
        return bytes(raw)
    if kind == SubfieldType.UNSIGNED_INTEGER:
        return int.from_bytes(raw, byteorder="little", signed=False)
    if kind == SubfieldType.SIGNED_INTEGER:
        return int.from_bytes(raw, byteorder="little", signed=True)
    if kind == SubfieldType.FLOAT:
        return struct.unpack("<f" if len(raw) == 4 else "<d", raw)[0]
    try:
        text = raw.decode("ascii").strip()
    except UnicodeDecodeError:
        raise InvalidSubfieldValue("Subfield {!r} is not ASCII: {!r}".format(descriptor.name, raw)) from None
    if kind == SubfieldType.CHARACTER_BITS:
        if text.strip("01"):
            raise InvalidSubfieldValue("Subfield {!r} is not a bit string: {!r}".format(descriptor.name, text))
        return text
    if not text:
        return None
    if kind == SubfieldType.INTEGER:
        try:
            return int(text)
        except ValueError:
            raise InvalidSubfieldValue("Subfield {!r} is not an integer: {!r}".format(descriptor.name, text)) from None
    try:
        return decimal.Decimal(text)
    except decimal.InvalidOperation:
        raise InvalidSubfieldValue("Subfield {!r} is not a number: {!r}".format(descriptor.name, text)) from None


def decode_field(tag: str, data: bytes, grammar: FormatGrammar, encoding="latin-1",
                 length_policy=LengthPolicy.FAIL) -> DecodedField:
    """Decode the data of one field (without its field terminator) using its grammar.

    Subfields outside the repeating part are read once; the repeating part is
    read over and over until the data is used up. Data that does not line up
    with the grammar raises :class:`FieldLengthMismatch`, or is logged and
    dropped under the ``warn`` length policy.
    """
    stream = _FieldData(tag, data)
    subfields = []
    try:
        for descriptor in grammar.leading_subfields:
            subfields.append((descriptor.name, convert_value(descriptor, stream.take(descriptor), encoding)))
        repeating = grammar.repeating_subfields
        while repeating and not stream.exhausted():
            start = stream.index
            for descriptor in repeating:
                subfields.append((descriptor.name, convert_value(descriptor, stream.take(descriptor), encoding)))
            if stream.index == start:
                break
        if not stream.exhausted():
            raise FieldLengthMismatch("Field {}: {} bytes left over after decoding {} subfields".format(
                tag, len(data) - stream.index, len(subfields)
            ))
    except FieldLengthMismatch as ex:
        if length_policy != LengthPolicy.WARN:
            raise
        # Drop a partly decoded repetition so rows() stays aligned
        repeat_size = len(grammar.repeating_subfields)
        leading_count = len(grammar.leading_subfields)
        if repeat_size and len(subfields) > leading_count:
            extra = (len(subfields) - leading_count) % repeat_size
            if extra:
                del subfields[-extra:]
        logging.getLogger(__name__).warning("{}, keeping the {} subfields decoded so far".format(ex, len(subfields)))
    return DecodedField(tag, subfields, grammar.repeat_from, len(grammar.repeating_subfields))
