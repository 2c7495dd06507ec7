"""Field descriptions from the data descriptive record.

Each data descriptive field holds a short field control prefix followed by up
to three components separated by unit terminators: the field name, the array
descriptor (the ``!`` separated subfield labels) and the format controls (the
parenthesized list of subfield types, e.g. ``(A(2),I(10),3b12)``). Together
they produce a :class:`FormatGrammar` that drives decoding of every data
record field with the same tag.
"""
import dataclasses
import enum
import string
import typing

from .errors import UnsupportedFormatToken, MalformedFormatControl, FormatLabelMismatch
from .stream import UT_BYTE


DEFAULT_FIELD_CONTROL_LENGTH = 9


class DataStructure(enum.Enum):

    ELEMENTARY = '0'
    VECTOR = '1'
    ARRAY = '2'
    CONCATENATED = '3'


class DataType(enum.Enum):

    CHARACTER = '0'
    IMPLICIT_POINT = '1'
    EXPLICIT_POINT = '2'
    SCALED_EXPLICIT_POINT = '3'
    CHARACTER_BIT_STRING = '4'
    BIT_STRING = '5'
    MIXED = '6'


class SubfieldType(enum.Enum):

    TEXT = 'A'
    INTEGER = 'I'
    REAL = 'R'
    SCALED_REAL = 'S'
    CHARACTER_BITS = 'C'
    BIT_STRING = 'B'
    UNSIGNED_INTEGER = 'b1'
    SIGNED_INTEGER = 'b2'
    FLOAT = 'b4'

    @property
    def is_binary(self):
        return self in (SubfieldType.BIT_STRING, SubfieldType.UNSIGNED_INTEGER,
                        SubfieldType.SIGNED_INTEGER, SubfieldType.FLOAT)


_DEFAULT_SUBFIELD_TYPES = {
    DataType.CHARACTER: SubfieldType.TEXT,
    DataType.IMPLICIT_POINT: SubfieldType.INTEGER,
    DataType.EXPLICIT_POINT: SubfieldType.REAL,
    DataType.SCALED_EXPLICIT_POINT: SubfieldType.SCALED_REAL,
    DataType.CHARACTER_BIT_STRING: SubfieldType.CHARACTER_BITS,
    DataType.BIT_STRING: SubfieldType.BIT_STRING,
    DataType.MIXED: SubfieldType.BIT_STRING,
}

_BINARY_WIDTHS = {
    '1': (SubfieldType.UNSIGNED_INTEGER, (1, 2, 4, 8)),
    '2': (SubfieldType.SIGNED_INTEGER, (1, 2, 4, 8)),
    '4': (SubfieldType.FLOAT, (4, 8)),
}


@dataclasses.dataclass(frozen=True)
class FieldControls:

    data_structure: DataStructure
    data_type: DataType
    auxiliary_controls: str = "00"
    printable_graphics: str = ";&"
    escape_sequence: str = "   "


@dataclasses.dataclass(frozen=True)
class SubfieldDescriptor:
    """One subfield of a field's format.

    ``width`` is the fixed size in bytes. When it is ``None`` the subfield
    runs up to ``delimiter``, or to the end of the field data when there is
    no delimiter either.
    """

    name: str
    kind: SubfieldType
    width: typing.Optional[int] = None
    delimiter: typing.Optional[bytes] = UT_BYTE

    @property
    def is_fixed(self):
        return self.width is not None


@dataclasses.dataclass(frozen=True)
class FormatGrammar:
    """The ordered subfields of a field.

    When ``repeat_from`` is set, the subfields from that index onwards repeat
    until the field data is used up.
    """

    subfields: tuple
    repeat_from: typing.Optional[int] = None

    @property
    def names(self):
        return [s.name for s in self.subfields]

    @property
    def leading_subfields(self):
        return self.subfields if self.repeat_from is None else self.subfields[:self.repeat_from]

    @property
    def repeating_subfields(self):
        return () if self.repeat_from is None else self.subfields[self.repeat_from:]

    @property
    def fixed_width(self):
        """Byte width of one pass over the grammar, or None if any subfield is delimited."""
        if all(s.is_fixed for s in self.subfields):
            return sum(s.width for s in self.subfields)
        return None


@dataclasses.dataclass(frozen=True)
class FieldDefinition:

    tag: str
    controls: FieldControls
    name: str
    array_descriptor: str
    format_controls: str
    grammar: FormatGrammar


class _Control:

    def __init__(self, kind, width, delimiter, count):
        self.kind = kind
        self.width = width
        self.delimiter = delimiter
        self.count = count


class _Group:

    def __init__(self, items, count, explicit_count):
        self.items = items
        self.count = count
        self.explicit_count = explicit_count


class FormatControlParser:
    """Recursive descent parser for format control strings."""

    def __init__(self, text: str):
        self.text = text
        self.index = 0

    def parse(self):
        """Return the flattened list of controls and where repetition starts."""
        text = self.text.strip()
        if not text.startswith("(") or not text.endswith(")"):
            raise MalformedFormatControl("Format controls must be enclosed in parentheses: {!r}".format(self.text))
        self.text = text
        items = self._parse_group_body()
        if self.index != len(self.text):
            raise MalformedFormatControl("Unexpected {!r} after format controls {!r}".format(
                self.text[self.index:], self.text
            ))
        controls = []
        repeat_from = None
        for i, item in enumerate(items):
            if i == len(items) - 1 and isinstance(item, _Group) and not item.explicit_count:
                repeat_from = len(controls)
            self._flatten(item, controls)
        return controls, repeat_from

    def _flatten(self, item, output):
        for _ in range(item.count):
            if isinstance(item, _Group):
                for child in item.items:
                    self._flatten(child, output)
            else:
                output.append(item)

    def _peek(self):
        if self.index >= len(self.text):
            raise MalformedFormatControl("Format controls end unexpectedly: {!r}".format(self.text))
        return self.text[self.index]

    def _expect(self, char):
        if self._peek() != char:
            raise MalformedFormatControl("Expected {!r} at position {} of {!r}".format(char, self.index, self.text))
        self.index += 1

    def _read_digits(self):
        start = self.index
        while self.index < len(self.text) and self.text[self.index] in string.digits:
            self.index += 1
        return self.text[start:self.index]

    def _parse_group_body(self):
        self._expect("(")
        items = [self._parse_item()]
        while self._peek() == ",":
            self.index += 1
            items.append(self._parse_item())
        self._expect(")")
        return items

    def _parse_item(self):
        digits = self._read_digits()
        count = int(digits) if digits else 1
        if count == 0:
            raise MalformedFormatControl("Repeat count of zero in {!r}".format(self.text))
        char = self._peek()
        if char == "(":
            return _Group(self._parse_group_body(), count, bool(digits))
        if char in ",)":
            raise MalformedFormatControl("Empty format control at position {} of {!r}".format(self.index, self.text))
        if char == "b":
            return self._parse_binary(count)
        return self._parse_character_form(count)

    def _parse_binary(self, count):
        start = self.index
        self.index += 1
        digits = self._read_digits()
        token = self.text[start:self.index]
        if len(digits) < 2 or digits[0] not in _BINARY_WIDTHS:
            raise UnsupportedFormatToken(token, self.text)
        kind, widths = _BINARY_WIDTHS[digits[0]]
        width = int(digits[1:])
        if width not in widths:
            raise UnsupportedFormatToken(token, self.text)
        return _Control(kind, width, None, count)

    def _parse_character_form(self, count):
        start = self.index
        letter = self.text[self.index]
        self.index += 1
        try:
            kind = SubfieldType(letter)
        except ValueError:
            raise UnsupportedFormatToken(letter, self.text) from None
        width = None
        delimiter = UT_BYTE
        if self.index < len(self.text) and self.text[self.index] == "(":
            self.index += 1
            spec_start = self.index
            while self._peek() != ")":
                self.index += 1
            spec = self.text[spec_start:self.index]
            self.index += 1
            if not spec:
                raise MalformedFormatControl("Empty width in {!r}".format(self.text))
            if spec.isdigit():
                width = int(spec)
                if width == 0:
                    raise MalformedFormatControl("Zero width in {!r}".format(self.text))
            elif kind == SubfieldType.BIT_STRING:
                raise UnsupportedFormatToken(self.text[start:self.index], self.text)
            else:
                delimiter = spec.encode("latin-1")
        if kind == SubfieldType.BIT_STRING:
            if width is None or width % 8 != 0:
                raise UnsupportedFormatToken(self.text[start:self.index], self.text)
            width = width // 8
        return _Control(kind, width, delimiter if width is None else None, count)


def parse_format_controls(format_controls: str):
    """Parse a format control string into ``(controls, repeat_from)``."""
    return FormatControlParser(format_controls).parse()


def parse_array_descriptor(array_descriptor: str):
    """Split an array descriptor into labels and the index where repetition starts.

    ``*YCOO!XCOO`` gives ``(["YCOO", "XCOO"], 0)``.
    """
    if not array_descriptor:
        return [], None
    labels = []
    repeat_from = None
    for i, label in enumerate(array_descriptor.split("!")):
        if label.startswith("*"):
            if repeat_from is not None:
                raise MalformedFormatControl("More than one repetition marker in {!r}".format(array_descriptor))
            repeat_from = i
            label = label[1:]
        labels.append(label)
    return labels, repeat_from


def build_grammar(tag: str, controls: FieldControls, array_descriptor: str, format_controls: str) -> FormatGrammar:
    labels, label_repeat_from = parse_array_descriptor(array_descriptor)
    if not format_controls:
        if len(labels) > 1:
            raise FormatLabelMismatch(tag, labels, 1)
        kind =_DEFAULT_SUBFIELD_TYPES[controls.data_type]
        delimiter = None if kind.is_binary else UT_BYTE
        name = labels[0] if len(labels) == 1 else ""
        return FormatGrammar((SubfieldDescriptor(name, kind, None, delimiter),))
    tokens, format_repeat_from = parse_format_controls(format_controls)
    if labels and len(labels) != len(tokens):
        raise FormatLabelMismatch(tag, labels, len(tokens))
    names = labels if labels else [""] * len(tokens)
    subfields = tuple(
        SubfieldDescriptor(name, token.kind, token.width, token.delimiter)
        for name, token in zip(names, tokens)
    )
    repeat_from = label_repeat_from if label_repeat_from is not None else format_repeat_from
    return FormatGrammar(subfields, repeat_from)


def parse_field_controls(raw: bytes) -> FieldControls:
    if len(raw) < 2:
        raise MalformedFormatControl("Field controls are truncated: {!r}".format(raw))
    text = raw.decode("latin-1")
    try:
        structure = DataStructure(text[0])
        data_type = DataType(text[1])
    except ValueError:
        raise MalformedFormatControl("Invalid data structure or type code in field controls {!r}".format(text)) from None
    return FieldControls(
        data_structure=structure,
        data_type=data_type,
        auxiliary_controls=text[2:4],
        printable_graphics=text[4:6],
        escape_sequence=text[6:9],
    )


def split_components(data: bytes, field_control_length: int, encoding="latin-1"):
    """Split a descriptive field into its controls and unit terminated text components."""
    if len(data) < field_control_length:
        raise MalformedFormatControl("Field of {} bytes is shorter than its {} byte field controls".format(
            len(data), field_control_length
        ))
    controls = parse_field_controls(data[:field_control_length])
    components = [c.decode(encoding) for c in data[field_control_length:].split(UT_BYTE)]
    return controls, components


def parse_field_description(tag: str, data: bytes, field_control_length=DEFAULT_FIELD_CONTROL_LENGTH,
                            encoding="latin-1") -> FieldDefinition:
    """Build the definition of one data descriptive field.

    ``data`` is the field's bytes without its field terminator.
    """
    controls, components = split_components(data, field_control_length, encoding)
    while len(components) > 3 and components[-1] == "":
        components.pop()
    if len(components) > 3:
        raise MalformedFormatControl("Field {} has {} components, expected at most 3".format(tag, len(components)))
    components.extend([""] * (3 - len(components)))
    name, array_descriptor, format_controls = components
    grammar = build_grammar(tag, controls, array_descriptor, format_controls)
    return FieldDefinition(tag, controls, name, array_descriptor, format_controls, grammar)
