import logging
import types

from .errors import UnknownFieldTag, MalformedFormatControl
from .fields import DecodedField
from .formats import FieldControls, FieldDefinition, FormatGrammar, split_components, parse_field_description


class FileControlField:
    """The field of all-zero tag that opens a data descriptive record.

    Besides its controls it carries the file title and a list of
    parent/child tag pairs describing how fields nest inside records.
    """

    def __init__(self, tag: str, controls: FieldControls, file_title: str, tag_pairs):
        self.tag = tag
        self.controls = controls
        self.file_title = file_title
        self.tag_pairs = tuple(tag_pairs)

    def children_of(self, tag):
        return [child for parent, child in self.tag_pairs if parent == tag]

    def parent_of(self, tag):
        for parent, child in self.tag_pairs:
            if child == tag:
                return parent
        return None

    def as_decoded_field(self):
        return DecodedField(self.tag, [
            ("file_title", self.file_title),
            ("field_tree", ["{}{}".format(p, c) for p, c in self.tag_pairs]),
        ])

    @staticmethod
    def from_data(tag: str, data: bytes, field_control_length: int, encoding="latin-1"):
        controls, components = split_components(data, field_control_length, encoding)
        file_title = components[0]
        pairs_text = "".join(components[1:])
        pair_size = 2 * len(tag)
        if len(pairs_text) % pair_size != 0:
            raise MalformedFormatControl("File control field tag pairs {!r} are not {} characters each".format(
                pairs_text, pair_size
            ))
        pairs = []
        for start in range(0, len(pairs_text), pair_size):
            middle = start + len(tag)
            pairs.append((pairs_text[start:middle], pairs_text[middle:start+pair_size]))
        return FileControlField(tag, controls, file_title, pairs)


def is_file_control_tag(tag: str) -> bool:
    return bool(tag) and all(x == "0" for x in tag)


def definition_as_decoded_field(definition: FieldDefinition) -> DecodedField:
    return DecodedField(definition.tag, [
        ("field_name", definition.name),
        ("array_descriptor", definition.array_descriptor),
        ("format_controls", definition.format_controls),
    ])


class FieldDictionary:
    """Read-only lookup from field tag to the definition declared in the data descriptive record."""

    def __init__(self, definitions: dict, file_control: FileControlField = None):
        self._definitions = types.MappingProxyType(dict(definitions))
        self.file_control = file_control

    @property
    def file_title(self):
        return self.file_control.file_title if self.file_control else None

    def definition_for(self, tag: str) -> FieldDefinition:
        try:
            return self._definitions[tag]
        except KeyError:
            raise UnknownFieldTag(tag) from None

    def grammar_for(self, tag: str) -> FormatGrammar:
        return self.definition_for(tag).grammar

    def tags(self):
        return list(self._definitions)

    def __contains__(self, tag):
        return tag in self._definitions

    def __iter__(self):
        return iter(self._definitions)

    def __len__(self):
        return len(self._definitions)

    @staticmethod
    def from_descriptive_fields(fields, field_control_length: int, encoding="latin-1"):
        """Build the dictionary from ``(tag, data)`` pairs of a data descriptive record.

        ``data`` excludes the field terminator. A tag of all zeros is taken as
        the file control field; every other field is parsed into its format
        grammar.
        """
        definitions = {}
        file_control = None
        for tag, data in fields:
            if is_file_control_tag(tag):
                file_control = FileControlField.from_data(tag, data, field_control_length, encoding)
                continue
            if tag in definitions:
                logging.getLogger(__name__).warning("Overwriting field {}, already defined".format(tag))
            definitions[tag] = parse_field_description(tag, data, field_control_length, encoding)
        logging.getLogger(__name__).debug("Field dictionary built with {} definitions".format(len(definitions)))
        return FieldDictionary(definitions, file_control)
