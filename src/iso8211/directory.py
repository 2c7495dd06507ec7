import dataclasses

from .errors import EmptyDirectory, MisalignedDirectory, InvalidDirectoryEntry, MissingFieldTerminator
from .leader import EntryMap
from .numeric import fixed_width_decimal
from .stream import ByteCursor, FT


@dataclasses.dataclass(frozen=True)
class DirectoryEntry:

    tag: str
    length: int
    position: int


def decode_directory(cursor: ByteCursor, directory_size: int, entry_map: EntryMap) -> list:
    """Read a record directory from the cursor.

    The directory is ``directory_size`` bytes long: a run of fixed width
    tag/length/position entries followed by a single field terminator. The
    entries are returned in the order they appear, which is also the order
    of the fields in the field area.
    """
    if directory_size <= 1:
        raise EmptyDirectory("Directory of {} bytes has no room for any entries".format(directory_size))
    element_width = entry_map.element_width
    if element_width == 0:
        raise MisalignedDirectory("Entry map declares zero width directory entries")
    if (directory_size - 1) % element_width != 0:
        raise MisalignedDirectory("Directory of {} bytes is not a whole number of {} byte entries".format(
            directory_size - 1, element_width
        ))
    entries = []
    for _ in range((directory_size - 1) // element_width):
        entries.append(_decode_entry(cursor.read_exact(element_width), entry_map))
    terminator = cursor.read_byte()
    if terminator != FT:
        raise MissingFieldTerminator("Directory ends with 0x{:02x} instead of a field terminator".format(terminator))
    return entries


def _decode_entry(raw: bytes, entry_map: EntryMap) -> DirectoryEntry:
    tag_end = entry_map.tag_width
    length_end = tag_end + entry_map.length_width
    raw_tag = raw[:tag_end]
    if not all(0x20 < b < 0x7f for b in raw_tag):
        raise InvalidDirectoryEntry("tag {!r} is not printable ASCII".format(raw_tag))
    tag = raw_tag.decode("ascii")
    length = fixed_width_decimal(
        raw[tag_end:length_end],
        "length of field {}".format(tag),
        InvalidDirectoryEntry
    )
    position = fixed_width_decimal(
        raw[length_end:],
        "position of field {}".format(tag),
        InvalidDirectoryEntry
    )
    return DirectoryEntry(tag, length, position)
