import dataclasses
import enum
import typing

from .errors import MalformedLeader
from .numeric import fixed_width_decimal, is_blank


LEADER_LENGTH = 24


class LeaderIdentifier(enum.Enum):

    DESCRIPTIVE = 'L'
    DATA = 'D'
    REUSABLE_DATA = 'R'


@dataclasses.dataclass(frozen=True)
class EntryMap:
    """Widths of the three parts of every directory entry."""

    length_width: int
    position_width: int
    reserved: int
    tag_width: int

    @property
    def element_width(self) -> int:
        return self.tag_width + self.length_width + self.position_width

    @staticmethod
    def from_bytes(raw: bytes):
        if len(raw) != 4:
            raise MalformedLeader("Entry map must be 4 bytes, got {}".format(len(raw)))
        names = ("length width", "position width", "reserved width", "tag width")
        widths = [
            fixed_width_decimal(raw[i:i+1], "Entry map " + names[i], MalformedLeader, blank_is_zero=True)
            for i in range(0, 4)
        ]
        return EntryMap(*widths)


@dataclasses.dataclass(frozen=True)
class Leader:
    """The fixed 24 byte header at the start of every record."""

    record_length: int
    interchange_level: str
    leader_identifier: LeaderIdentifier
    in_line_code_identifier: str
    version_number: str
    application_indicator: str
    field_control_length: typing.Optional[int]
    base_address_of_field_data: int
    extended_char_set_indicator: str
    entry_map: EntryMap

    @property
    def directory_size(self) -> int:
        return self.base_address_of_field_data - LEADER_LENGTH

    @property
    def field_area_length(self) -> int:
        return self.record_length - self.base_address_of_field_data

    @property
    def is_descriptive(self) -> bool:
        return self.leader_identifier == LeaderIdentifier.DESCRIPTIVE

    @property
    def reuses_leader(self) -> bool:
        return self.leader_identifier == LeaderIdentifier.REUSABLE_DATA


def _char(raw: bytes) -> str:
    return raw.decode("ascii", errors="replace")


def decode_leader(raw: bytes) -> Leader:
    """Decode a leader from exactly 24 bytes.

    Numeric fields must be all digits. The only blanks accepted are in the
    entry map (meaning zero) and the field control length of a data record,
    which the format leaves blank there.
    """
    if len(raw) != LEADER_LENGTH:
        raise MalformedLeader("Leader must be {} bytes, got {}".format(LEADER_LENGTH, len(raw)))
    record_length = fixed_width_decimal(raw[0:5], "Record length", MalformedLeader)
    try:
        identifier = LeaderIdentifier(chr(raw[6]))
    except ValueError:
        raise MalformedLeader("Unknown leader identifier {!r}".format(raw[6:7])) from None
    field_control_length = None
    if identifier == LeaderIdentifier.DESCRIPTIVE or not is_blank(raw[10:12]):
        field_control_length = fixed_width_decimal(raw[10:12], "Field control length", MalformedLeader)
    base_address = fixed_width_decimal(raw[12:17], "Base address of field data", MalformedLeader)
    if base_address <= LEADER_LENGTH:
        raise MalformedLeader("Base address of field data must be past the leader, got {}".format(base_address))
    if record_length < base_address:
        raise MalformedLeader("Record length {} is shorter than the base address of field data {}".format(
            record_length, base_address
        ))
    return Leader(
        record_length=record_length,
        interchange_level=_char(raw[5:6]),
        leader_identifier=identifier,
        in_line_code_identifier=_char(raw[7:8]),
        version_number=_char(raw[8:9]),
        application_indicator=_char(raw[9:10]),
        field_control_length=field_control_length,
        base_address_of_field_data=base_address,
        extended_char_set_indicator=_char(raw[17:20]),
        entry_map=EntryMap.from_bytes(raw[20:24]),
    )
