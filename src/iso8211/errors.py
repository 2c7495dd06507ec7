"""Failures raised while decoding an ISO 8211 stream.

Every failure is structural: nothing here is worth retrying, and the reader
never rewinds or scans ahead to recover from one.
"""


class ISO8211Error(Exception):
    pass


class UnexpectedEndOfStream(ISO8211Error):

    def __init__(self, requested: int, received: int, position: int):
        super().__init__("Expected {} bytes at offset {}, only {} available".format(requested, position, received))
        self.requested = requested
        self.received = received
        self.position = position


class TruncatedRecord(ISO8211Error):
    pass


class MalformedLeader(ISO8211Error):
    pass


class EmptyDirectory(ISO8211Error):
    pass


class MisalignedDirectory(ISO8211Error):
    pass


class InvalidDirectoryEntry(ISO8211Error):

    def __init__(self, reason):
        super().__init__("Invalid directory entry: {}".format(reason))
        self.reason = reason


class MissingFieldTerminator(ISO8211Error):
    pass


class UnsupportedFormatToken(ISO8211Error):

    def __init__(self, token, format_controls=None):
        if format_controls:
            message = "Unsupported format control {!r} in {!r}".format(token, format_controls)
        else:
            message = "Unsupported format control {!r}".format(token)
        super().__init__(message)
        self.token = token


class MalformedFormatControl(ISO8211Error):
    pass


class FormatLabelMismatch(ISO8211Error):

    def __init__(self, tag, labels, token_count):
        super().__init__("Field {}: {} labels ({}) for {} format controls".format(
            tag, len(labels), "!".join(labels), token_count
        ))
        self.tag = tag
        self.labels = labels
        self.token_count = token_count


class UnknownFieldTag(ISO8211Error):

    def __init__(self, tag):
        super().__init__("Field tag {!r} was not declared in the data descriptive record".format(tag))
        self.tag = tag


class PositionMismatch(ISO8211Error):

    def __init__(self, message, expected: int, actual: int):
        super().__init__("{} (expected offset {}, at {})".format(message, expected, actual))
        self.expected = expected
        self.actual = actual


class FieldLengthMismatch(ISO8211Error):
    pass


class InvalidSubfieldValue(ISO8211Error):
    pass
