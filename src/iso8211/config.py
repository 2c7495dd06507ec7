import enum
import logging
import os

from autoinject import injector


class LengthPolicy(enum.Enum):
    """What to do when a field's data does not line up with its format."""

    FAIL = 'fail'
    WARN = 'warn'


@injector.injectable
class DecoderSettings:
    """Settings shared by every reader, taken from the environment.

    ``ISO8211_TEXT_ENCODING`` sets the character set used for text subfields
    and ``ISO8211_LENGTH_POLICY`` (``fail`` or ``warn``) how field length
    mismatches are handled.
    """

    def __init__(self):
        self.text_encoding = os.environ.get("ISO8211_TEXT_ENCODING", "latin-1")
        self.length_policy = LengthPolicy.FAIL
        policy = os.environ.get("ISO8211_LENGTH_POLICY")
        if policy:
            try:
                self.length_policy = LengthPolicy(policy.lower())
            except ValueError:
                logging.getLogger(__name__).warning(
                    "Unrecognized length policy {}, using {}".format(policy, self.length_policy.value)
                )
