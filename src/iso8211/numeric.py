"""Strict decoding of the fixed-width ASCII numbers found in leaders and directories."""

_DIGITS = frozenset(b"0123456789")


def fixed_width_decimal(raw: bytes, what: str, error_cls, blank_is_zero=False) -> int:
    """Decode ``raw`` as an unsigned decimal integer.

    Every byte must be an ASCII digit; no sign, padding or surrounding spaces
    are accepted. When ``blank_is_zero`` is set a value made only of spaces
    decodes to zero. Anything else raises ``error_cls`` with a message naming
    ``what`` was being decoded.
    """
    if not raw:
        raise error_cls("{} is empty".format(what))
    if blank_is_zero and raw.strip(b" ") == b"":
        return 0
    if not all(b in _DIGITS for b in raw):
        raise error_cls("{} is not a decimal number: {!r}".format(what, raw))
    return int(raw)


def is_blank(raw: bytes) -> bool:
    return raw.strip(b" ") == b""
