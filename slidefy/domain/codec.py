# slidefy/domain/codec.py
"""Base64 decoding for embedded template images and user uploads.

The decoder works directly on the standard alphabet. Payloads wrapped into
fixed-width lines decode the same as single-line ones.
"""
import re

from slidefy.domain.errors import Base64DecodeError

ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"
PAD = "="

_LOOKUP = {ch: i for i, ch in enumerate(ALPHABET)}
_WHITESPACE = re.compile(r"[\s]+")
_DATA_URL = re.compile(r"^data:[^,]*?;base64,", re.IGNORECASE)


def strip_data_url(source: str) -> str:
    return _DATA_URL.sub("", source, count=1)


def decoded_length(payload: str) -> int:
    length = len(payload)
    if length == 0:
        return 0
    if payload[-2] == PAD:
        pad = 2
    elif payload[-1] == PAD:
        pad = 1
    else:
        pad = 0
    return length * 3 // 4 - pad


def _sextet(ch: str, position: int) -> int:
    value = _LOOKUP.get(ch)
    if value is None:
        raise Base64DecodeError(
            f"Invalid base64 character {ch!r} at position {position}",
            details={"position": position},
        )
    return value


def decode(payload: str) -> bytes:
    payload = _WHITESPACE.sub("", payload)
    length = len(payload)
    if length % 4 != 0:
        raise Base64DecodeError(
            f"Base64 payload length {length} is not a multiple of 4",
            details={"length": length},
        )

    byte_len = decoded_length(payload)
    out = bytearray(byte_len)
    j = 0
    for i in range(0, length, 4):
        group = payload[i:i + 4]
        # padding is only legal in the final group
        if PAD in group and i + 4 != length:
            raise Base64DecodeError(f"Unexpected padding in group at position {i}", details={"position": i})
        # within the final group padding may only fill the last one or two places
        if PAD in group[:2] or (group[2] == PAD and group[3] != PAD):
            position = i + group.index(PAD)
            raise Base64DecodeError(f"Padding must be trailing, found at position {position}", details={"position": position})
        a = _sextet(group[0], i)
        b = _sextet(group[1], i + 1)
        c = 0 if group[2] == PAD else _sextet(group[2], i + 2)
        d = 0 if group[3] == PAD else _sextet(group[3], i + 3)

        out[j] = ((a << 2) | (b >> 4)) & 0xFF
        j += 1
        if j < byte_len:
            out[j] = (((b & 15) << 4) | (c >> 2)) & 0xFF
            j += 1
        if j < byte_len:
            out[j] = (((c & 3) << 6) | d) & 0xFF
            j += 1
    return bytes(out)
