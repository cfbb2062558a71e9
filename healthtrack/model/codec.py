# healthtrack/model/codec.py
from __future__ import annotations

import base64
import binascii
import re
from typing import Optional, Union

from healthtrack.core.errors import PayloadDecodeError
from .profile import Metric

# str payloads are the base64 wire form; bytes payloads are already raw.
Payload = Union[str, bytes, bytearray, None]
DecodedValue = Union[int, str, None]

_LEADING_INT = re.compile(r"[+-]?[0-9]+")


def decode_text(payload: Payload) -> Optional[str]:
    """
    Decode a notification payload to trimmed UTF-8 text.

    None or empty payload -> None.
    """
    if payload is None or len(payload) == 0:
        return None

    if isinstance(payload, str):
        try:
            raw = base64.b64decode(payload)
        except (binascii.Error, ValueError) as e:
            raise PayloadDecodeError(
                "Payload is not valid base64.",
                hint=str(e),
                details={"payload": payload},
            ) from None
    else:
        raw = bytes(payload)

    return raw.decode("utf-8", errors="replace").strip()


def parse_int(text: str) -> Optional[int]:
    """Base-10 parse of the leading integer in `text` ("72 bpm" -> 72)."""
    m = _LEADING_INT.match(text)
    if m is None:
        return None
    return int(m.group(0), 10)


def decode_value(payload: Payload) -> DecodedValue:
    """Numeric channels: integer when the text starts with one, else the text itself."""
    text = decode_text(payload)
    if text is None:
        return None
    n = parse_int(text)
    return text if n is None else n


def decode_status(payload: Payload) -> Optional[str]:
    """Status channel: always text, never parsed."""
    return decode_text(payload)


def decode_for(metric: Metric, payload: Payload) -> DecodedValue:
    if metric.is_numeric:
        return decode_value(payload)
    return decode_status(payload)
