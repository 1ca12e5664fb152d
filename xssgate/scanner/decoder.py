"""Embedded data-URI payload decoder.

Extracts and decodes the base64 body of a ``data:text/html;base64,`` URI so
the detector can scan the HTML it would render. Failures raise a
``PayloadDecodeError`` subclass; the detector treats them as "no additional
match" and never surfaces them to the request path.
"""

from __future__ import annotations

import base64
import binascii
import re

from xssgate.scanner.definitions import DATA_URI_MARKER

# Line breaks inside the payload are skipped, as MIME-wrapped base64 carries them.
_LINE_BREAKS = str.maketrans("", "", "\r\n")


class PayloadDecodeError(ValueError):
    """Base class for data-URI decode failures."""


class PayloadFormatError(PayloadDecodeError):
    """The marker is missing or nothing follows it."""


class PayloadEncodingError(PayloadDecodeError):
    """The payload after the marker is not valid standard base64."""


def decode_data_uri(value: str, marker: str = DATA_URI_MARKER) -> str:
    """Decode the base64 payload following ``marker`` in ``value``.

    The marker is matched case-insensitively in the original string and the
    payload is sliced from that same string, so its case is preserved. The
    payload runs up to the next occurrence of the marker or the end of the
    string. Embedded CR/LF characters are dropped before decoding.

    Args:
        value:  Raw input, e.g. a query parameter value.
        marker: Data-URI prefix to split on.

    Returns:
        The decoded bytes as UTF-8 text (invalid sequences replaced).

    Raises:
        PayloadFormatError:   marker absent, or empty payload.
        PayloadEncodingError: payload is not valid base64.
    """
    pattern = re.compile(re.escape(marker), re.IGNORECASE)
    found = pattern.search(value)
    if found is None:
        raise PayloadFormatError("data URI marker not found")

    following = pattern.search(value, found.end())
    payload_end = following.start() if following is not None else len(value)

    payload = value[found.end():payload_end].translate(_LINE_BREAKS).strip()
    if not payload:
        raise PayloadFormatError("no payload follows the data URI marker")

    try:
        decoded = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise PayloadEncodingError(f"invalid base64 payload: {exc}") from exc

    return decoded.decode("utf-8", errors="replace")
