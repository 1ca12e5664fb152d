"""XSSGate scanner package.

Stateless payload classification: the blocklist (definitions.py), the
data-URI payload decoder (decoder.py) and the XSSDetector (detector.py).
"""

from xssgate.scanner.decoder import (
    PayloadDecodeError,
    PayloadEncodingError,
    PayloadFormatError,
    decode_data_uri,
)
from xssgate.scanner.definitions import DATA_URI_MARKER, XSS_BLOCKLIST, build_blocklist
from xssgate.scanner.detector import XSSDetector

__all__ = [
    "DATA_URI_MARKER",
    "XSS_BLOCKLIST",
    "build_blocklist",
    "PayloadDecodeError",
    "PayloadEncodingError",
    "PayloadFormatError",
    "decode_data_uri",
    "XSSDetector",
]
