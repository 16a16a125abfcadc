"""Engine components: fetch → extract → fingerprint, plus the serial poll lock."""

from .fetcher import FetchResponse, Fetcher, parse_request_headers
from .fingerprint import Fingerprint, fingerprint
from .parser import Extractor
from .selector import select_json_value
from .serial import SerialExecutor

__all__ = [
    "Extractor",
    "FetchResponse",
    "Fetcher",
    "Fingerprint",
    "SerialExecutor",
    "fingerprint",
    "parse_request_headers",
    "select_json_value",
]
