# Purpose: Public entry points of the QR codec for callers that do not manage their own directory.

import functools

from psp_directory import PSPDirectory
from qr_crc import compute_checksum as _compute_checksum
from qr_generator import Encoder
from qr_parser import Decoder


@functools.lru_cache(maxsize=1)
def default_directory():
    """Process-wide directory seeded with the published Kenya and Tanzania PSP codes."""
    return PSPDirectory.with_defaults()


def _resolve(directory):
    return directory if directory is not None else default_directory()


def decode(payload, directory=None):
    return Decoder(_resolve(directory)).decode(payload)


def decode_merchant(payload, directory=None):
    return Decoder(_resolve(directory)).decode_merchant(payload)


def validate(payload, directory=None):
    """ValidationResult for payload; never raises a CodecError."""
    return Decoder(_resolve(directory)).validate(payload)


def encode(request, directory=None):
    return Encoder(_resolve(directory)).encode(request)


def compute_checksum(payload_without_checksum_value):
    """CRC for a payload prefix that already ends with the "6304" tag and length."""
    return _compute_checksum(payload_without_checksum_value)


def lookup_provider(country, kind, identifier, directory=None):
    return _resolve(directory).lookup(country, kind, identifier)
