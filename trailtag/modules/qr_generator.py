"""
QR Code Generator Module - TrailTag

This module builds and parses the check-in payload embedded in program QR
codes, and renders payloads as PNG images for printing.

Payload format:
    trailtag://checkin?program=<integer>&location=<url-encoded string>&t=<unix timestamp>

Features:
- Check-in URI generation
- Check-in URI parsing and validation
- QR code image rendering (base64 PNG)
"""

import qrcode
import io
import base64
import time
import logging
from dataclasses import dataclass
from typing import Optional, Dict, Any
from urllib.parse import urlencode, urlsplit, parse_qs, quote

from trailtag.modules.errors import MalformedCodeError

CHECKIN_HOST = 'checkin'
DEFAULT_SCHEME = 'trailtag'
# Largest value an SQLite INTEGER column holds
MAX_INTEGER = 2 ** 63 - 1


@dataclass
class CheckInPayload:
    """Fields carried by a scanned check-in QR code."""
    program_id: int
    location: str
    issued_at: Optional[int]


def build_checkin_uri(program_id: int, location: str, issued_at: Optional[int] = None,
                      scheme: str = DEFAULT_SCHEME) -> str:
    """
    Build the check-in URI for a program location.

    Args:
        program_id (int): Learning program ID
        location (str): Human-readable location label
        issued_at (int): Unix timestamp of issuance, defaults to now
        scheme (str): URI scheme

    Returns:
        str: Check-in URI
    """
    if issued_at is None:
        issued_at = int(time.time())
    query = urlencode({'program': int(program_id), 'location': location, 't': int(issued_at)},
                      quote_via=quote)
    return f"{scheme}://{CHECKIN_HOST}?{query}"


def _single_param(params: Dict[str, list], name: str) -> Optional[str]:
    values = params.get(name)
    if not values:
        return None
    return values[0]


def _parse_int(value: str, name: str) -> int:
    value = value.strip()
    if not (value.isascii() and value.isdigit()):
        raise MalformedCodeError(f"Parameter '{name}' must be numeric: {value!r}")
    number = int(value)
    if number > MAX_INTEGER:
        raise MalformedCodeError(f"Parameter '{name}' is out of range: {value!r}")
    return number


def parse_checkin_uri(qr_data: str, scheme: str = DEFAULT_SCHEME) -> CheckInPayload:
    """
    Parse a scanned string into a check-in payload.

    Args:
        qr_data (str): Raw scanned string
        scheme (str): Expected URI scheme

    Returns:
        CheckInPayload: Parsed program ID, location label and issuance timestamp

    Raises:
        MalformedCodeError: scheme or path is wrong, or a required parameter
            is missing or not numeric
    """
    if not isinstance(qr_data, str) or not qr_data.strip():
        raise MalformedCodeError("Empty QR code data")

    try:
        parts = urlsplit(qr_data.strip())
    except ValueError as e:
        raise MalformedCodeError(f"Unparseable QR code data: {e}") from e

    if parts.scheme.lower() != scheme.lower():
        raise MalformedCodeError(f"Unexpected scheme: {parts.scheme!r}")

    # trailtag://checkin?... puts the target in netloc, trailtag:checkin?... in path
    if parts.netloc:
        target = parts.netloc + parts.path.rstrip('/')
    else:
        target = parts.path
    if target.lower() != CHECKIN_HOST:
        raise MalformedCodeError(f"Unexpected path: {target!r}")

    params = parse_qs(parts.query, keep_blank_values=True)

    program = _single_param(params, 'program')
    if program is None:
        raise MalformedCodeError("Missing parameter 'program'")
    program_id = _parse_int(program, 'program')

    location = _single_param(params, 'location')
    if location is None or not location.strip():
        raise MalformedCodeError("Missing parameter 'location'")

    issued_at = None
    timestamp = _single_param(params, 't')
    if timestamp is not None:
        issued_at = _parse_int(timestamp, 't')

    return CheckInPayload(program_id=program_id, location=location.strip(), issued_at=issued_at)


class QRGenerator:
    """
    QR code renderer for check-in payloads.
    """

    def __init__(self, scheme: str = DEFAULT_SCHEME, box_size: int = 10, border: int = 4):
        """Initialize the QR code generator with default settings."""
        self.logger = logging.getLogger(__name__)
        self.scheme = scheme

        # Default QR code settings
        self.default_settings = {
            'version': 1,  # Controls the size of the QR Code
            'error_correction': qrcode.constants.ERROR_CORRECT_M,  # ~15% error correction
            'box_size': box_size,
            'border': border,
            'fill_color': 'black',
            'back_color': 'white'
        }

    def build_payload(self, program_id: int, location: str, issued_at: Optional[int] = None) -> str:
        return build_checkin_uri(program_id, location, issued_at, scheme=self.scheme)

    def parse_payload(self, qr_data: str) -> CheckInPayload:
        return parse_checkin_uri(qr_data, scheme=self.scheme)

    def render_qr_image(self, qr_data: str, custom_settings: dict = None) -> Dict[str, Any]:
        """
        Render QR code data as a PNG image.

        Args:
            qr_data (str): Data to encode
            custom_settings (dict): Overrides for the default settings

        Returns:
            Dict[str, Any]: Rendering result with base64 image data
        """
        settings = self.default_settings.copy()
        if custom_settings:
            settings.update(custom_settings)

        qr = qrcode.QRCode(
            version=settings['version'],
            error_correction=settings['error_correction'],
            box_size=settings['box_size'],
            border=settings['border']
        )
        qr.add_data(qr_data)
        qr.make(fit=True)

        img = qr.make_image(
            fill_color=settings['fill_color'],
            back_color=settings['back_color']
        )

        buffer = io.BytesIO()
        img.save(buffer, format='PNG')
        png_bytes = buffer.getvalue()

        self.logger.debug(f"QR code rendered ({len(png_bytes)} bytes)")
        return {
            'qr_data': qr_data,
            'image_png': png_bytes,
            'image_base64': base64.b64encode(png_bytes).decode(),
            'image_size': img.size
        }
