"""
Check-in Errors Module - TrailTag

User-facing error kinds raised by the QR check-in path. Each kind carries
a stable ``error_type`` code, the HTTP status the API answers with, and a
message per supported language so the request boundary can reply in the
scanning user's language.
"""

from typing import Optional

DEFAULT_LANGUAGE = 'en'


class CheckInError(Exception):
    """Base class for check-in failures surfaced to the scanning user."""

    error_type = 'checkin_error'
    status_code = 400
    messages = {
        'en': 'Check-in failed',
        'ko': '체크인에 실패했습니다',
    }

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail
        super().__init__(detail or self.messages[DEFAULT_LANGUAGE])

    def localized_message(self, language: Optional[str] = None) -> str:
        """Return the user-facing message for ``language``, falling back to English."""
        return self.messages.get(language or DEFAULT_LANGUAGE, self.messages[DEFAULT_LANGUAGE])

    def to_dict(self, language: Optional[str] = None) -> dict:
        return {
            'success': False,
            'message': self.localized_message(language),
            'error_type': self.error_type,
        }


class MalformedCodeError(CheckInError):
    """The scanned string is not a well-formed check-in URI."""

    error_type = 'malformed_code'
    status_code = 400
    messages = {
        'en': 'Invalid QR code format',
        'ko': '올바르지 않은 QR 코드 형식입니다',
    }


class UnknownCodeError(CheckInError):
    """The program/QR-code pairing is missing or inactive."""

    error_type = 'unknown_code'
    status_code = 404
    messages = {
        'en': 'Invalid or inactive QR code. Please request a new QR code.',
        'ko': '유효하지 않거나 비활성화된 QR 코드입니다. 새 QR 코드를 요청하세요.',
    }


class DuplicateCheckInError(CheckInError):
    """The student already checked in to this program within the duplicate window."""

    error_type = 'duplicate_checkin'
    status_code = 409
    messages = {
        'en': 'You have already checked in recently for this program',
        'ko': '이 프로그램에 최근 이미 체크인했습니다',
    }
