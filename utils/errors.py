"""
Error taxonomy for the enhancement service.
Every failure the pipeline can report carries one of these kinds so the
routers can map it to a response code without parsing log text.
"""
from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    DECODE_FAILED = "DECODE_FAILED"        # input bytes are not a readable image
    INVALID_OPTIONS = "INVALID_OPTIONS"    # options blob missing or malformed
    STAGE_FAILED = "STAGE_FAILED"          # a stage produced an unusable buffer
    ENCODE_FAILED = "ENCODE_FAILED"        # encoding or writing the artifact failed
    NOT_FOUND = "NOT_FOUND"                # requested artifact does not exist

    def http_status(self) -> int:
        return _HTTP_STATUS[self]


_HTTP_STATUS = {
    ErrorKind.DECODE_FAILED: 400,
    ErrorKind.INVALID_OPTIONS: 400,
    ErrorKind.STAGE_FAILED: 500,
    ErrorKind.ENCODE_FAILED: 500,
    ErrorKind.NOT_FOUND: 404,
}


class EnhanceError(Exception):
    """Base exception for pipeline failures"""

    def __init__(self, kind: ErrorKind, message: str, details: Optional[dict] = None):
        self.kind = kind
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Convert error to JSON-serializable dict"""
        return {
            "error": self.message,
            "error_code": self.kind.value,
            "details": self.details,
        }
