"""
ImageHelper Exceptions

Typed errors raised by the fetch/decode/transform/encode pipeline. Every
error carries a stable error_code and a details dict so callers can map
failures to their own responses.
"""

from typing import Any, Dict, Optional


class ImageHelperError(Exception):
    """Base class for all pipeline errors"""

    def __init__(self, message: str, error_code: str = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or "PROCESSING_FAILED"
        self.details = details or {}

    def to_dict(self) -> dict:
        """Dictionary form, suitable for API responses"""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details
        }


class RemoteFetchError(ImageHelperError):
    """Download failed: non-2xx status or transport failure"""

    def __init__(self, url: str, reason: str, status_code: Optional[int] = None):
        message = f"Failed to download image from URL: {url}"
        if status_code is not None:
            message += f" (HTTP {status_code})"
        message += f": {reason}"

        super().__init__(
            message=message,
            error_code="REMOTE_FETCH_FAILED",
            details={"url": url, "status_code": status_code, "reason": reason}
        )
        self.url = url
        self.status_code = status_code
        self.reason = reason


class DecodeError(ImageHelperError):
    """Bytes could not be decoded as an image"""

    def __init__(self, reason: str, size_bytes: int = 0):
        super().__init__(
            message=f"Failed to decode image: {reason}",
            error_code="DECODE_FAILED",
            details={"reason": reason, "size_bytes": size_bytes}
        )
        self.reason = reason


class EncodeError(ImageHelperError):
    """Encoder failed to write the image"""

    def __init__(self, image_format: str, reason: str):
        super().__init__(
            message=f"Failed to encode image as {image_format}: {reason}",
            error_code="ENCODE_FAILED",
            details={"format": image_format, "reason": reason}
        )
        self.image_format = image_format


class UnsupportedFormatError(ImageHelperError):
    """Requested output format is not PNG, JPEG or BMP"""

    def __init__(self, requested: Any, supported_formats: list = None):
        supported_formats = supported_formats or []
        message = f"Unsupported image format: {requested}"
        if supported_formats:
            message += f", supported formats: {', '.join(supported_formats)}"

        super().__init__(
            message=message,
            error_code="UNSUPPORTED_FORMAT",
            details={"requested": str(requested), "supported_formats": supported_formats}
        )
        self.requested = requested
        self.supported_formats = supported_formats


class FontResolutionError(ImageHelperError):
    """Watermark font is not available on this host"""

    def __init__(self, font_name: str, font_size: int):
        super().__init__(
            message=f"Font '{font_name}' could not be resolved",
            error_code="FONT_NOT_FOUND",
            details={"font_name": font_name, "font_size": font_size}
        )
        self.font_name = font_name
        self.font_size = font_size


class ParameterError(ImageHelperError):
    """Operation parameters are invalid for the request or the image"""

    def __init__(self, message: str, parameter: Optional[str] = None, value: Any = None, details: Optional[Dict[str, Any]] = None):
        merged = {"parameter": parameter, "value": value}
        merged.update(details or {})
        super().__init__(
            message=message,
            error_code="INVALID_PARAMETER",
            details=merged
        )
        self.parameter = parameter
        self.value = value
