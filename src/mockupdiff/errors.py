"""Custom exceptions used across mockupdiff."""

__all__ = [
    "InspectionError",
    "InvalidImageError",
    "DecodeError",
    "ExternalServiceError",
]


class InspectionError(Exception):
    """Base class for errors raised by the inspection pipeline."""

    pass


class InvalidImageError(InspectionError):
    """Raised when an image has zero or malformed dimensions."""

    pass


class DecodeError(InspectionError):
    """Raised when raster data cannot be decoded."""

    pass


class ExternalServiceError(InspectionError):
    """Raised when the description service fails or answers unexpectedly."""

    pass
