"""
校验引擎
"""

from panotour.validation.tour_validator import (
    MediaResolver,
    TourValidator,
    ValidationError,
    ValidationErrorCode,
    check_import_envelope,
    is_valid_url,
    validate_import_document,
    validate_tour,
)

__all__ = [
    "MediaResolver",
    "TourValidator",
    "ValidationError",
    "ValidationErrorCode",
    "check_import_envelope",
    "is_valid_url",
    "validate_import_document",
    "validate_tour",
]
