"""
Custom exceptions module.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    ValidationError,
    ExternalServiceError,

    # Catalogs
    SourceFetchError,
    DestinationFetchError,
    DestinationWriteError,

    # Jobs
    UnknownJobKindError,
)

__all__ = [
    # Base
    "AppError",
    "ValidationError",
    "ExternalServiceError",

    # Catalogs
    "SourceFetchError",
    "DestinationFetchError",
    "DestinationWriteError",

    # Jobs
    "UnknownJobKindError",
]
