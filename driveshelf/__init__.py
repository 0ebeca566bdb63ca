"""
DriveShelf - OneDrive-backed audio album provider.

Exposes a OneDrive folder of albums as a catalog and streams tracks and
covers with byte-range support.
"""

__version__ = "0.1.0"

from .exceptions import (
    AuthError,
    BackendError,
    DecodeError,
    InvalidPath,
    NotFound,
    ProviderError,
)
from .provider import OneDriveProvider
from .streaming import FULL, AudioInfo, AudioResource, Range, ResourceStream

__all__ = [
    "__version__",
    "OneDriveProvider",
    # Results
    "AudioInfo",
    "AudioResource",
    "FULL",
    "Range",
    "ResourceStream",
    # Errors
    "AuthError",
    "BackendError",
    "DecodeError",
    "InvalidPath",
    "NotFound",
    "ProviderError",
]
