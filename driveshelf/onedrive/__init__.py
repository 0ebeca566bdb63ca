"""
OneDrive transport module.

Microsoft Graph REST client and drive addressing.
"""

from .client import DOWNLOAD_URL_FIELD, OneDriveClient
from .location import DriveLocation

__all__ = [
    "DOWNLOAD_URL_FIELD",
    "DriveLocation",
    "OneDriveClient",
]
