"""
OneDrive authentication module.

Handles token state and on-demand refresh.
"""

from .credentials import CredentialManager, RotationCallback, TokenExchanger
from .tokens import TokenSet

__all__ = [
    "CredentialManager",
    "RotationCallback",
    "TokenExchanger",
    "TokenSet",
]
