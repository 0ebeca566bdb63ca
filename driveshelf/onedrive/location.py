"""
Drive addressing for the Microsoft Graph API.
"""

from dataclasses import dataclass

# kind -> API path template
DRIVE_KINDS = {
    "me": "/me/drive",
    "drive": "/drives/{id}",
    "user": "/users/{id}/drive",
    "group": "/groups/{id}/drive",
    "site": "/sites/{id}/drive",
}


@dataclass(frozen=True)
class DriveLocation:
    """Which drive the provider reads from. Immutable for a provider's lifetime."""

    kind: str = "me"
    id: str = ""

    def __post_init__(self) -> None:
        if self.kind not in DRIVE_KINDS:
            raise ValueError(f"Unknown drive kind: {self.kind}")
        if self.kind != "me" and not self.id:
            raise ValueError(f"Drive kind '{self.kind}' requires an id")

    @property
    def api_path(self) -> str:
        """API path prefix of the drive, e.g. ``/drives/b!abc``."""
        return DRIVE_KINDS[self.kind].format(id=self.id)

    @classmethod
    def parse(cls, text: str) -> "DriveLocation":
        """
        Parse ``me`` or ``<kind>:<id>`` (e.g. ``drive:b!uyGk...``).

        Raises:
            ValueError: If the text does not name a drive
        """
        text = text.strip()
        if not text or text == "me":
            return cls()
        kind, sep, drive_id = text.partition(":")
        if not sep:
            raise ValueError(f"Drive must be 'me' or '<kind>:<id>', got {text!r}")
        return cls(kind=kind.strip(), id=drive_id.strip())

    def __str__(self) -> str:
        return "me" if self.kind == "me" else f"{self.kind}:{self.id}"
