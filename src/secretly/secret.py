"""Secret entity and redaction rules."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

REDACTED = "<redacted>"
UNDEFINED = "undefined"


class SecretValue:
    """A plaintext secret that never shows up in str() or repr()."""

    __slots__ = ("_value",)

    def __init__(self, value: str = ""):
        self._value = value

    def expose_secret(self) -> str:
        return self._value

    def __str__(self):
        return REDACTED

    def __repr__(self):
        return REDACTED


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse a stored ISO-8601 timestamp into an aware UTC datetime."""
    if value is None:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def display_datetime(value: datetime) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S UTC")


@dataclass
class Secret:
    """Metadata of a stored secret.

    The value is only ever populated by an explicit decrypt; listings and
    descriptions carry an empty SecretValue that renders as <redacted>.
    """

    name: str
    description: Optional[str]
    frozen: bool
    created_at: datetime
    updated_at: datetime
    expires_at: Optional[datetime] = None
    value: SecretValue = field(default_factory=SecretValue, compare=False)

    @classmethod
    def from_row(cls, row) -> "Secret":
        """Build a Secret from a metadata row (the value column is never read)."""
        return cls(
            name=row["name"],
            description=row["description"],
            frozen=bool(row["frozen"]),
            created_at=parse_timestamp(row["created_at"]),
            updated_at=parse_timestamp(row["updated_at"]),
            expires_at=parse_timestamp(row["expires_at"]),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Structured form for JSON/YAML output. Never includes the value."""
        data = {
            "name": self.name,
            "description": self.description,
            "frozen": self.frozen,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }
        if self.expires_at is not None:
            data["expires_at"] = self.expires_at.isoformat()
        return data

    def table_row(self) -> Dict[str, str]:
        """Textual form, one display string per column."""
        return {
            "name": self.name,
            "value": REDACTED,
            "description": UNDEFINED if self.description is None else self.description,
            "frozen": str(self.frozen).lower(),
            "created_at": display_datetime(self.created_at),
            "updated_at": display_datetime(self.updated_at),
            "expires_at": UNDEFINED if self.expires_at is None else display_datetime(self.expires_at),
        }
