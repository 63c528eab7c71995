"""
Credentials data model for Bitbucket authentication.
"""

from dataclasses import dataclass
from typing import Dict, Any, Optional


@dataclass
class Credentials:
    """Bitbucket identity (username) and secret (app password)."""

    identity: Optional[str] = None
    secret: Optional[str] = None

    def is_complete(self) -> bool:
        """Check that both fields are present and non-empty."""
        return bool(self.identity) and bool(self.secret)

    def missing_fields(self) -> list:
        """Get the names of the fields that are empty."""
        missing = []
        if not self.identity:
            missing.append("identity")
        if not self.secret:
            missing.append("secret")
        return missing

    def to_dict(self) -> Dict[str, Any]:
        return {"identity": self.identity, "secret": self.secret}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Credentials':
        """
        Create credentials from a stored record.

        Records written by the earlier Node.js tool use ``username`` and
        ``appPassword``; those keys are read when the current ones are absent.
        """
        identity = data.get("identity") or data.get("username")
        secret = data.get("secret") or data.get("appPassword")
        return cls(
            identity=identity if isinstance(identity, str) else None,
            secret=secret if isinstance(secret, str) else None
        )

    def __repr__(self) -> str:
        masked = '*' * 8 if self.secret else None
        return f"Credentials(identity={self.identity!r}, secret={masked!r})"
