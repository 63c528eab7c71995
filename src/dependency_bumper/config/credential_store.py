"""
Local JSON credential store for the Bitbucket identity and secret.
"""

import json
import logging
from pathlib import Path
from typing import Optional, Union

from ..models import Credentials

logger = logging.getLogger(__name__)


class CredentialStore:
    """
    Persists Bitbucket credentials in a clear-text JSON file.

    Loading never fails: a missing or unreadable file yields empty
    credentials. Saving overwrites the whole file.
    """

    def __init__(self, file_path: Union[str, Path]):
        self.file_path = Path(file_path).expanduser()

    def load(self) -> Credentials:
        """
        Load stored credentials.

        Returns:
            Stored credentials, with empty fields when nothing usable is stored
        """
        if not self.file_path.exists():
            logger.debug(f"No credentials file at {self.file_path}")
            return Credentials()

        try:
            with open(self.file_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"Ignoring malformed credentials file {self.file_path}: {e}")
            return Credentials()
        except OSError as e:
            logger.warning(f"Failed to read credentials file {self.file_path}: {e}")
            return Credentials()

        if not isinstance(data, dict):
            logger.warning(f"Ignoring credentials file {self.file_path}: expected a JSON object")
            return Credentials()

        return Credentials.from_dict(data)

    def save(self, credentials: Credentials) -> None:
        """
        Overwrite the credentials file with the given record.

        Args:
            credentials: Credentials to persist
        """
        self.file_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.file_path, 'w', encoding='utf-8') as f:
            json.dump(credentials.to_dict(), f, indent=2)
            f.write('\n')
        logger.debug(f"Credentials saved to {self.file_path}")

    def update(self, identity: Optional[str] = None, secret: Optional[str] = None) -> Credentials:
        """
        Change one or both stored fields, keeping the others.

        Args:
            identity: New identity, or None to keep the stored one
            secret: New secret, or None to keep the stored one

        Returns:
            The credentials as saved
        """
        credentials = self.load()
        if identity is not None:
            credentials.identity = identity
        if secret is not None:
            credentials.secret = secret
        self.save(credentials)
        return credentials
