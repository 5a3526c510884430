"""Decryption of submission values encrypted with named profiles."""
import json
import logging
from pathlib import Path
from typing import Dict, Optional, Protocol, Tuple

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)


class EncryptionService(Protocol):
    """Service able to decrypt values with a named profile."""

    def decrypt(self, value: str, profile: str) -> Optional[str]:
        """Return the decrypted value, or None if it cannot be decrypted."""

    def profiles(self) -> Dict[str, str]:
        """Return {profile id: label}."""


class FernetEncryptionService:
    """Encryption profiles backed by Fernet keys."""

    def __init__(self, profiles: Optional[Dict[str, Tuple[str, bytes]]] = None):
        """
        Initialize service

        Args:
            profiles: {profile id: (label, fernet key)}
        """
        self._labels: Dict[str, str] = {}
        self._fernets: Dict[str, Fernet] = {}
        for name, (label, key) in (profiles or {}).items():
            self.add_profile(name, key, label)

    def add_profile(self, name: str, key: bytes, label: str = "") -> None:
        """Register a profile."""
        if isinstance(key, str):
            key = key.encode()
        self._fernets[name] = Fernet(key)
        self._labels[name] = label or name

    def load_profile(self, name: str) -> Optional[Fernet]:
        """Return the cipher of a profile, None if unknown."""
        return self._fernets.get(name)

    def profiles(self) -> Dict[str, str]:
        """Return {profile id: label}."""
        return dict(self._labels)

    def encrypt(self, value: str, profile: str) -> str:
        """Encrypt a value with a profile."""
        fernet = self.load_profile(profile)
        if fernet is None:
            raise KeyError(f"Unknown encryption profile: {profile}")
        return fernet.encrypt(str(value).encode()).decode()

    def decrypt(self, value: str, profile: str) -> Optional[str]:
        """Decrypt a value, None if the profile is unknown or the token invalid."""
        fernet = self.load_profile(profile)
        if fernet is None:
            logger.warning(f"Unknown encryption profile: {profile}")
            return None
        try:
            return fernet.decrypt(str(value).encode()).decode()
        except (InvalidToken, ValueError, UnicodeDecodeError):
            return None

    @classmethod
    def from_file(cls, path: str) -> "FernetEncryptionService":
        """
        Load profiles from a JSON file

        Format:
            {"profile_id": {"label": "Profile", "key": "<fernet key>"}}
        """
        with open(Path(path), "r") as f:
            data = json.load(f)
        return cls({
            name: (entry.get("label", name), entry["key"].encode())
            for name, entry in data.items()
        })


def decrypt_value(value, profile: str, encryption: Optional[EncryptionService]):
    """
    Decrypt a value with a profile, falling back to the raw value.

    Empty values give an empty string; without a profile the value is kept.
    """
    if value is None or value == "":
        return ""
    if not profile or encryption is None or not isinstance(value, str):
        return value
    decrypted = encryption.decrypt(value, profile)
    if decrypted is None:
        return value
    return decrypted
