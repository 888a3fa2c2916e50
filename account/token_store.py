"""
Token Store - Encrypted "remember me" persistence

Keeps the session token between application runs when the user asks to be
remembered. The file is encrypted with Fernet (AES-128-CBC + HMAC-SHA256)
using a key derived from the configured secret, and is readable by the
owner only.
"""

import base64
import json
import logging
import os
import stat
from pathlib import Path
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from account.models import Identity

logger = logging.getLogger(__name__)


class TokenStore:
    """Reads and writes the persisted session for the identity store"""

    # PBKDF2 iterations - OWASP 2023 recommends 480,000 for SHA-256
    _PBKDF2_ITERATIONS = 480000
    _FORMAT_PREFIX = "v1:"

    def __init__(self, path: Path, secret: Optional[str], salt: Optional[str]):
        self.path = Path(path)
        self._fernet: Optional[Fernet] = None
        if secret and salt:
            self._fernet = Fernet(self._derive_key(secret, salt))
        else:
            logger.warning(
                "SESSION_SECRET or SESSION_ENCRYPTION_SALT not set; "
                "remember-me sessions will not be persisted"
            )

    @property
    def enabled(self) -> bool:
        return self._fernet is not None

    @classmethod
    def _derive_key(cls, secret: str, salt: str) -> bytes:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=salt.encode(),
            iterations=cls._PBKDF2_ITERATIONS,
        )
        return base64.urlsafe_b64encode(kdf.derive(secret.encode()))

    def save(self, identity: Identity) -> bool:
        """Persist the identity. Returns False when persistence is disabled or fails."""
        if not self._fernet:
            return False
        data = {"id": identity.user_id, "email": identity.email, "token": identity.token}
        try:
            encrypted = self._fernet.encrypt(json.dumps(data).encode("utf-8"))
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(self._FORMAT_PREFIX + encrypted.decode("ascii"))
            self._set_secure_file_permissions()
            return True
        except OSError as e:
            logger.error(f"Could not save session: {e}")
            return False

    def load(self) -> Optional[Identity]:
        """Return the persisted identity, or None if there is none or it cannot be read"""
        if not self._fernet or not self.path.exists():
            return None
        try:
            raw = self.path.read_text().strip()
            if not raw.startswith(self._FORMAT_PREFIX):
                logger.error("Session file has an unknown format, ignoring it")
                return None
            decrypted = self._fernet.decrypt(raw[len(self._FORMAT_PREFIX):].encode("ascii"))
            data = json.loads(decrypted.decode("utf-8"))
            return Identity(user_id=str(data["id"]), email=data.get("email", ""), token=data["token"])
        except InvalidToken:
            logger.warning("Session file could not be decrypted (secret changed?), ignoring it")
            return None
        except (OSError, ValueError, KeyError) as e:
            logger.warning(f"Could not load session: {e}")
            return None

    def clear(self) -> None:
        try:
            if self.path.exists():
                self.path.unlink()
        except OSError as e:
            logger.warning(f"Could not remove session file: {e}")

    def _set_secure_file_permissions(self):
        """Owner read/write only (600) on Unix-like systems"""
        if os.name != "nt":
            os.chmod(self.path, stat.S_IRUSR | stat.S_IWUSR)
