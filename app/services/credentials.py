"""
Session token hashing and verification using bcrypt.
"""

import base64
import hashlib

import bcrypt

from app.errors import CredentialError


def _encode(token: str) -> bytes:
    """Digest the whole token; bcrypt ignores input past 72 bytes.

    The base64 SHA-256 digest is 44 bytes and contains no NUL.
    """
    digest = hashlib.sha256(token.encode("utf-8")).digest()
    return base64.b64encode(digest)


class TokenHasher:
    """Salted one-way hashing for opaque session tokens."""

    def __init__(self, rounds: int = 10):
        self.rounds = rounds
        self._dummy_hash: bytes | None = None

    def hash(self, token: str) -> str:
        """Hash a session token with a fresh salt."""
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(_encode(token), salt).decode("utf-8")

    def verify(self, token: str, hashed: str) -> bool:
        """Verify a session token against a stored hash.

        Raises CredentialError when the stored hash is malformed.
        """
        try:
            return bcrypt.checkpw(_encode(token), hashed.encode("utf-8"))
        except ValueError as exc:
            raise CredentialError("Stored session token hash is malformed") from exc

    def verify_dummy(self, token: str) -> bool:
        """Spend one comparison against a throwaway hash. Always False."""
        if self._dummy_hash is None:
            self._dummy_hash = bcrypt.hashpw(b"unused-session-token", bcrypt.gensalt(rounds=self.rounds))
        bcrypt.checkpw(_encode(token), self._dummy_hash)
        return False
