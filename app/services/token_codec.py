"""Invite token generation and digesting.

A token is a bearer capability, not a container: nothing is encoded in it and
all authoritative invite data lives in the store, keyed by the token digest.
"""
import hashlib
import re
import secrets

MIN_TOKEN_BYTES = 16


class TokenCodec:
    def __init__(self, token_bytes: int = 32):
        if token_bytes < MIN_TOKEN_BYTES:
            raise ValueError(f"token_bytes must be at least {MIN_TOKEN_BYTES} (128 bits)")
        self.token_bytes = token_bytes
        # token_urlsafe is unpadded base64url: 4 chars per 3 bytes, rounded up
        self.token_length = -(-token_bytes * 4 // 3)
        self._pattern = re.compile(r"^[A-Za-z0-9_-]{%d}$" % self.token_length)

    def generate(self) -> str:
        return secrets.token_urlsafe(self.token_bytes)

    def looks_like_token(self, token: str) -> bool:
        """Cheap format check so garbage never reaches the store."""
        if not token or not isinstance(token, str):
            return False
        return bool(self._pattern.match(token))

    @staticmethod
    def digest(token: str) -> str:
        return hashlib.sha256(token.encode("utf-8")).hexdigest()
