"""
Token Issuance

A token's plaintext is 16 random bytes encoded as unpadded base32 (26
characters). It is returned to the caller exactly once; the store keeps
only its SHA-256 hash, the owner and the expiry.
"""

import base64
import hashlib
import secrets
from datetime import datetime, timedelta, timezone

from ledger.models.ledger import Token
from ledger.services.base import BaseManager
from ledger.validation import Validator


TOKEN_BYTES = 16
TOKEN_LENGTH = 26


def hash_token(plaintext: str) -> bytes:
    return hashlib.sha256(plaintext.encode("utf-8")).digest()


def generate_token(user_id: int, ttl: timedelta) -> Token:
    plaintext = base64.b32encode(secrets.token_bytes(TOKEN_BYTES)).decode("ascii").rstrip("=")
    return Token(
        plaintext=plaintext,
        hash=hash_token(plaintext),
        user_id=user_id,
        expiry=datetime.now(timezone.utc) + ttl,
    )


def validate_token_plaintext(v: Validator, plaintext: str) -> None:
    v.check(plaintext != "", "token", "must be provided")
    v.check(len(plaintext.encode("utf-8")) == TOKEN_LENGTH, "token", "must be 26 bytes long")


class TokenManager(BaseManager):

    def new(self, user_id: int, ttl: timedelta) -> Token:
        """
        Issue and persist a token for `user_id`.

        Raises:
            NotFoundError: If the user does not exist
        """
        token = generate_token(user_id, ttl)

        with self._db.transaction() as q:
            q.create_token(token.hash, token.user_id, token.expiry)

        if self._audit_logger:
            self._audit_logger.log_token_issued(user_id, token.expiry)
        return token
