"""
User and Auth Managers

Users own every other entity; deleting one cascades to their tokens,
categories, accounts and transactions. Passwords are hashed with passlib
and never leave this module in plaintext.

`UserManager.get_for_token` is the entry point for authentication
middleware: it resolves a bearer token's plaintext to its user.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from passlib.context import CryptContext

from ledger.audit import AuditLogger
from ledger.errors import InvalidCredentialsError, NotFoundError
from ledger.models.ledger import Token, User, UserPatch
from ledger.services.base import BaseManager, require_ids
from ledger.services.storage import LedgerDatabaseInterface
from ledger.services.token_service import (
    TokenManager,
    hash_token,
    validate_token_plaintext,
)
from ledger.validation import Validator, max_length, min_length, non_zero


pwd = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def validate_password_plaintext(v: Validator, password: str) -> None:
    v.check(non_zero(password), "password", "Must be provided")
    v.check(min_length(password, 8), "password", "Must be at least 8 bytes long")
    v.check(max_length(password, 72), "password", "Must not be more than 72 bytes long")


def validate_name(v: Validator, name: str) -> None:
    v.check(non_zero(name), "name", "Must be provided")
    v.check(min_length(name, 2), "name", "Must be at least 2 bytes long")
    v.check(max_length(name, 100), "name", "Must not be more than 100 bytes long")


def validate_username(v: Validator, username: str) -> None:
    v.check(non_zero(username), "username", "Must be provided")
    v.check(min_length(username, 2), "username", "Must be at least 2 bytes long")
    v.check(max_length(username, 20), "username", "Must not be more than 20 bytes long")


class UserManager(BaseManager):

    def create(self, username: str, name: str, password: str) -> User:
        """
        Register a user.

        Raises:
            ValidationFailedError: If any field is invalid
            DuplicateIdentifierError: If the username is taken
        """
        v = Validator()
        validate_username(v, username)
        validate_name(v, name)
        validate_password_plaintext(v, password)
        v.raise_if_invalid()

        password_hash = pwd.hash(password)
        with self._db.transaction() as q:
            user = q.create_user(username, name, password_hash)

        if self._audit_logger:
            self._audit_logger.log_user_created(user.id, username)
        return user

    def get_by_id(self, user_id: int) -> User:
        require_ids(user_id)

        with self._db.transaction() as q:
            user = q.get_user_by_id(user_id)
        if user is None:
            raise NotFoundError()
        return user

    def get_for_token(self, plaintext: str) -> User:
        """
        Resolve a token's plaintext to its user.

        Raises:
            ValidationFailedError: If the plaintext is malformed
            NotFoundError: If no unexpired token matches
        """
        v = Validator()
        validate_token_plaintext(v, plaintext)
        v.raise_if_invalid()

        with self._db.transaction() as q:
            user = q.get_user_for_token(hash_token(plaintext), datetime.now(timezone.utc))
        if user is None:
            raise NotFoundError()
        return user

    def delete_by_id(self, user_id: int) -> None:
        require_ids(user_id)

        with self._db.transaction() as q:
            if q.delete_user(user_id) == 0:
                raise NotFoundError()

        if self._audit_logger:
            self._audit_logger.log_user_deleted(user_id)

    def update_by_id(
        self,
        user_id: int,
        patch: UserPatch,
        expected_version: Optional[int] = None,
    ) -> User:
        """Change a user's name and/or password."""
        require_ids(user_id)
        changes = patch.changes()

        v = Validator()
        if "name" in changes:
            validate_name(v, changes["name"])
        if "password" in changes:
            validate_password_plaintext(v, changes["password"])
        v.raise_if_invalid()

        password_hash = pwd.hash(changes["password"]) if "password" in changes else None

        with self._db.transaction() as q:
            user = q.get_user_by_id(user_id)
            if user is None:
                raise NotFoundError()

            version = user.version if expected_version is None else expected_version
            name = changes.get("name", user.name)

            rows = q.update_user(user_id, version, name, password_hash or user.password_hash)
            if rows == 0:
                raise self._conflict("user", user_id, user_id, version)

            user = q.get_user_by_id(user_id)

        if self._audit_logger:
            self._audit_logger.log_user_updated(user_id, user.version)
        return user


class AuthManager(BaseManager):
    """Exchanges a username and password for an authentication token."""

    def __init__(
        self,
        db: LedgerDatabaseInterface,
        audit_logger: Optional[AuditLogger] = None,
        token_ttl: timedelta = timedelta(hours=24),
    ):
        super().__init__(db, audit_logger)
        self._token_ttl = token_ttl
        self._tokens = TokenManager(db, audit_logger)

    def create_auth_token(self, username: str, password: str) -> Token:
        """
        Raises:
            ValidationFailedError: If the username or password is malformed
            NotFoundError: If the username is unknown
            InvalidCredentialsError: If the password does not match
        """
        v = Validator()
        validate_username(v, username)
        validate_password_plaintext(v, password)
        v.raise_if_invalid()

        with self._db.transaction() as q:
            user = q.get_user_by_username(username)
        if user is None:
            raise NotFoundError()

        if not pwd.verify(password, user.password_hash):
            raise InvalidCredentialsError()

        return self._tokens.new(user.id, self._token_ttl)
