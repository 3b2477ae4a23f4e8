"""Vault - the facade over the encrypted store.

Owns the single store connection for the life of the process and maps
storage failures onto the domain errors in secretly.errors.
"""

import asyncio
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

import nacl.exceptions
from loguru import logger

from . import clipboard
from .config import PASSWORD_ENV_VAR, default_vault_path
from .db import EncryptedStore, connect_or_create_encrypted_database
from .errors import NameAlreadyInUse, SecretNotFound, UnexpectedStorageError
from .prompt import get_or_prompt_secret
from .secret import Secret, SecretValue

# Extended result codes for a unique/primary key collision
NAME_COLLISION_CODES = {
    sqlite3.SQLITE_CONSTRAINT_PRIMARYKEY,
    sqlite3.SQLITE_CONSTRAINT_UNIQUE,
}

METADATA_COLUMNS = "name, description, frozen, created_at, updated_at, expires_at"


def _to_utc(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


class Vault:
    """Local secrets vault backed by one encrypted store connection.

    Use Vault.init() to obtain a ready instance. Operations run one at a time
    against the connection; nothing here retries or reconnects.
    """

    def __init__(self, store: EncryptedStore):
        self.store = store

    @classmethod
    async def init(cls, path=None) -> "Vault":
        """Open the vault at path, or ~/.secretly.db, prompting for the password.

        Raises:
            HomeDirUnresolvable: If no path is given and home is unknown
            StoreCorrupted, StoreConnectionError: From the connector

        """
        vault_path = Path(path) if path else default_vault_path()
        password = get_or_prompt_secret(PASSWORD_ENV_VAR, "Enter vault password > ")
        store = await connect_or_create_encrypted_database(vault_path, password)
        logger.debug("Initialized vault at {}", vault_path)
        return cls(store)

    async def close(self) -> None:
        await self.store.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def create_secret(
        self,
        name: str,
        value: str,
        description: Optional[str] = None,
        frozen: bool = False,
        expires_at: Optional[datetime] = None,
    ) -> None:
        """Create a secret in the vault.

        Name uniqueness is left to the primary key: the insert is attempted
        and a collision is reported, with no read beforehand.

        Raises:
            NameAlreadyInUse: If a secret with this name exists
            UnexpectedStorageError: On any other storage failure

        """
        ciphertext, nonce = self.store.encrypt(value)

        try:
            await self.store.conn.execute(
                """INSERT INTO secret (name, value, nonce, description, frozen, expires_at)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (name, ciphertext, nonce, description, frozen, _to_utc(expires_at))
            )
        except sqlite3.IntegrityError as e:
            if getattr(e, "sqlite_errorcode", None) in NAME_COLLISION_CODES:
                raise NameAlreadyInUse(f"Secret name already in use: '{name}'") from e
            raise UnexpectedStorageError(f"Unexpected error: {e}") from e
        except sqlite3.Error as e:
            raise UnexpectedStorageError(f"Unexpected error: {e}") from e

        logger.debug("Created secret '{}'", name)

    async def list_secrets(self) -> List[Secret]:
        """List secrets metadata. Order is unspecified."""
        try:
            async with self.store.conn.execute(
                f"SELECT {METADATA_COLUMNS} FROM secret"
            ) as cursor:
                rows = await cursor.fetchall()
        except sqlite3.Error as e:
            raise UnexpectedStorageError(f"Unexpected error: {e}") from e

        return [Secret.from_row(row) for row in rows]

    async def describe_secret(self, name: str) -> Secret:
        """Describe a secret without revealing its value.

        Raises:
            SecretNotFound: If no secret has this name
            UnexpectedStorageError: On storage failure or an ambiguous match

        """
        try:
            async with self.store.conn.execute(
                f"SELECT {METADATA_COLUMNS} FROM secret WHERE name = ? LIMIT 2",
                (name,)
            ) as cursor:
                rows = await cursor.fetchall()
        except sqlite3.Error as e:
            raise UnexpectedStorageError(f"Unexpected error: {e}") from e

        if not rows:
            raise SecretNotFound(f"Secret not found: '{name}'")
        if len(rows) > 1:
            raise UnexpectedStorageError(f"Unexpected error: more than one secret named '{name}'")

        return Secret.from_row(rows[0])

    async def decrypt_secret(self, name: str) -> SecretValue:
        """Return the decrypted value of a secret.

        Raises:
            SecretNotFound: If no secret has this name
            UnexpectedStorageError: If the row cannot be read or decrypted

        """
        try:
            async with self.store.conn.execute(
                "SELECT value, nonce FROM secret WHERE name = ?",
                (name,)
            ) as cursor:
                row = await cursor.fetchone()
        except sqlite3.Error as e:
            raise UnexpectedStorageError(f"Failed to decrypt secret: {e}") from e

        if row is None:
            raise SecretNotFound(f"No secret named '{name}'")

        try:
            return SecretValue(self.store.decrypt(row["value"], row["nonce"]))
        except (nacl.exceptions.CryptoError, UnicodeDecodeError) as e:
            raise UnexpectedStorageError(f"Failed to decrypt secret: {e}") from e

    async def decrypt_and_copy_secret(self, name: str) -> None:
        """Copy a secret's value to the system clipboard.

        Raises:
            ClipboardUnavailable: If the host has no usable clipboard
            SecretNotFound, UnexpectedStorageError: From decrypt_secret

        """
        value = await self.decrypt_secret(name)
        await asyncio.to_thread(clipboard.copy_to_clipboard, value.expose_secret())

    async def upload_secret(self, name: str, backend: str) -> None:
        """Upload a secret to a remote secret store."""
        raise NotImplementedError("Uploading secrets to a remote backend is not implemented")
