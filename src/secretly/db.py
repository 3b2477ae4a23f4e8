"""Encrypted Store Connector - opens the vault file and keeps its schema current.

Values are encrypted with libsodium SecretBox under a key derived from the
master password with Argon2id. A canary stored in the keyring table proves
the key before anything else touches the store.
"""

import asyncio
import os
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence, Tuple

import aiosqlite
import nacl.exceptions
import nacl.pwhash
import nacl.secret
import nacl.utils
from loguru import logger

from .errors import MigrationFailed, StoreConnectionError, StoreCorrupted

# Constants
SALT_SIZE = nacl.pwhash.argon2id.SALTBYTES
NONCE_SIZE = nacl.secret.SecretBox.NONCE_SIZE
KEY_SIZE = nacl.secret.SecretBox.KEY_SIZE
OPS_LIMIT = nacl.pwhash.argon2id.OPSLIMIT_INTERACTIVE
MEM_LIMIT = nacl.pwhash.argon2id.MEMLIMIT_INTERACTIVE
CANARY = "SECRETLY_CANARY"
NOT_A_STORE = "Not a secretly store (wrong password or corrupted store)"

KEYRING_DDL = """
    CREATE TABLE IF NOT EXISTS keyring (
        id INTEGER PRIMARY KEY CHECK (id = 1),
        salt BLOB NOT NULL,
        opslimit INTEGER NOT NULL,
        memlimit INTEGER NOT NULL,
        canary_ciphertext BLOB NOT NULL,
        canary_nonce BLOB NOT NULL
    )
"""

SCHEMA_MIGRATIONS_DDL = """
    CREATE TABLE IF NOT EXISTS schema_migrations (
        version INTEGER PRIMARY KEY,
        description TEXT NOT NULL,
        applied_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
    )
"""


@dataclass(frozen=True)
class Migration:
    """One schema step, applied atomically and recorded by version."""

    version: int
    description: str
    statements: Tuple[str, ...]


MIGRATIONS = [
    Migration(1, "create secret table", ("""
        CREATE TABLE secret (
            name TEXT PRIMARY KEY NOT NULL,
            value BLOB NOT NULL,
            nonce BLOB NOT NULL,
            description TEXT,
            frozen INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
            updated_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
            expires_at TEXT
        )
    """,)),
    Migration(2, "refresh updated_at on mutation", ("""
        CREATE TRIGGER secret_touch_updated_at
        AFTER UPDATE OF value, nonce, description, frozen, expires_at ON secret
        FOR EACH ROW
        BEGIN
            UPDATE secret
            SET updated_at = strftime('%Y-%m-%dT%H:%M:%fZ', 'now')
            WHERE name = NEW.name;
        END
    """,)),
]


def set_permissions(path, mode=0o600):
    """Set file permissions."""
    os.chmod(path, mode)


def derive_key(password, salt, opslimit=None, memlimit=None):
    """Derive encryption key from password using Argon2id."""
    return nacl.pwhash.argon2id.kdf(
        KEY_SIZE,
        password.encode('utf-8'),
        salt,
        opslimit=OPS_LIMIT if opslimit is None else opslimit,
        memlimit=MEM_LIMIT if memlimit is None else memlimit,
    )


def encrypt_value(key, plaintext):
    """Encrypt plaintext using SecretBox with fresh nonce."""
    box = nacl.secret.SecretBox(key)
    nonce = nacl.utils.random(NONCE_SIZE)
    encrypted = box.encrypt(plaintext.encode('utf-8'), nonce)
    return encrypted.ciphertext, nonce


def decrypt_value(key, ciphertext, nonce):
    """Decrypt ciphertext using SecretBox."""
    box = nacl.secret.SecretBox(key)
    return box.decrypt(ciphertext, nonce).decode('utf-8')


class EncryptedStore:
    """An open, unlocked vault file: the connection plus its derived key."""

    def __init__(self, path: Path, conn: aiosqlite.Connection, key: bytes):
        self.path = path
        self.conn = conn
        self._key = key

    def encrypt(self, plaintext: str) -> Tuple[bytes, bytes]:
        return encrypt_value(self._key, plaintext)

    def decrypt(self, ciphertext: bytes, nonce: bytes) -> str:
        return decrypt_value(self._key, ciphertext, nonce)

    async def close(self) -> None:
        await self.conn.close()


async def apply_migrations(
    conn: aiosqlite.Connection,
    migrations: Optional[Sequence[Migration]] = None,
) -> int:
    """Apply pending migrations in version order.

    Each migration runs in its own transaction; already-applied versions are
    skipped, so calling this on every connect is safe.

    Returns:
        Number of migrations applied

    Raises:
        MigrationFailed: If reading the migration state or any step fails

    """
    if migrations is None:
        migrations = MIGRATIONS

    try:
        await conn.execute(SCHEMA_MIGRATIONS_DDL)
        async with conn.execute("SELECT version FROM schema_migrations") as cursor:
            applied = {row[0] for row in await cursor.fetchall()}
    except sqlite3.Error as e:
        raise MigrationFailed(f"Could not read migration state: {e}") from e

    count = 0
    for migration in sorted(migrations, key=lambda m: m.version):
        if migration.version in applied:
            continue

        try:
            await conn.execute("BEGIN")
            for statement in migration.statements:
                await conn.execute(statement)
            await conn.execute(
                "INSERT INTO schema_migrations (version, description) VALUES (?, ?)",
                (migration.version, migration.description)
            )
            await conn.commit()
        except sqlite3.Error as e:
            await conn.rollback()
            raise MigrationFailed(
                f"Migration {migration.version} ({migration.description}) failed: {e}"
            ) from e

        logger.debug("Applied migration {} ({})", migration.version, migration.description)
        count += 1

    return count


async def _create_keyring(conn, password):
    """Set up the keyring of a fresh store and return the derived key."""
    salt = nacl.utils.random(SALT_SIZE)
    key = await asyncio.to_thread(derive_key, password, salt, OPS_LIMIT, MEM_LIMIT)
    canary_ciphertext, canary_nonce = encrypt_value(key, CANARY)

    try:
        await conn.execute("BEGIN")
        await conn.execute(KEYRING_DDL)
        await conn.execute(
            """INSERT INTO keyring (id, salt, opslimit, memlimit, canary_ciphertext, canary_nonce)
               VALUES (1, ?, ?, ?, ?, ?)""",
            (salt, OPS_LIMIT, MEM_LIMIT, canary_ciphertext, canary_nonce)
        )
        await conn.commit()
    except sqlite3.Error:
        await conn.rollback()
        raise
    return key


async def _unlock(conn, password):
    """Derive the key and prove it against the stored canary.

    Only an empty database gets a new keyring. Any other database without a
    keyring row is not a vault and is left untouched.
    """
    async with conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'") as cursor:
        tables = {row[0] for row in await cursor.fetchall()}

    if not tables:
        return await _create_keyring(conn, password)

    if "keyring" not in tables:
        raise StoreConnectionError(NOT_A_STORE)

    async with conn.execute(
        "SELECT salt, opslimit, memlimit, canary_ciphertext, canary_nonce FROM keyring WHERE id = 1"
    ) as cursor:
        row = await cursor.fetchone()

    if row is None:
        raise StoreConnectionError(NOT_A_STORE)

    key = await asyncio.to_thread(
        derive_key, password, row["salt"], row["opslimit"], row["memlimit"]
    )
    canary = decrypt_value(key, row["canary_ciphertext"], row["canary_nonce"])
    if canary != CANARY:
        raise StoreConnectionError("Invalid canary (wrong password or corrupted store)")
    return key


async def connect_or_create_encrypted_database(database_path, password) -> EncryptedStore:
    """Open (or create) the encrypted store at database_path.

    A wrong password and a damaged file cannot be told apart here: both fail
    the canary check or the first read, and both raise StoreConnectionError.

    Migration failures are logged and swallowed so that reads against an
    already-correct schema keep working.

    Raises:
        StoreCorrupted: If the path exists but is not a regular file
        StoreConnectionError: If the store cannot be opened or unlocked

    """
    database_path = Path(database_path)

    if database_path.exists() and not database_path.is_file():
        raise StoreCorrupted(f"Store corrupted: {database_path} is not a regular file")

    created = not database_path.exists()

    try:
        conn = await aiosqlite.connect(str(database_path), isolation_level=None)
    except sqlite3.Error as e:
        raise StoreConnectionError(f"Could not open store at {database_path}: {e}") from e
    conn.row_factory = sqlite3.Row
    logger.debug("Connected to db at {}", database_path)

    try:
        key = await _unlock(conn, password)
    except StoreConnectionError:
        await conn.close()
        raise
    except (sqlite3.Error, nacl.exceptions.CryptoError, UnicodeDecodeError) as e:
        await conn.close()
        raise StoreConnectionError(
            f"Could not unlock store at {database_path} (wrong password or corrupted store): {e}"
        ) from e

    if not database_path.is_file():
        await conn.close()
        raise StoreCorrupted(f"Store corrupted: {database_path} was not written")

    if created:
        set_permissions(database_path)

    try:
        await apply_migrations(conn)
    except MigrationFailed as e:
        # Keep the connection; reads may still work against the current schema.
        logger.error("Failed to migrate database: {}", e)

    return EncryptedStore(database_path, conn, key)
