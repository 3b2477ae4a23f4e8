"""Tests for the Vault facade."""

from datetime import datetime, timedelta, timezone
from pathlib import Path
from types import SimpleNamespace

import pytest

from secretly import clipboard, config
from secretly.errors import (
    ClipboardUnavailable,
    HomeDirUnresolvable,
    NameAlreadyInUse,
    SecretNotFound,
    StoreConnectionError,
    UnexpectedStorageError,
)
from secretly.secret import REDACTED, UNDEFINED
from secretly.vault import Vault


class FakeResult:
    """Stands in for an aiosqlite cursor context."""

    def __init__(self, rows):
        self.rows = rows

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

    async def fetchall(self):
        return self.rows


class FakeConn:
    def __init__(self, rows):
        self.rows = rows

    def execute(self, sql, params=()):
        return FakeResult(self.rows)


class TestInit:
    """Tests for Vault.init."""

    async def test_init_with_explicit_path(self, vault_path, vault_password):
        vault = await Vault.init(vault_path)
        try:
            assert vault.store.path == vault_path
            assert vault_path.is_file()
        finally:
            await vault.close()

    async def test_init_default_path(self, temp_vault_dir, vault_password, monkeypatch):
        monkeypatch.setattr(config.Path, "home", classmethod(lambda cls: temp_vault_dir))

        vault = await Vault.init()
        try:
            assert vault.store.path == temp_vault_dir / ".secretly.db"
        finally:
            await vault.close()

    async def test_init_home_unresolvable(self, vault_password, monkeypatch):
        def no_home(cls):
            raise RuntimeError("Could not determine home directory.")

        monkeypatch.setattr(config.Path, "home", classmethod(no_home))

        with pytest.raises(HomeDirUnresolvable):
            await Vault.init()

    async def test_init_prompts_when_env_unset(self, vault_path, monkeypatch):
        monkeypatch.delenv(config.PASSWORD_ENV_VAR, raising=False)
        prompts = []

        def fake_getpass(prompt):
            prompts.append(prompt)
            return "typed"

        monkeypatch.setattr("secretly.prompt.getpass.getpass", fake_getpass)

        vault = await Vault.init(vault_path)
        await vault.close()
        assert prompts == ["Enter vault password > "]

    async def test_reopen_sees_prior_writes(self, vault_path, vault_password):
        async with await Vault.init(vault_path) as vault:
            await vault.create_secret("x", "v")

        async with await Vault.init(vault_path) as vault:
            assert (await vault.decrypt_secret("x")).expose_secret() == "v"

    async def test_wrong_password_is_detected(self, vault_path, vault_password, monkeypatch):
        async with await Vault.init(vault_path) as vault:
            await vault.create_secret("x", "v")

        monkeypatch.setenv(config.PASSWORD_ENV_VAR, "wrong")
        with pytest.raises(StoreConnectionError):
            await Vault.init(vault_path)


class TestCreateAndDescribe:
    """Tests for create_secret and describe_secret."""

    async def test_describe_scenario(self, vault):
        await vault.create_secret("db-pass", "s3cr3t", description="prod db", frozen=True, expires_at=None)

        secret = await vault.describe_secret("db-pass")

        assert secret.name == "db-pass"
        assert secret.description == "prod db"
        assert secret.frozen is True
        assert secret.expires_at is None
        assert str(secret.value) == REDACTED
        assert secret.table_row()["value"] == REDACTED
        assert secret.table_row()["expires_at"] == UNDEFINED
        assert "s3cr3t" not in repr(secret)
        assert "s3cr3t" not in str(secret.to_dict())

    async def test_describe_defaults(self, vault):
        await vault.create_secret("plain", "v")

        secret = await vault.describe_secret("plain")

        assert secret.description is None
        assert secret.frozen is False
        assert secret.created_at.tzinfo is not None
        assert secret.created_at == secret.updated_at

    async def test_expires_at_persisted(self, vault):
        expires = datetime(2030, 6, 1, 12, 0, tzinfo=timezone(timedelta(hours=2)))
        await vault.create_secret("temp", "v", expires_at=expires)

        secret = await vault.describe_secret("temp")
        assert secret.expires_at == expires
        assert secret.expires_at.tzinfo == timezone.utc

    async def test_naive_expiry_treated_as_utc(self, vault):
        await vault.create_secret("temp", "v", expires_at=datetime(2030, 6, 1, 12, 0))

        secret = await vault.describe_secret("temp")
        assert secret.expires_at == datetime(2030, 6, 1, 12, 0, tzinfo=timezone.utc)

    async def test_past_expiry_not_enforced(self, vault):
        await vault.create_secret("old", "v", expires_at=datetime(2000, 1, 1, tzinfo=timezone.utc))
        assert (await vault.decrypt_secret("old")).expose_secret() == "v"

    async def test_duplicate_name(self, vault):
        await vault.create_secret("dup", "first", description="original")

        with pytest.raises(NameAlreadyInUse, match="dup"):
            await vault.create_secret("dup", "second", description="replacement")

        secret = await vault.describe_secret("dup")
        assert secret.description == "original"
        assert (await vault.decrypt_secret("dup")).expose_secret() == "first"

    async def test_describe_missing(self, vault):
        with pytest.raises(SecretNotFound):
            await vault.describe_secret("nope")

    async def test_describe_is_exact_match(self, vault):
        await vault.create_secret("abc", "v")
        with pytest.raises(SecretNotFound):
            await vault.describe_secret("ab%")

    async def test_describe_ambiguous_match(self):
        row = {
            "name": "x", "description": None, "frozen": 0,
            "created_at": "2026-01-01T00:00:00Z", "updated_at": "2026-01-01T00:00:00Z",
            "expires_at": None,
        }
        vault = Vault(SimpleNamespace(conn=FakeConn([row, row])))

        with pytest.raises(UnexpectedStorageError, match="more than one"):
            await vault.describe_secret("x")

    async def test_storage_errors_are_wrapped(self, vault):
        await vault.store.conn.execute("DROP TABLE secret")

        with pytest.raises(UnexpectedStorageError, match="no such table"):
            await vault.create_secret("x", "v")
        with pytest.raises(UnexpectedStorageError):
            await vault.list_secrets()
        with pytest.raises(UnexpectedStorageError):
            await vault.describe_secret("x")
        with pytest.raises(UnexpectedStorageError):
            await vault.decrypt_secret("x")


class TestListSecrets:
    """Tests for list_secrets."""

    async def test_empty_vault(self, vault):
        assert await vault.list_secrets() == []

    async def test_lists_every_secret_once(self, vault):
        names = [f"secret-{i}" for i in range(5)]
        for name in names:
            await vault.create_secret(name, f"value of {name}")

        secrets = await vault.list_secrets()

        assert len(secrets) == 5
        assert sorted(s.name for s in secrets) == names
        assert all(s.value.expose_secret() == "" for s in secrets)

    async def test_value_column_never_selected(self, vault, monkeypatch):
        await vault.create_secret("x", "v")
        queries = []
        execute = vault.store.conn.execute

        def spy(sql, *args):
            queries.append(sql)
            return execute(sql, *args)

        monkeypatch.setattr(vault.store.conn, "execute", spy)
        await vault.list_secrets()
        await vault.describe_secret("x")

        assert queries
        assert all("value" not in q for q in queries)


class TestDecryptSecret:
    """Tests for decrypt_secret."""

    async def test_missing(self, vault):
        with pytest.raises(SecretNotFound, match="No secret named 'ghost'"):
            await vault.decrypt_secret("ghost")

    async def test_returns_value(self, vault):
        await vault.create_secret("x", "v")
        assert (await vault.decrypt_secret("x")).expose_secret() == "v"

    @pytest.mark.parametrize("value", [
        "",
        "  leading and trailing  ",
        "line one\nline two\ttabbed",
        "pässwörd ✓ 秘密 🔑",
    ])
    async def test_value_preserved_exactly(self, vault, value):
        await vault.create_secret("x", value)
        assert (await vault.decrypt_secret("x")).expose_secret() == value

    async def test_value_encrypted_at_rest(self, vault, vault_path):
        await vault.create_secret("x", "plaintext-marker-9f8e7d")
        assert b"plaintext-marker-9f8e7d" not in Path(vault_path).read_bytes()

    async def test_tampered_ciphertext(self, vault):
        await vault.create_secret("x", "v")
        await vault.store.conn.execute("UPDATE secret SET value = zeroblob(17) WHERE name = 'x'")

        with pytest.raises(UnexpectedStorageError, match="Failed to decrypt"):
            await vault.decrypt_secret("x")


class TestDecryptAndCopy:
    """Tests for decrypt_and_copy_secret."""

    async def test_copies_value(self, vault, monkeypatch):
        copied = []
        monkeypatch.setattr(clipboard, "copy_to_clipboard", copied.append)
        await vault.create_secret("x", "v")

        await vault.decrypt_and_copy_secret("x")

        assert copied == ["v"]

    async def test_clipboard_unavailable(self, vault, monkeypatch):
        def no_clipboard(text):
            raise ClipboardUnavailable("No clipboard available (headless session)")

        monkeypatch.setattr(clipboard, "copy_to_clipboard", no_clipboard)
        await vault.create_secret("x", "v")

        with pytest.raises(ClipboardUnavailable):
            await vault.decrypt_and_copy_secret("x")

    async def test_missing_secret_propagates(self, vault, monkeypatch):
        copied = []
        monkeypatch.setattr(clipboard, "copy_to_clipboard", copied.append)

        with pytest.raises(SecretNotFound):
            await vault.decrypt_and_copy_secret("ghost")
        assert copied == []

    async def test_value_not_logged(self, vault, monkeypatch, log_records):
        monkeypatch.setattr(clipboard, "copy_to_clipboard", lambda text: None)
        await vault.create_secret("x", "s3cr3t")

        await vault.decrypt_and_copy_secret("x")

        assert all("s3cr3t" not in r["message"] for r in log_records)


class TestUploadSecret:
    async def test_not_implemented(self, vault):
        with pytest.raises(NotImplementedError):
            await vault.upload_secret("x", "aws")
