"""Pytest fixtures and utilities for secretly tests."""

import sys
import tempfile
from pathlib import Path

import nacl.pwhash
import pytest
import pytest_asyncio
from loguru import logger

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from secretly import db
from secretly.config import PASSWORD_ENV_VAR
from secretly.vault import Vault

TEST_PASSWORD = "test_password_123"


@pytest.fixture(autouse=True)
def fast_kdf(monkeypatch):
    """Use the cheapest Argon2id parameters so tests stay quick."""
    monkeypatch.setattr(db, "OPS_LIMIT", nacl.pwhash.argon2id.OPSLIMIT_MIN)
    monkeypatch.setattr(db, "MEM_LIMIT", nacl.pwhash.argon2id.MEMLIMIT_MIN)


@pytest.fixture
def temp_vault_dir():
    """Create a temporary directory for vault files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def vault_path(temp_vault_dir):
    return temp_vault_dir / "test.db"


@pytest.fixture
def vault_password(monkeypatch):
    """Supply the master password through the environment."""
    monkeypatch.setenv(PASSWORD_ENV_VAR, TEST_PASSWORD)
    return TEST_PASSWORD


@pytest_asyncio.fixture
async def vault(vault_path, vault_password):
    """An initialized, empty vault."""
    v = await Vault.init(vault_path)
    yield v
    await v.close()


@pytest.fixture
def log_records():
    """Capture loguru records emitted during a test."""
    records = []
    logger.enable("secretly")
    handler_id = logger.add(lambda message: records.append(message.record), level="DEBUG")
    yield records
    logger.remove(handler_id)
    logger.disable("secretly")
