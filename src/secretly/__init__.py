"""Secretly - a local secrets manager for linux users.
Uses an encrypted SQLite store and libsodium cryptography via pynacl.
"""

from loguru import logger

__version__ = "0.1.0"

# Silent when imported as a library; the CLI turns logging back on.
logger.disable("secretly")
