"""Error taxonomy for vault operations.

Every error the vault surfaces derives from SecretlyError so the CLI can turn
it into a message and a non-zero exit.
"""


class SecretlyError(Exception):
    """Base class for all vault errors."""


class StoreConnectionError(SecretlyError):
    """The store could not be opened or unlocked.

    A wrong master password and a corrupted file look the same from here:
    both surface as this error.
    """


class StoreCorrupted(SecretlyError):
    """The store path exists but is not a usable regular file."""


class MigrationFailed(SecretlyError):
    """A schema migration failed. Logged by the connector, never fatal."""


class HomeDirUnresolvable(SecretlyError):
    """No store path was given and the home directory is unknown."""


class NameAlreadyInUse(SecretlyError):
    """A secret with this name already exists."""


class SecretNotFound(SecretlyError):
    """No secret matches the requested name."""


class ClipboardUnavailable(SecretlyError):
    """The host has no usable clipboard."""


class UnexpectedStorageError(SecretlyError):
    """Any other persistence failure, carrying the underlying message."""
