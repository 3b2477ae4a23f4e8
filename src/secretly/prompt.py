"""Credential prompt - master password and secret value input."""

import getpass
import os


def get_or_prompt_secret(env_var, prompt):
    """Get a secret from an environment variable or prompt for it.

    Checks the environment variable first for automation/testing. Falls back
    to an interactive getpass prompt if it is not set or empty.

    Security note: passing the master password via the environment is less
    secure as it may be visible in process lists. Only use in isolated
    environments.
    """
    env_value = os.environ.get(env_var)
    if env_value:
        return env_value
    return getpass.getpass(prompt)


def prompt_secret(prompt):
    """Prompt for a secret without echo."""
    return getpass.getpass(prompt)
