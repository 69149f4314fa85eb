"""Exceptions raised by the credential and configuration layer."""


class GpipeError(Exception):
    """Base class for errors that should end the run with a diagnostic."""


class DecryptionError(GpipeError):
    """Stored ciphertext could not be decrypted with the local key pair."""


class ConfigError(GpipeError):
    """The persisted configuration is malformed or incomplete."""
