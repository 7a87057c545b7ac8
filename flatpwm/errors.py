"""
FlatPWM - Error Kinds

Every failure the vault can report is one of these. The CLI catches
VaultError at the command boundary and prints "Error: <message>".
"""


class VaultError(Exception):
    """Base class for all vault failures."""


class StoreNotFound(VaultError):
    """Store file is missing or empty."""


class DecryptFailure(VaultError):
    """Wrong passphrase, or the ciphertext is corrupt or truncated."""


class EntryNotFound(VaultError):
    """Exact-name lookup missed (update, delete, add-field, remove-field)."""


class NoMatches(VaultError):
    """Lookup produced no entries. Fatal for get, never raised by search."""


class FieldNotFound(VaultError):
    """remove-field named an extra field the entry doesn't have."""


class ValidationError(VaultError):
    """Input would corrupt the line format (separator in a field, etc.)."""


class AbortedByUser(VaultError):
    """User declined a confirmation; nothing was written."""


class StoreAccessError(VaultError):
    """Store path can't be read or written (permissions, a directory, etc.)."""
