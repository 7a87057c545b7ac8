"""
FlatPWM - Vault Module

This file handles:
- Loading the encrypted store file into memory
- Get/search over the decrypted records
- New/update/delete/add-field/remove-field
- Writing the re-encrypted store back atomically

Every write goes through one primitive:

    records' = upsert(records, name, new_record_or_None)

which strips any record called `name` and appends the new one (or nothing,
for delete). The result is serialized, encrypted and swapped in place of the
old file with os.replace, so the file is either the old store or the new one.

No locking: two invocations writing the same store race, last writer wins.
"""

import logging
import os
import re
import tempfile
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from . import crypto
from .config import Config
from .errors import (
    AbortedByUser,
    EntryNotFound,
    FieldNotFound,
    NoMatches,
    StoreAccessError,
    StoreNotFound,
    ValidationError,
)
from .record import Record, encode, matches_name, validate
from .store import parse, serialize


logger = logging.getLogger(__name__)


def upsert(records: Iterable[Record], name: str, new_record: Optional[Record]) -> List[Record]:
    """
    Remove every record named exactly `name`, then append `new_record`.

    Args:
        records: Current store
        name: Case-sensitive name to strip
        new_record: Record to append, or None to only strip (delete)

    Returns:
        New list; the input is not modified
    """
    result = [r for r in records if r.name != name]
    if new_record is not None:
        result.append(new_record)
    return result


# =============================================================================
# VAULT CLASS
# =============================================================================

class Vault:
    """
    Session over one store file.

    Usage:
        vault = Vault(Config.from_env())
        vault.unlock("passphrase", create=True)

        vault.new("GitHub", "alice@example.com", "s3cret")
        for record in vault.get("github"):
            print(render(record))

        vault.lock()
    """

    def __init__(self, config: Config):
        self.config = config
        self.path = config.store_path

        # Only present when unlocked
        self._passphrase: Optional[str] = None
        self.records: Optional[List[Record]] = None

    @property
    def unlocked(self) -> bool:
        return self.records is not None

    def exists(self) -> bool:
        """
        True if a non-empty store file is present.

        Raises:
            StoreAccessError: If the path exists but isn't a regular file
        """
        if os.path.exists(self.path) and not os.path.isfile(self.path):
            raise StoreAccessError(f"Store path {self.path} is not a regular file")
        return os.path.isfile(self.path) and os.path.getsize(self.path) > 0

    def unlock(self, passphrase: str, create: bool = False) -> None:
        """
        Decrypt the store into memory.

        Args:
            passphrase: Store passphrase
            create: Start from an empty store if no file exists yet

        Raises:
            StoreNotFound: File is absent or empty and create is False
            DecryptFailure: Wrong passphrase or corrupt file
            StoreAccessError: Path is not a regular file or can't be read
        """
        if not self.exists():
            if not create:
                raise StoreNotFound(f"No store found at {self.path}")
            logger.debug("No store at %s, starting empty", self.path)
            self._passphrase = passphrase
            self.records = []
            return

        try:
            with open(self.path, 'r', encoding='ascii', errors='replace') as f:
                armored = f.read()
        except OSError as e:
            raise StoreAccessError(f"Cannot read store {self.path}: {e.strerror or e}")

        body = crypto.decrypt_store(armored, passphrase)
        self._passphrase = passphrase
        self.records = parse(body)
        logger.debug("Unlocked %s (%d entries)", self.path, len(self.records))

    def lock(self) -> None:
        """Forget the passphrase and the decrypted records."""
        self._passphrase = None
        self.records = None

    # =========================================================================
    # QUERIES
    # =========================================================================

    def get(self, name: str) -> List[Record]:
        """
        All records whose name matches exactly, ignoring case.

        Raises:
            NoMatches: If nothing matches
        """
        self._require_unlocked()
        matches = [r for r in self.records if matches_name(r, name)]
        if not matches:
            raise NoMatches("No entries found")
        return matches

    def search(self, pattern: str) -> List[Record]:
        """
        Records whose encoded line matches `pattern` (regex, case-insensitive).

        An empty result is not an error.

        Raises:
            ValidationError: If the pattern isn't a valid regular expression
        """
        self._require_unlocked()
        try:
            regex = re.compile(pattern, re.IGNORECASE)
        except re.error as e:
            raise ValidationError(f"Invalid search pattern: {e}")
        return [r for r in self.records if regex.search(encode(r))]

    def list_names(self) -> List[str]:
        self._require_unlocked()
        return [r.name for r in self.records]

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def new(
        self,
        name: str,
        username: str,
        password: str,
        extra_fields: Sequence[Tuple[str, str]] = ()
    ) -> Record:
        """
        Add an entry, replacing any entry with the same name.

        Returns:
            The stored record
        """
        self._require_unlocked()
        record = Record(name, username, password, list(extra_fields))
        self._write(record.name, record)
        return record

    def update(
        self,
        name: str,
        username: Optional[str] = None,
        password: Optional[str] = None
    ) -> Record:
        """
        Change username and/or password of an existing entry.

        Blank or None values keep the old ones. Extra fields are kept.

        Raises:
            EntryNotFound: If no entry has this name
        """
        existing = self.find(name)
        record = Record(
            existing.name,
            username or existing.username,
            password or existing.password,
            list(existing.extra_fields),
        )
        self._write(existing.name, record)
        return record

    def delete(self, name: str, confirm: Optional[Callable[[Record], bool]] = None) -> Record:
        """
        Remove an entry.

        Args:
            name: Entry name
            confirm: Called with the record before anything is written;
                a false result aborts

        Raises:
            EntryNotFound: If no entry has this name
            AbortedByUser: If confirm declined (store file untouched)
        """
        existing = self.find(name)
        if confirm is not None and not confirm(existing):
            logger.debug("Delete declined, store left unchanged")
            raise AbortedByUser("Aborted")
        self._write(existing.name, None)
        return existing

    def add_field(self, name: str, field_name: str, field_value: str) -> Record:
        """
        Append an extra field to an entry.

        Raises:
            EntryNotFound: If no entry has this name
        """
        existing = self.find(name)
        record = Record(
            existing.name,
            existing.username,
            existing.password,
            existing.extra_fields + [(field_name, field_value)],
        )
        self._write(existing.name, record)
        return record

    def remove_field(self, name: str, field_name: str) -> Record:
        """
        Remove the first extra field called `field_name`.

        Raises:
            EntryNotFound: If no entry has this name
            FieldNotFound: If the entry has no such field
        """
        existing = self.find(name)
        fields = list(existing.extra_fields)
        for i, (current_name, _) in enumerate(fields):
            if current_name == field_name:
                del fields[i]
                break
        else:
            raise FieldNotFound(f"Entry {existing.name!r} has no field {field_name!r}")

        record = Record(existing.name, existing.username, existing.password, fields)
        self._write(existing.name, record)
        return record

    def find(self, name: str) -> Record:
        """Exact case-sensitive match first, then the first case-insensitive one."""
        self._require_unlocked()
        for record in self.records:
            if matches_name(record, name, case_insensitive=False):
                return record
        for record in self.records:
            if matches_name(record, name):
                return record
        raise EntryNotFound(f"Could not find entry {name!r}")

    # =========================================================================
    # INTERNAL HELPERS
    # =========================================================================

    def _write(self, name: str, new_record: Optional[Record]) -> None:
        """Apply one upsert and persist. Memory is only updated once the file is."""
        self._require_unlocked()
        if new_record is not None:
            validate(new_record)
        records = upsert(self.records, name, new_record)
        self._persist(records)
        self.records = records

    def _persist(self, records: List[Record]) -> None:
        """
        Encrypt `records` and atomically replace the store file.

        Raises:
            StoreAccessError: If the directory or file can't be written
        """
        armored = crypto.encrypt_store(serialize(records), self._passphrase, self.config.scrypt_log_n)

        directory = os.path.dirname(os.path.abspath(self.path))
        try:
            os.makedirs(directory, exist_ok=True)
            self._replace(directory, armored)
        except OSError as e:
            raise StoreAccessError(f"Cannot write store {self.path}: {e.strerror or e}")

        logger.debug("Wrote %s (%d entries)", self.path, len(records))

    def _replace(self, directory: str, armored: str) -> None:
        fd, tmp_path = tempfile.mkstemp(prefix=".flatpwm-", suffix=".tmp", dir=directory)
        try:
            with os.fdopen(fd, 'w', encoding='ascii') as f:
                f.write(armored)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_path, 0o600)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def _require_unlocked(self) -> None:
        """Check that vault is unlocked."""
        if not self.unlocked:
            raise RuntimeError("Vault is locked. Call unlock() first.")
