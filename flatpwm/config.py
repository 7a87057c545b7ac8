"""
FlatPWM - Configuration

Where the store lives and how expensive the key derivation is.

Environment overrides:
    FLATPWM_STORE         Path of the encrypted store file
    FLATPWM_SCRYPT_LOG_N  scrypt cost (N = 2**log_n) for newly written stores
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .errors import ValidationError


# =============================================================================
# Defaults
# =============================================================================

DEFAULT_STORE_PATH = os.path.join(os.path.expanduser("~"), ".flatpwm", "store.enc")

STORE_ENV_VAR = "FLATPWM_STORE"
SCRYPT_LOG_N_ENV_VAR = "FLATPWM_SCRYPT_LOG_N"

# N = 2**17 = 131072, ~16 MB RAM, ~250ms on a modern CPU
DEFAULT_SCRYPT_LOG_N = 17
MIN_SCRYPT_LOG_N = 1
MAX_SCRYPT_LOG_N = 20

DEFAULT_PASSWORD_LENGTH = 20


# =============================================================================
# Config
# =============================================================================

@dataclass
class Config:
    store_path: str = DEFAULT_STORE_PATH
    scrypt_log_n: int = DEFAULT_SCRYPT_LOG_N

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None,
                 store_path: Optional[str] = None) -> "Config":
        """
        Build config from environment variables.

        Args:
            environ: Mapping to read (default: os.environ)
            store_path: Explicit path (e.g. from --store), wins over the env

        Raises:
            ValidationError: If FLATPWM_SCRYPT_LOG_N isn't a usable integer
        """
        if environ is None:
            environ = os.environ

        path = store_path or environ.get(STORE_ENV_VAR) or DEFAULT_STORE_PATH

        raw_log_n = environ.get(SCRYPT_LOG_N_ENV_VAR, "").strip()
        if raw_log_n:
            try:
                log_n = int(raw_log_n)
            except ValueError:
                raise ValidationError(f"{SCRYPT_LOG_N_ENV_VAR} must be an integer, got {raw_log_n!r}")
            if not MIN_SCRYPT_LOG_N <= log_n <= MAX_SCRYPT_LOG_N:
                raise ValidationError(
                    f"{SCRYPT_LOG_N_ENV_VAR} must be between {MIN_SCRYPT_LOG_N} and {MAX_SCRYPT_LOG_N}"
                )
        else:
            log_n = DEFAULT_SCRYPT_LOG_N

        return cls(store_path=os.path.expanduser(path), scrypt_log_n=log_n)
