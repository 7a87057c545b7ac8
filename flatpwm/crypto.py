"""
FlatPWM - Cryptography Module

All cryptographic operations for the password store live here. The rest of
the package only sees two calls:

    armored = encrypt_store(plaintext, passphrase)
    plaintext = decrypt_store(armored, passphrase)

Security Architecture:
    1. Passphrase + random salt → scrypt → Store Key (32 bytes)
    2. Store Key → AES-256-GCM over the whole store body
    3. salt || log_n || nonce || ciphertext → base64 → ASCII armor

The scrypt cost travels inside the ciphertext and is authenticated as
associated data, so a store written with one cost still opens after the
default changes.

The passphrase is never logged, cached or written anywhere by this module.
"""

import base64
import binascii
import json
import os
import secrets
import string

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from .config import DEFAULT_PASSWORD_LENGTH, DEFAULT_SCRYPT_LOG_N, MAX_SCRYPT_LOG_N, MIN_SCRYPT_LOG_N
from .errors import DecryptFailure, ValidationError


# =============================================================================
# Configuration
# =============================================================================

STORE_KEY_SIZE = 32      # 256-bit key
SALT_SIZE = 16
NONCE_SIZE = 12          # 96-bit nonce for AES-GCM
TAG_SIZE = 16            # 128-bit authentication tag

SCRYPT_R = 8
SCRYPT_P = 1

HEADER_SIZE = SALT_SIZE + 1 + NONCE_SIZE

ARMOR_BEGIN = "-----BEGIN FLATPWM STORE-----"
ARMOR_END = "-----END FLATPWM STORE-----"
ARMOR_WIDTH = 64

# Never includes the record field separator
SYMBOLS = "!@#$%^&*()_+-="


# =============================================================================
# Key Derivation
# =============================================================================

def derive_store_key(passphrase: str, salt: bytes, log_n: int = DEFAULT_SCRYPT_LOG_N) -> bytes:
    """
    Derive the store key from the passphrase using scrypt.

    Args:
        passphrase: User's secret
        salt: 16-byte random salt (stored with the ciphertext, NOT secret)
        log_n: scrypt CPU/memory cost exponent, N = 2**log_n

    Returns:
        32-byte store key
    """
    kdf = Scrypt(
        salt=salt,
        length=STORE_KEY_SIZE,
        n=2 ** log_n,
        r=SCRYPT_R,
        p=SCRYPT_P,
    )
    return kdf.derive(passphrase.encode('utf-8'))


# =============================================================================
# Canonical Associated Data
# =============================================================================

def canonical_ad(ad: dict) -> bytes:
    """
    Convert associated data to canonical JSON bytes.

    Keys sorted, no whitespace, UTF-8, so the same dict always
    produces the same bytes.
    """
    json_str = json.dumps(ad, separators=(",", ":"), sort_keys=True, ensure_ascii=False)
    return json_str.encode('utf-8')


def store_ad(log_n: int) -> dict:
    return {
        "ctx": "flatpwm_store",
        "aead": "aes256gcm",
        "kdf": "scrypt",
        "log_n": log_n,
    }


# =============================================================================
# Armor
# =============================================================================

def armor(blob: bytes) -> str:
    encoded = base64.b64encode(blob).decode('ascii')
    lines = [ARMOR_BEGIN]
    lines.extend(encoded[i:i + ARMOR_WIDTH] for i in range(0, len(encoded), ARMOR_WIDTH))
    lines.append(ARMOR_END)
    return "\n".join(lines) + "\n"


def dearmor(text: str) -> bytes:
    """
    Strip the armor and decode the base64 body.

    Raises:
        DecryptFailure: If the armor lines are missing or the body isn't base64
    """
    lines = [line.strip() for line in text.strip().splitlines()]
    if len(lines) < 2 or lines[0] != ARMOR_BEGIN or lines[-1] != ARMOR_END:
        raise DecryptFailure("Store file is not a FlatPWM store (missing armor)")
    try:
        return base64.b64decode("".join(lines[1:-1]), validate=True)
    except binascii.Error:
        raise DecryptFailure("Store file is corrupt (bad base64)")


# =============================================================================
# Store Encryption (AES-256-GCM)
# =============================================================================

def encrypt_store(plaintext: str, passphrase: str, log_n: int = DEFAULT_SCRYPT_LOG_N) -> str:
    """
    Encrypt the whole store body.

    A fresh salt and nonce are drawn on every call, so two encryptions of
    the same body differ; both decrypt to the same plaintext.

    Args:
        plaintext: Serialized store body
        passphrase: User's secret
        log_n: scrypt cost exponent recorded in the output

    Returns:
        ASCII-armored ciphertext
    """
    if not MIN_SCRYPT_LOG_N <= log_n <= MAX_SCRYPT_LOG_N:
        raise ValidationError(f"scrypt cost must be between {MIN_SCRYPT_LOG_N} and {MAX_SCRYPT_LOG_N}")

    salt = os.urandom(SALT_SIZE)
    nonce = os.urandom(NONCE_SIZE)
    key = derive_store_key(passphrase, salt, log_n)

    aesgcm = AESGCM(key)
    ciphertext = aesgcm.encrypt(nonce, plaintext.encode('utf-8'), canonical_ad(store_ad(log_n)))

    return armor(salt + bytes([log_n]) + nonce + ciphertext)


def decrypt_store(armored: str, passphrase: str) -> str:
    """
    Decrypt an armored store.

    Args:
        armored: Contents of the store file
        passphrase: User's secret

    Returns:
        Store body (plaintext)

    Raises:
        DecryptFailure: Wrong passphrase, or corrupt/truncated ciphertext
    """
    blob = dearmor(armored)
    if len(blob) < HEADER_SIZE + TAG_SIZE:
        raise DecryptFailure("Store file is corrupt (truncated)")

    salt = blob[:SALT_SIZE]
    log_n = blob[SALT_SIZE]
    nonce = blob[SALT_SIZE + 1:HEADER_SIZE]
    ciphertext = blob[HEADER_SIZE:]

    if not MIN_SCRYPT_LOG_N <= log_n <= MAX_SCRYPT_LOG_N:
        raise DecryptFailure("Store file is corrupt (bad key derivation parameters)")

    key = derive_store_key(passphrase, salt, log_n)
    aesgcm = AESGCM(key)
    try:
        plaintext = aesgcm.decrypt(nonce, ciphertext, canonical_ad(store_ad(log_n)))
    except InvalidTag:
        raise DecryptFailure("Wrong passphrase or corrupt store")

    try:
        return plaintext.decode('utf-8')
    except UnicodeDecodeError:
        raise DecryptFailure("Store file is corrupt (not UTF-8)")


# =============================================================================
# Password Generation
# =============================================================================

def generate_password(length: int = DEFAULT_PASSWORD_LENGTH, use_symbols: bool = True) -> str:
    """
    Generate a strong random password.

    Character sets:
    - Uppercase: A-Z (26)
    - Lowercase: a-z (26)
    - Digits: 0-9 (10)
    - Symbols: !@#$%^&*()_+-= (optional, 14)

    Args:
        length: Password length (default 20)
        use_symbols: Include symbols?

    Returns:
        Random password string
    """
    if length < 1:
        raise ValidationError("Password length must be at least 1")

    chars = string.ascii_letters + string.digits
    if use_symbols:
        chars += SYMBOLS

    return ''.join(secrets.choice(chars) for _ in range(length))
