"""
FlatPWM - Password Manager over One Encrypted Flat File

Every entry is one line of the decrypted store:

    name|username|password[|fieldName:fieldValue]*

The whole store is decrypted to memory for each command and re-encrypted
after a change. Nothing is ever written in plaintext.

Components:
- record.py: One entry <-> one line
- store.py: All entries <-> the store body
- crypto.py: scrypt + AES-256-GCM over the whole body, password generator
- vault.py: Load, query, upsert, persist
- cli.py: Command-line interface (argparse)

Usage:
    flatpwm new                          # Add an entry
    flatpwm get "Entry 1"                # Show it
    flatpwm add-field "Entry 1"          # Attach pin/notes/etc.
    flatpwm search '@test\\.com'          # Regex over whole lines
    flatpwm delete "Entry 1"             # Remove it
"""

__version__ = "0.1.0"
