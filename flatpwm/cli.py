"""
FlatPWM - Command-Line Interface

Commands:
    flatpwm get <name> [--copy]      Show an entry (or copy its password)
    flatpwm search <pattern>         Show entries whose line matches a regex
    flatpwm list                     List entry names
    flatpwm new                      Add an entry (prompts)
    flatpwm update <name>            Change username/password (prompts)
    flatpwm delete <name> [-y]       Remove an entry
    flatpwm add-field <name>         Attach an extra field (prompts)
    flatpwm remove-field <name> <f>  Remove an extra field
    flatpwm generate                 Print a random password

The passphrase is always read interactively (masked), or from the first line
of stdin when stdin isn't a terminal. It is never accepted as an argument.
"""

import argparse
import getpass
import logging
import sys
from typing import List, Optional

import pyperclip

from . import __version__, crypto
from .config import DEFAULT_PASSWORD_LENGTH, Config
from .errors import AbortedByUser, ValidationError, VaultError
from .record import Record, render
from .vault import Vault


logger = logging.getLogger(__name__)


# =============================================================================
# Prompts
# =============================================================================

def interactive() -> bool:
    return sys.stdin.isatty()


def prompt(text: str, secret: bool = False) -> str:
    """
    Read one answer.

    On a terminal this shows `text` (masked input if secret). Otherwise the
    next stdin line is used and an exhausted stdin reads as a blank answer.
    """
    if interactive():
        return getpass.getpass(text) if secret else input(text)
    line = sys.stdin.readline()
    return line.rstrip("\r\n")


def ask_passphrase(confirm: bool = False) -> str:
    passphrase = prompt("Passphrase: ", secret=True)
    if not passphrase:
        raise ValidationError("Passphrase must not be empty")
    if confirm and interactive():
        again = prompt("Confirm passphrase: ", secret=True)
        if again != passphrase:
            raise ValidationError("Passphrases don't match")
    return passphrase


def open_vault(config: Config, create: bool = False) -> Vault:
    vault = Vault(config)
    vault.unlock(ask_passphrase(confirm=create and not vault.exists()), create=create)
    return vault


def print_records(records: List[Record]) -> None:
    print("\n\n".join(render(r) for r in records))


# =============================================================================
# Commands
# =============================================================================

def cmd_get(args: argparse.Namespace, config: Config) -> None:
    vault = open_vault(config)
    records = vault.get(args.name)
    if args.copy:
        record = records[0]
        try:
            pyperclip.copy(record.password)
        except pyperclip.PyperclipException as e:
            raise VaultError(f"Clipboard unavailable: {e}")
        print(f"Copied password for '{record.name}' to clipboard.")
    else:
        print_records(records)
    vault.lock()


def cmd_search(args: argparse.Namespace, config: Config) -> None:
    vault = open_vault(config)
    records = vault.search(args.pattern)
    if records:
        print_records(records)
    else:
        print("No matches found.")
    vault.lock()


def cmd_list(args: argparse.Namespace, config: Config) -> None:
    vault = open_vault(config)
    names = vault.list_names()
    if names:
        print("\n".join(names))
    else:
        print("No entries.")
    vault.lock()


def cmd_new(args: argparse.Namespace, config: Config) -> None:
    vault = open_vault(config, create=True)

    name = prompt("Name: ").strip()
    username = prompt("Username: ").strip()
    password = prompt("Password (blank to generate): ", secret=True)
    if not password:
        password = crypto.generate_password(DEFAULT_PASSWORD_LENGTH)
        print(f"Generated password: {password}")

    extra_fields = []
    while True:
        field_name = prompt("Extra field name (blank to finish): ").strip()
        if not field_name:
            break
        extra_fields.append((field_name, prompt(f"{field_name}: ")))

    vault.new(name, username, password, extra_fields)
    vault.lock()
    print("Done")


def cmd_update(args: argparse.Namespace, config: Config) -> None:
    vault = open_vault(config)
    existing = vault.find(args.name)

    username = prompt(f"Username [{existing.username}]: ").strip()
    password = prompt("Password [unchanged]: ", secret=True)

    vault.update(existing.name, username, password)
    vault.lock()
    print("Done")


def cmd_delete(args: argparse.Namespace, config: Config) -> None:
    vault = open_vault(config)

    def confirm(record: Record) -> bool:
        if args.yes:
            return True
        answer = prompt(f"Delete entry '{record.name}'? [y/N]: ").strip().lower()
        return answer in ('y', 'yes')

    vault.delete(args.name, confirm=confirm)
    vault.lock()
    print("Done")


def cmd_add_field(args: argparse.Namespace, config: Config) -> None:
    vault = open_vault(config)
    existing = vault.find(args.name)

    field_name = prompt("Field name: ").strip()
    field_value = prompt("Field value: ")

    vault.add_field(existing.name, field_name, field_value)
    vault.lock()
    print("Done")


def cmd_remove_field(args: argparse.Namespace, config: Config) -> None:
    vault = open_vault(config)
    vault.remove_field(args.name, args.field)
    vault.lock()
    print("Done")


def cmd_generate(args: argparse.Namespace, config: Config) -> None:
    print(crypto.generate_password(args.length, use_symbols=not args.no_symbols))


# =============================================================================
# Parser
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="flatpwm", description="Password manager over one encrypted flat file")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("--store", help="Store file (default: $FLATPWM_STORE or ~/.flatpwm/store.enc)")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging on stderr")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_get = sub.add_parser("get", help="Show an entry")
    p_get.add_argument("name", help="Entry name (case-insensitive)")
    p_get.add_argument("--copy", action="store_true", help="Copy the password to the clipboard instead of printing")
    p_get.set_defaults(func=cmd_get)

    p_search = sub.add_parser("search", help="Show entries matching a pattern")
    p_search.add_argument("pattern", help="Regular expression (case-insensitive)")
    p_search.set_defaults(func=cmd_search)

    p_list = sub.add_parser("list", help="List entry names")
    p_list.set_defaults(func=cmd_list)

    p_new = sub.add_parser("new", help="Add an entry")
    p_new.set_defaults(func=cmd_new)

    p_update = sub.add_parser("update", help="Change username/password of an entry")
    p_update.add_argument("name", help="Entry name")
    p_update.set_defaults(func=cmd_update)

    p_delete = sub.add_parser("delete", help="Remove an entry")
    p_delete.add_argument("name", help="Entry name")
    p_delete.add_argument("-y", "--yes", action="store_true", help="Don't ask for confirmation")
    p_delete.set_defaults(func=cmd_delete)

    p_add_field = sub.add_parser("add-field", help="Attach an extra field to an entry")
    p_add_field.add_argument("name", help="Entry name")
    p_add_field.set_defaults(func=cmd_add_field)

    p_remove_field = sub.add_parser("remove-field", help="Remove an extra field from an entry")
    p_remove_field.add_argument("name", help="Entry name")
    p_remove_field.add_argument("field", help="Field name")
    p_remove_field.set_defaults(func=cmd_remove_field)

    p_gen = sub.add_parser("generate", help="Print a random password")
    p_gen.add_argument("-l", "--length", type=int, default=DEFAULT_PASSWORD_LENGTH, help="Password length")
    p_gen.add_argument("--no-symbols", action="store_true", help="Letters and digits only")
    p_gen.set_defaults(func=cmd_generate)

    return p


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        config = Config.from_env(store_path=args.store)
        args.func(args, config)
    except VaultError as e:
        logger.debug("%s failed: %s", args.cmd, type(e).__name__)
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except (KeyboardInterrupt, EOFError):
        print(f"\nError: {AbortedByUser('Aborted')}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
