"""
Command line entry point for the Vaultify credential vault engine.
"""

import sys
import argparse
import getpass
import logging
from typing import List, Optional

from . import config
from . import strength
from .activity import ActivityLog
from .analyzer import SecurityAnalyzer, rating
from .crypto import CryptoManager
from .exceptions import VaultError
from .generator import generate_password
from .kvstore import JsonFileStore
from .notes import NotesStore
from .session import SessionGate
from .storage import CredentialStore

logger = logging.getLogger(__name__)

RATING_MESSAGES = {
    "excellent": "Excellent security score! Your passwords are well-protected.",
    "good": "Good security score, but there's room for improvement.",
    "needs_attention": "Your password security needs attention. Please review the findings below.",
}


class VaultifyApp:
    """Wires the engine components together for one command line run."""

    def __init__(self, data_dir: Optional[str] = None):
        self.kv = JsonFileStore(data_dir)
        self.session = SessionGate(self.kv)
        self.crypto = CryptoManager()
        self.activity = ActivityLog(self.kv)
        self.store = CredentialStore(self.session, self.kv, self.crypto, activity=self.activity)
        self.analyzer = SecurityAnalyzer(self.session, self.store, kv=self.kv, activity=self.activity)
        self.notes = NotesStore(self.session, self.kv, self.crypto)

    def unlock(self, identity: str, master_password: str) -> bool:
        self.session.login(identity)
        if not self.session.unlock(master_password):
            print("Incorrect master password. Please try again.", file=sys.stderr)
            return False
        return True

    def check(self, identity: str, master_password: str) -> int:
        """Unlock ``identity``'s vault and print a security report."""
        if not self.unlock(identity, master_password):
            return 1

        report = self.analyzer.run_check()
        credentials = {c.id: c for c in self.store.list()}
        print(f"Overall score: {report.overall_score}/100")
        print(RATING_MESSAGES[rating(report.overall_score)])
        for title, ids in (("Weak", report.weak_ids), ("Reused", report.reused_ids), ("Stale", report.stale_ids)):
            names = ", ".join(credentials[i].name for i in ids) or "none"
            print(f"{title}: {names}")
        for record in self.store.quarantined:
            print(f"Quarantined record {record.credential_id}: {record.reason}", file=sys.stderr)
        return 0

    def list_notes(self, identity: str, master_password: str) -> int:
        """Unlock ``identity``'s vault and print the note titles."""
        if not self.unlock(identity, master_password):
            return 1
        notes = self.notes.list()
        if not notes:
            print("No notes")
        for note in notes:
            print(f"{note.id}  {note.title}")
        return 0

    def cleanup(self):
        """Lock the vault so nothing stays decrypted."""
        self.session.lock()
        self.store.close()
        self.notes.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="vaultify", description=f"{config.APP_NAME} v{config.APP_VERSION}")
    parser.add_argument("--data-dir", default=None, help="directory holding the vault files")
    parser.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")
    commands = parser.add_subparsers(dest="command", required=True)

    score_cmd = commands.add_parser("score", help="rate a password")
    score_cmd.add_argument("secret", nargs="?", help="password to rate (prompted when omitted)")

    gen_cmd = commands.add_parser("generate", help="generate a random password")
    gen_cmd.add_argument("-n", "--length", type=int, default=config.PASSWORD_GENERATOR_DEFAULT_LENGTH)
    gen_cmd.add_argument("--no-uppercase", dest="uppercase", action="store_false")
    gen_cmd.add_argument("--no-lowercase", dest="lowercase", action="store_false")
    gen_cmd.add_argument("--no-digits", dest="digits", action="store_false")
    gen_cmd.add_argument("--no-symbols", dest="symbols", action="store_false")
    gen_cmd.add_argument("--exclude-ambiguous", action="store_true")

    check_cmd = commands.add_parser("check", help="run a security check over a vault")
    check_cmd.add_argument("identity", help="vault owner")

    notes_cmd = commands.add_parser("notes", help="list the titles of encrypted notes")
    notes_cmd.add_argument("identity", help="vault owner")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s - %(levelname)s - %(name)s - %(message)s'
    )

    if args.command == "score":
        secret = args.secret if args.secret is not None else getpass.getpass("Password: ")
        value = strength.score(secret)
        print(f"{value}/100 ({strength.label(value)})")
        for hint in strength.suggestions(secret):
            print(f"- {hint}")
        try:
            policy = strength.PasswordPolicy.load(JsonFileStore(args.data_dir))
        except ValueError as e:
            logger.warning(f"Ignoring stored password policy: {e}")
            policy = strength.PasswordPolicy()
        for problem in strength.policy_violations(secret, policy):
            print(f"! {problem}")
        return 0

    if args.command == "generate":
        try:
            print(generate_password(
                length=args.length,
                uppercase=args.uppercase,
                lowercase=args.lowercase,
                digits=args.digits,
                symbols=args.symbols,
                exclude_ambiguous=args.exclude_ambiguous,
            ))
        except ValueError as e:
            print(str(e), file=sys.stderr)
            return 2
        return 0

    app = VaultifyApp(args.data_dir)
    try:
        master_password = getpass.getpass("Master password: ")
        if args.command == "notes":
            return app.list_notes(args.identity, master_password)
        return app.check(args.identity, master_password)
    except VaultError as e:
        logger.error(f"{args.command} failed: {e}")
        print(str(e), file=sys.stderr)
        return 1
    finally:
        app.cleanup()


if __name__ == "__main__":
    sys.exit(main())
