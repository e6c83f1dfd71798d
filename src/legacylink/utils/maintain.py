import argparse
import sys

from pathlib import Path

from legacylink.storage.vault import FileVaultStorage
from legacylink.utils.helper import resolve_passphrase, vault_path
from legacylink.utils.session import VaultSession


def open_session(args: argparse.Namespace) -> VaultSession:
    session = VaultSession(FileVaultStorage(vault_path(Path(args.repo))))
    session.unlock(resolve_passphrase(args.passphrase))
    return session


def cmd_rm(args: argparse.Namespace) -> None:
    session = open_session(args)
    if not session.delete_entry(args.id):
        print(f"[!] No such id: {args.id}")
        sys.exit(1)
    print(f"[+] Removed id={args.id}")


def cmd_rename(args: argparse.Namespace) -> None:
    session = open_session(args)
    try:
        entry = session.update_entry(args.id, title=args.title)
    except ValueError as e:
        print(f"[!] {e}")
        sys.exit(1)
    print(f"[+] Renamed id={entry.id} -> {entry.title}")


def cmd_history(args: argparse.Namespace) -> None:
    session = open_session(args)
    history = session.state.history[: args.limit] if args.limit else session.state.history
    if not history:
        print("(empty)")
        return
    for h in history:
        detail = h.entry_title or h.summary or ""
        print(f"{h.at}\t{h.action.value}\t{detail}")


def cmd_versions(args: argparse.Namespace) -> None:
    session = open_session(args)
    versions = session.versions()
    print(f"Keeping up to {session.payload.version_history_limit} snapshots, {len(versions)} stored")
    for i, v in enumerate(versions):
        last = v.history[0].at if v.history else "-"
        print(f"{i}\t{len(v.entries)} entries\tlast change {last}")


def cmd_restore(args: argparse.Namespace) -> None:
    session = open_session(args)
    try:
        session.restore_version(args.index)
    except IndexError as e:
        print(f"[!] {e}")
        sys.exit(1)
    print(f"[+] Restored snapshot {args.index}")


def cmd_set_limit(args: argparse.Namespace) -> None:
    session = open_session(args)
    try:
        session.set_version_history_limit(args.limit)
    except ValueError as e:
        print(f"[!] {e}")
        sys.exit(1)
    print(f"[+] Snapshot limit set to {args.limit}")


def cmd_categories(args: argparse.Namespace) -> None:
    session = open_session(args)
    if args.add:
        category = session.add_category(args.add)
        print(f"[+] Added category {category.name} as id={category.id}")
        return
    if args.delete:
        try:
            deleted = session.delete_category(args.delete)
        except ValueError as e:
            print(f"[!] {e}")
            sys.exit(1)
        if not deleted:
            print(f"[!] Category {args.delete} is still used by entries")
            sys.exit(1)
        print(f"[+] Removed category id={args.delete}")
        return
    categories = session.state.categories
    if not categories:
        print("(empty)")
        return
    for c in categories:
        count = sum(1 for e in session.state.entries if e.category_id == c.id)
        print(f"{c.id}\t{c.name}\t{count} entries")
