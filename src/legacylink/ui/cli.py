import argparse

from legacylink.crypto.kdf import SALT_LENGTH, SALT_LENGTHS
from legacylink.utils.core import cmd_add, cmd_init, cmd_ls
from legacylink.utils.dataModels import DEFAULT_VERSION_HISTORY_LIMIT
from legacylink.utils.maintain import (
    cmd_categories,
    cmd_history,
    cmd_rename,
    cmd_restore,
    cmd_rm,
    cmd_set_limit,
    cmd_versions,
)


def _vault_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("repo", help="Vault file, or directory holding vault.llk")
    p.add_argument("--passphrase", help="Vault passphrase (default: $LLK_PASSPHRASE)")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="LegacyLink encrypted vault")
    p.add_argument("-v", "--verbose", action="count", default=0, help="More logging (-vv for debug)")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_init = sub.add_parser("init", help="Create an empty vault")
    _vault_args(p_init)
    p_init.add_argument("--salt-length", type=int, choices=SALT_LENGTHS, default=SALT_LENGTH,
                        help="KDF salt length in bytes")
    p_init.add_argument("--limit", type=int, default=DEFAULT_VERSION_HISTORY_LIMIT,
                        help="Number of snapshots to keep (0-100)")
    p_init.add_argument("--force", action="store_true", help="Overwrite an existing vault")
    p_init.set_defaults(func=cmd_init)

    p_ls = sub.add_parser("ls", help="List entries")
    _vault_args(p_ls)
    p_ls.set_defaults(func=cmd_ls)

    p_add = sub.add_parser("add", help="Add an entry")
    _vault_args(p_add)
    p_add.add_argument("title", help="Entry title")
    p_add.add_argument("--template", default="legacy-system", help="Template id")
    p_add.add_argument("--category", help="Category id")
    p_add.add_argument("--field", action="append", help="section.field=value (repeatable)")
    p_add.set_defaults(func=cmd_add)

    p_rm = sub.add_parser("rm", help="Remove an entry by id")
    _vault_args(p_rm)
    p_rm.add_argument("id", help="Entry id (UUID)")
    p_rm.set_defaults(func=cmd_rm)

    p_ren = sub.add_parser("rename", help="Rename an entry")
    _vault_args(p_ren)
    p_ren.add_argument("id", help="Entry id (UUID)")
    p_ren.add_argument("title", help="New title")
    p_ren.set_defaults(func=cmd_rename)

    p_hist = sub.add_parser("history", help="Show the change log (newest first)")
    _vault_args(p_hist)
    p_hist.add_argument("-n", "--limit", type=int, default=0, help="Show at most N entries")
    p_hist.set_defaults(func=cmd_history)

    p_ver = sub.add_parser("versions", help="List stored snapshots")
    _vault_args(p_ver)
    p_ver.set_defaults(func=cmd_versions)

    p_res = sub.add_parser("restore", help="Make a snapshot current again")
    _vault_args(p_res)
    p_res.add_argument("index", type=int, help="Snapshot index (0 = newest)")
    p_res.set_defaults(func=cmd_restore)

    p_lim = sub.add_parser("set-limit", help="Change how many snapshots are kept")
    _vault_args(p_lim)
    p_lim.add_argument("limit", type=int, help="0-100; 0 disables snapshots")
    p_lim.set_defaults(func=cmd_set_limit)

    p_cat = sub.add_parser("categories", help="List, add or delete categories")
    _vault_args(p_cat)
    p_cat.add_argument("--add", metavar="NAME", help="Add a category")
    p_cat.add_argument("--delete", metavar="ID", help="Delete an unused category")
    p_cat.set_defaults(func=cmd_categories)

    return p
