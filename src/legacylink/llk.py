#!/usr/bin/env python3
"""
LegacyLink vault (llk) - a single passphrase-protected file

The vault file is a JSON envelope; everything but the format tag is opaque:
    version    : 1                  envelope format
    salt       : base64, 16|32 B    PBKDF2-HMAC-SHA256 salt (600k iterations)
    iv         : base64, 12 B       AES-GCM nonce, fresh on every save
    ciphertext : base64             AES-256-GCM(payload) || 16-byte tag

Decrypted payload (format 2):
    {"format": 2, "current": <state>, "versions": [<state>, ...], "versionHistoryLimit": N}
Every save pushes the previous state onto "versions" (newest first) and keeps
at most N of them. Files from before snapshots existed hold a bare state;
those, and states of older versions, are migrated on read.

Commands:
  init PATH                 Create an empty vault
  ls PATH                   List entries
  add PATH TITLE            Add an entry (--field section.field=value)
  rm PATH ID                Remove an entry
  rename PATH ID TITLE      Rename an entry
  history PATH              Show the change log
  versions PATH             List stored snapshots
  restore PATH INDEX        Make a snapshot current again
  set-limit PATH N          Keep at most N snapshots (0 disables)
  categories PATH           List / --add NAME / --delete ID

A wrong passphrase and a damaged file produce the same error.
"""
from __future__ import annotations

import logging
import sys

from legacylink.ui.cli import build_parser
from legacylink.utils.errors import VaultError


def main():
    parser = build_parser()
    args = parser.parse_args()
    level = logging.WARNING - 10 * min(args.verbose, 2)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    try:
        args.func(args)
    except (VaultError, FileNotFoundError) as e:
        print(f"[!] {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
