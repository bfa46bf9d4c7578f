from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import List, Optional

from .errors import ReposignError
from .keys import passphrase_from_env
from .logging_cfg import setup_logging
from .sign import sign_packages, sign_repository

log = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="reposign",
        description="Sign package repositories and package archives with an RSA key.",
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    parser.add_argument("--log-dir", type=Path, default=None)
    sub = parser.add_subparsers(dest="command", required=True)

    repo = sub.add_parser("sign-repo", help="Initialize a signed repository.")
    repo.add_argument("repodir", type=Path)
    repo.add_argument("--signedby", default=None, help="Signer identity.")
    repo.add_argument("--privkey", type=Path, default=None)
    repo.add_argument(
        "--compression",
        default=None,
        help="Repodata compression (none, gzip, bzip2, xz).",
    )
    repo.add_argument("--arch", default=None)

    pkg = sub.add_parser("sign-pkg", help="Write <pkg>.sig for each package.")
    pkg.add_argument("binpkgs", type=Path, nargs="+")
    pkg.add_argument("--privkey", type=Path, default=None)
    pkg.add_argument(
        "-f", "--force", action="store_true", help="Overwrite existing signatures."
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        setup_logging(verbose=args.verbose, log_dir=args.log_dir)
        passphrase = passphrase_from_env()
        if args.command == "sign-repo":
            sign_repository(
                args.repodir,
                args.privkey,
                args.signedby,
                args.compression,
                arch=args.arch,
                passphrase=passphrase,
            )
        else:
            sign_packages(args.binpkgs, args.privkey, args.force, passphrase=passphrase)
    except ReposignError as exc:
        log.error("%s", exc)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
