#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Run a standalone FTP server from the command line.

Example:
    python -m ftp_engine --port 2121 --root ./ftp_root --user alice:secret:rw
"""

from __future__ import annotations

import argparse
import logging
import os
from typing import Dict, List, Optional, Tuple

from .config import FTPConfig, UserInfo
from .server import FTPServer


def parse_user(value: str) -> Tuple[str, UserInfo]:
    """Parse ``NAME:PASSWORD[:PERM]``."""
    parts = value.split(":")
    if len(parts) not in (2, 3) or not parts[0]:
        raise argparse.ArgumentTypeError(f"expected NAME:PASSWORD[:PERM], got {value!r}")
    perm = parts[2] if len(parts) == 3 else "rw"
    if perm not in ("r", "rw"):
        raise argparse.ArgumentTypeError(f"permission must be 'r' or 'rw', got {perm!r}")
    return parts[0], UserInfo(password=parts[1], perm=perm)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ftp-engine", description="Minimal threaded FTP server")
    parser.add_argument("--host", default="0.0.0.0", help="Address to listen on")
    parser.add_argument("--port", type=int, default=2121, help="Control port")
    parser.add_argument("--root", default=os.path.abspath("./ftp_root"), help="Directory to serve")
    parser.add_argument("--user", dest="users", action="append", type=parse_user, default=None,
                        metavar="NAME:PASSWORD[:PERM]", help="Add a user (repeatable)")
    parser.add_argument("--data-timeout", type=float, default=30.0,
                        help="Seconds to wait for a data connection")
    parser.add_argument("--idle-timeout", type=float, default=None,
                        help="Close control connections idle for this many seconds")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )

    users: Optional[Dict[str, UserInfo]] = dict(args.users) if args.users else None
    config = FTPConfig(
        host=args.host,
        port=args.port,
        root=args.root,
        users=users,
        data_timeout=args.data_timeout,
        idle_timeout=args.idle_timeout,
    )
    server = FTPServer(config=config)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
