#!/usr/bin/env python3
"""Mint a development JWT for calling the Maintainboard API.

Tokens carry ``sub`` (the user id) and ``permissions``, the same claims the
identity service puts in production tokens. Signed with SECRET_KEY from the
environment or .env.

Usage:
    python -m scripts.issue_token --user tech-42 --role technician
    python -m scripts.issue_token --user ops-1 --permission view_assets --permission view_metrics
"""

import argparse
import sys

from maintainboard.auth.capabilities import DEFAULT_ROLES
from maintainboard.config import get_config
from maintainboard.utils.security import create_user_token


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Issue a development access token")
    parser.add_argument("--user", required=True, help="User id placed in the 'sub' claim")
    parser.add_argument("--role", choices=sorted(DEFAULT_ROLES), help="Grant a default role's capabilities")
    parser.add_argument("--permission", action="append", default=[], help="Extra capability (repeatable)")
    parser.add_argument("--expires", type=int, default=60, help="Lifetime in minutes (default: 60)")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    permissions = set(args.permission)
    if args.role:
        permissions.update(DEFAULT_ROLES[args.role]["permissions"])
    if not permissions:
        print("error: grant at least one capability with --role or --permission", file=sys.stderr)
        return 1

    config = get_config()
    token = create_user_token(
        args.user,
        permissions,
        config.secret_key,
        config.jwt_algorithm,
        expires_minutes=args.expires,
        role=args.role,
    )
    print(token)
    return 0


if __name__ == "__main__":
    sys.exit(main())
