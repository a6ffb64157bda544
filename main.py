#!/usr/bin/env python3
"""
VideoTube -- user accounts, sessions and channel profiles.

Usage:
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8000 --reload
  python main.py create-user --username alice --email alice@example.com \\
      --fullname "Alice Doe" --avatar-url https://res.cloudinary.com/demo/alice.png

create-user writes a user record straight into the database, bypassing the
media upload that /register performs. Use it to bootstrap an account on a
fresh install or when the media host is not configured. The password is read
from --password or prompted for.

Environment variables:
  ACCESS_TOKEN_SECRET / REFRESH_TOKEN_SECRET   Required unless DEBUG=true.
  DATABASE_URL                                  SQLAlchemy URL (default sqlite:///videotube.db).
"""

import argparse
import getpass
import sys
from typing import Optional

from sqlalchemy.exc import IntegrityError

from auth.models import User
from auth.passwords import MAX_PASSWORD_BYTES, hash_password
from auth.store import UserStore
from core.config import get_settings


def _create_user(args: argparse.Namespace) -> int:
    settings = get_settings()
    password = args.password or getpass.getpass("Password: ")
    if not password:
        print("  [!] Password must not be empty.")
        return 1
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        print(f"  [!] Password must be at most {MAX_PASSWORD_BYTES} bytes.")
        return 1
    fields = (args.username, args.email, args.fullname, args.avatar_url)
    if any(not f or not f.strip() for f in fields):
        print("  [!] username, email, fullname and avatar-url are all required.")
        return 1

    store = UserStore(args.db_url or settings.database_url)
    try:
        user_id = store.create_user(
            User(
                username=args.username,
                email=args.email,
                fullname=args.fullname,
                password_hash=hash_password(password, rounds=settings.bcrypt_rounds),
                avatar=args.avatar_url,
                cover_image=args.cover_url,
            )
        )
    except IntegrityError:
        print(f"  [!] A user with username '{args.username}' or email '{args.email}' already exists.")
        return 1
    finally:
        store.close()
    print(f"  Created user '{args.username.strip().lower()}' (id={user_id}).")
    return 0


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("asgi:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="VideoTube user service",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    sub = parser.add_subparsers(dest="command")

    serve = sub.add_parser("serve", help="Run the API server")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.add_argument("--reload", action="store_true")
    serve.set_defaults(func=_serve)

    create = sub.add_parser("create-user", help="Insert a user record directly")
    create.add_argument("--username", required=True)
    create.add_argument("--email", required=True)
    create.add_argument("--fullname", required=True)
    create.add_argument("--avatar-url", required=True)
    create.add_argument("--cover-url", default=None)
    create.add_argument("--password", default=None, help="Prompted for when omitted")
    create.add_argument("--db-url", default=None, help="Overrides DATABASE_URL")
    create.set_defaults(func=_create_user)
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "func", None):
        parser.print_help()
        return 0
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
