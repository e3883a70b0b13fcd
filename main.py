#!/usr/bin/env python3
"""
Tokengate -- credential issuance and verification for REST APIs.

Usage:
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8080
  python main.py check-password 'Passw0rd!'
  python main.py check-password --rules
  python main.py create-user alice --email alice@example.com

Environment variables (see core/config.py for the full list):
  SECRET_KEY           Token signing key, at least 32 characters. Required unless DEBUG=true.
  DATABASE_URL         SQLAlchemy URL of the user database (default: SQLite file in the project root).
  RATE_LIMIT_PROFILE   authenticate (default), post, or off.
"""

import argparse
import getpass
import sys

from auth.errors import AuthError, InternalError, PolicyError
from auth.passwords import PasswordHasher
from auth.pipeline import AuthPipeline
from auth.policy import PasswordPolicy
from auth.store import UserStore
from auth.tokens import TokenService
from core.config import get_settings


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("api.main:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def _check_password(args: argparse.Namespace) -> int:
    """Evaluate a password against the policy without touching the database."""
    policy = PasswordPolicy()
    if args.rules:
        print("  Password rules:")
        for rule in policy.explain():
            print(f"      - {rule}")
        return 0
    password = args.password if args.password is not None else getpass.getpass("Password: ")
    result = policy.evaluate(password)
    if result.accepted:
        print("  Password meets the policy.")
        return 0
    print("  [!] Password rejected:")
    for violation in result.violations:
        print(f"      - {violation}")
    return 1


def _create_user(args: argparse.Namespace) -> int:
    """Register a user through the same pipeline the API uses."""
    settings = get_settings()
    password = getpass.getpass("Password: ")
    if getpass.getpass("Repeat password: ") != password:
        print("  [!] Passwords do not match.")
        return 1

    store = UserStore(settings.database_url)
    pipeline = AuthPipeline(
        users=store,
        hasher=PasswordHasher(
            time_cost=settings.argon2_time_cost,
            memory_cost=settings.argon2_memory_cost,
            parallelism=settings.argon2_parallelism,
        ),
        tokens=TokenService(settings.secret_key, ttl_seconds=settings.token_expire_seconds),
    )
    try:
        pipeline.register(args.username, password, email=args.email)
    except PolicyError as exc:
        print(f"  [!] {exc.message}:")
        for violation in exc.violations:
            print(f"      - {violation}")
        return 1
    except InternalError as exc:
        print(f"  [!] {exc.message}: {exc.detail}")
        return 2
    except AuthError as exc:
        print(f"  [!] {exc.message}")
        return 1
    finally:
        store.close()
    print(f"  User '{args.username}' created.")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="tokengate",
        description="Username/password registration and login issuing signed bearer tokens.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py serve --reload
  python main.py check-password 'Passw0rd!'
  SECRET_KEY=... python main.py create-user alice
        """,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    serve = sub.add_parser("serve", help="Run the API with uvicorn")
    serve.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve.add_argument("--port", type=int, default=8080, help="Port (default: 8080)")
    serve.add_argument("--reload", action="store_true", help="Restart on code changes (development only)")
    serve.set_defaults(handler=_serve)

    check = sub.add_parser("check-password", help="Evaluate a password against the strength policy")
    check.add_argument("password", nargs="?", help="Password to check (prompted for if omitted)")
    check.add_argument("--rules", action="store_true", help="List the policy rules and exit")
    check.set_defaults(handler=_check_password)

    create = sub.add_parser("create-user", help="Register a user directly in the database")
    create.add_argument("username", help="Username for the new account")
    create.add_argument("--email", default=None, help="Optional email address (stored, not validated)")
    create.set_defaults(handler=_create_user)

    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 0
    return args.handler(args)


if __name__ == "__main__":
    sys.exit(main())
