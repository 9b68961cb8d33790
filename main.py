#!/usr/bin/env python3
"""
Account service -- accounts, roles and OAuth2-style token issuance.

Usage:
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8080 --reload
  python main.py create-admin --name Admin --email admin@example.com --password s3cret12 \\
                              --client-id console --client-secret console-secret
  python main.py hash-password s3cret12
  python main.py encrypt-secret console-secret

Environment variables (see core/config.py for the full list):
  SECRET_KEY    JWT signing key, at least 32 characters. Required unless DEBUG=true.
  AES_SECRET    Client-secret encryption key, at least 32 characters. Required unless DEBUG=true.
  DATABASE_URL  SQLAlchemy URL (default: sqlite:///accountsvc.db).
  CACHE_URL     redis://host:port/db, sqlite:///path or memory:// (default: redis://localhost:6379/0).
"""

import argparse
import sys

from core.config import get_settings


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("api.main:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def _hash_password(args: argparse.Namespace) -> int:
    from auth.tokens import hash_password

    print(hash_password(args.plain))
    return 0


def _encrypt_secret(args: argparse.Namespace) -> int:
    from auth.cipher import get_cipher

    print(get_cipher().encrypt(args.plain))
    return 0


def _create_admin(args: argparse.Namespace) -> int:
    """Create the first admin: an account, an admin-scope role and the link between them.

    Every management route requires an admin token, so this is the only way
    to bootstrap an empty database.
    """
    from auth.cipher import get_cipher
    from cache.store import create_cache
    from core.errors import ServiceError
    from core.models import CreateAccountRole, CreateRole, Register
    from db.tables import init_engine
    from repository import build_repositories
    from services import build_services

    settings = get_settings()
    engine = init_engine(settings.database_url)
    cache = create_cache(settings.cache_url)
    try:
        services = build_services(build_repositories(engine, cache, settings), get_cipher(), settings)
        account = services.account.create(Register(args.name, args.email, args.password, args.password))
        role = services.role.create(
            CreateRole(scope=settings.admin_scope, cid=args.client_id, sec=args.client_secret),
            actor_id=account.id,
        )
        services.account_role.create(CreateAccountRole(account_id=account.id, role_id=role.id), actor_id=account.id)
    except ServiceError as exc:
        print(f"  [!] {exc.error.translation} ({exc.code}): {exc.cause}", file=sys.stderr)
        return 1
    finally:
        cache.close()
        engine.dispose()

    print(f"Admin account {account.email} (id {account.id}) linked to role {role.cid} (scope {role.scope}).")
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="accountsvc",
        description="Account, role and token service.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  DEBUG=true CACHE_URL=memory:// python main.py serve --reload
  python main.py create-admin --name Admin --email admin@example.com --password s3cret12 \\
                              --client-id console --client-secret console-secret
  python main.py encrypt-secret console-secret
        """,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    serve = sub.add_parser("serve", help="Run the HTTP API with uvicorn")
    serve.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000)")
    serve.add_argument("--reload", action="store_true", help="Reload on code changes (development only)")
    serve.set_defaults(func=_serve)

    admin = sub.add_parser("create-admin", help="Bootstrap an admin account, role and link")
    admin.add_argument("--name", required=True)
    admin.add_argument("--email", required=True)
    admin.add_argument("--password", required=True, help="5 to 8 characters")
    admin.add_argument("--client-id", required=True, help="Client id of the admin role")
    admin.add_argument("--client-secret", required=True, help="Client secret of the admin role (stored encrypted)")
    admin.set_defaults(func=_create_admin)

    hash_pw = sub.add_parser("hash-password", help="Print the bcrypt hash of a password")
    hash_pw.add_argument("plain", metavar="PASSWORD")
    hash_pw.set_defaults(func=_hash_password)

    enc = sub.add_parser("encrypt-secret", help="Print a client secret encrypted with AES_SECRET")
    enc.add_argument("plain", metavar="SECRET")
    enc.set_defaults(func=_encrypt_secret)

    args = parser.parse_args()
    if not args.command:
        parser.print_help()
        return
    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
