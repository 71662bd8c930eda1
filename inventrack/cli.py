"""CLI tool for admin operations.

Usage:
    python -m inventrack.cli create-admin
"""

import asyncio
import getpass
import sys

import qrcode

from inventrack.config import settings
from inventrack.database import async_session, create_db_and_tables, engine
from inventrack.services import codec, totp
from inventrack.services.passwords import hash_password
from inventrack.services.token_store import TokenStore
from inventrack.services.users import UserStore
from inventrack.utils.logging import setup_logging

ADMIN_ROLES = ["Admin", settings.default_role]


async def _create_admin(username: str, email: str, password: str, with_totp: bool) -> None:
    await create_db_and_tables()
    users = UserStore(async_session)
    tokens = TokenStore(async_session)

    try:
        if await users.find_conflict(username, email):
            print(f"User '{username}' or email '{email}' already exists.")
            sys.exit(1)

        user = await users.create(
            username=username,
            email=email,
            password_hash=hash_password(password),
            roles=ADMIN_ROLES,
        )
        print(f"\nAdmin user '{username}' created successfully.")

        if not with_totp:
            return

        secret_key = codec.encode(codec.generate_random_secret())
        await tokens.upsert_two_factor_secret(user.id, secret_key, active=False)
        await tokens.set_two_factor_active(user.id, True)
        totp_uri = totp.build_provisioning_uri(settings.totp_issuer, user.email, secret_key)

        print(f"\nTOTP Secret: {codec.format_for_manual_entry(secret_key)}")
        print(f"TOTP URI: {totp_uri}")
        print("\nScan the QR code below with your authenticator app:")
        qr = qrcode.QRCode(box_size=1, border=1)
        qr.add_data(totp_uri)
        qr.make(fit=True)
        qr.print_ascii(invert=True)
    finally:
        await engine.dispose()


def create_admin():
    """Create an admin user, optionally with TOTP enrolled."""
    setup_logging()

    username = input("Username: ").strip()
    if not username:
        print("Username cannot be empty.")
        sys.exit(1)

    email = input("Email: ").strip()
    if not email:
        print("Email cannot be empty.")
        sys.exit(1)

    password = getpass.getpass("Password: ")
    password_confirm = getpass.getpass("Confirm password: ")
    if password != password_confirm:
        print("Passwords do not match.")
        sys.exit(1)
    if len(password) < 6:
        print("Password must be at least 6 characters.")
        sys.exit(1)

    with_totp = input("Enroll TOTP two-factor now? [y/N]: ").strip().lower() in ("y", "yes")
    asyncio.run(_create_admin(username, email, password, with_totp))


def main():
    if len(sys.argv) < 2:
        print("Usage: python -m inventrack.cli <command>")
        print("Commands: create-admin")
        sys.exit(1)

    command = sys.argv[1]
    if command == "create-admin":
        create_admin()
    else:
        print(f"Unknown command: {command}")
        sys.exit(1)


if __name__ == "__main__":
    main()
