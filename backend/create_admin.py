"""
Create or update an admin user.

Usage:
  python create_admin.py admin@example.com 'S3cure!Passw0rd' --role super_admin

An existing user with the same email gets the new password and role.
"""

import argparse
import asyncio
import sys

import database as db
from auth import hash_password, is_password_strong
from roles import UserRole


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Seed an admin user")
    parser.add_argument("email")
    parser.add_argument("password")
    parser.add_argument(
        "--role",
        default=UserRole.PRODUCT_MANAGER.value,
        choices=[r.value for r in UserRole],
    )
    parser.add_argument("--allow-weak", action="store_true", help="Skip the password strength check")
    return parser.parse_args(argv)


async def create_admin(email: str, password: str, role: str) -> dict:
    await db.init_db()
    try:
        return await db.create_admin_user(email.strip().lower(), hash_password(password), role)
    finally:
        await db.close_pool()


def main(argv=None):
    args = parse_args(argv)
    if not args.allow_weak and not is_password_strong(args.password):
        print("Password is too weak. Use at least 8 characters with upper and lower case letters, numbers and symbols.")
        sys.exit(1)

    user = asyncio.run(create_admin(args.email, args.password, args.role))
    print(f"Admin user ready: {user['email']} ({user['role']}) id={user['id']}")


if __name__ == "__main__":
    main()
