"""
Utility script to create an admin user for Roster.
Run this script to create the first admin account.

Usage:
    python create_admin_user.py
    ADMIN_USERNAME=admin ADMIN_PASSWORD=... python create_admin_user.py
    python create_admin_user.py --test  # creates admin / admin12345
"""
from roster.core.logging_config import configure_logging
from roster.db.session import get_engine
from roster.core.security import create_user, init_auth_tables
from sqlalchemy.orm import Session
import argparse
import getpass
import os


def parse_args():
    parser = argparse.ArgumentParser(
        description="Create an admin user for the Roster admin console."
    )
    parser.add_argument(
        "--test",
        action="store_true",
        help="Create a default test admin (admin / admin12345) without prompts.",
    )
    return parser.parse_args()


def _prompt_credentials():
    username = input("Enter admin username: ").strip()
    if not username:
        print("Error: Username is required")
        return None

    password = getpass.getpass("Enter password: ")
    password_confirm = getpass.getpass("Confirm password: ")
    if password != password_confirm:
        print("Error: Passwords do not match")
        return None

    return username, password


def main():
    args = parse_args()
    configure_logging("WARNING")

    print("=" * 60)
    print("Roster - Create Admin User")
    print("=" * 60)
    print()

    try:
        init_auth_tables()
        print("✓ Database tables initialized")
    except Exception as e:
        print(f"Warning: {e}")

    if args.test:
        username, password = "admin", "admin12345"
        print("Creating default test admin: admin / admin12345")
    elif os.getenv("ADMIN_USERNAME") and os.getenv("ADMIN_PASSWORD"):
        username, password = os.environ["ADMIN_USERNAME"], os.environ["ADMIN_PASSWORD"]
        print(f"Creating admin '{username}' from ADMIN_USERNAME / ADMIN_PASSWORD")
    else:
        credentials = _prompt_credentials()
        if credentials is None:
            return
        username, password = credentials

    engine = get_engine()
    with Session(engine) as db:
        try:
            user = create_user(
                db=db,
                username=username,
                password=password,
                role="admin"
            )
            print()
            print("=" * 60)
            print("✓ Admin created successfully!")
            print("=" * 60)
            print(f"Username: {user.username}")
            print(f"Created: {user.created_at}")
            print()
            print("You can now login at POST /api/admin/login with these credentials.")

        except Exception as e:
            # create_user raises HTTPException with a readable detail
            print(f"Error creating admin: {getattr(e, 'detail', e)}")


if __name__ == "__main__":
    main()
