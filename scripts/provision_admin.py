#!/usr/bin/env python3
"""Create or rotate a back-office administrator.

Usage: python scripts/provision_admin.py <username> [--role super_admin] [--email a@b.c]
The password is read interactively (or from ADMIN_PASSWORD).
"""
import argparse
import os
import sys
from getpass import getpass
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from apps.storefront.database import get_session_factory  # noqa: E402
from apps.storefront.errors import StorefrontError  # noqa: E402
from apps.storefront.models.admin import ADMIN_ROLES  # noqa: E402
from apps.storefront.services.credentials import set_admin_password  # noqa: E402


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("username")
    parser.add_argument("--role", choices=ADMIN_ROLES, default=None)
    parser.add_argument("--email", default=None)
    args = parser.parse_args(argv)

    password = os.environ.get("ADMIN_PASSWORD") or getpass("Password: ")
    if not os.environ.get("ADMIN_PASSWORD") and password != getpass("Repeat password: "):
        print("Passwords do not match.", file=sys.stderr)
        return 1

    factory = get_session_factory()
    with factory() as db:
        try:
            admin = set_admin_password(db, args.username, password, role=args.role, email=args.email)
        except StorefrontError as e:
            print(f"Error: {e.detail}", file=sys.stderr)
            return 1
    print(f"Admin '{admin.username}' ({admin.role}) provisioned.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
