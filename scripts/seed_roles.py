"""
Seed Roles & Permissions — 4 system roles + 2 permissions.

Usage:
    python scripts/seed_roles.py                          # Uses development DB
    python scripts/seed_roles.py --env production         # Uses production DB
    python scripts/seed_roles.py --grant 1:deputy-director

This script is idempotent — safe to run multiple times.
"""

import argparse

from ideahub import create_app
from ideahub.models import db
from ideahub.services.role_catalogue import assign_role, seed_roles


def main():
    parser = argparse.ArgumentParser(description="Seed IdeaHub roles and permissions")
    parser.add_argument("--env", default="development", help="Config name (development/production)")
    parser.add_argument(
        "--grant", action="append", default=[], metavar="USER_ID:ROLE",
        help="Also grant a role to an existing user (repeatable)",
    )
    args = parser.parse_args()

    app = create_app(args.env)
    with app.app_context():
        counts = seed_roles()
        for grant in args.grant:
            user_id, _, role_name = grant.partition(":")
            assign_role(int(user_id), role_name)
        db.session.commit()
        print(f"Seeded: {counts['roles']} roles, {counts['permissions']} permissions, "
              f"{counts['links']} role-permission links; {len(args.grant)} grants")


if __name__ == "__main__":
    main()
