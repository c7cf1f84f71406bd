"""
Create an active account (e.g. the first admin). Run from project root:
  python -m accounts.scripts.create_user USERNAME PASSWORD EMAIL [role]
Example:
  python -m accounts.scripts.create_user admin your-secure-password admin@example.com admin
"""
import argparse
import sys

from accounts.core.config import get_settings
from accounts.core.database import SessionLocal
from accounts.core.errors import AccountsError
from accounts.core.security import PASSWORD_MAX_LEN, PASSWORD_MIN_LEN, USERNAME_MAX_LEN
from accounts.models import Role
from accounts.services.users import UserService


def main() -> int:
    parser = argparse.ArgumentParser(description="Create an account without the registration flow.")
    parser.add_argument("username", help=f"Username (1-{USERNAME_MAX_LEN} chars; letters, digits and _ . @ + -)")
    parser.add_argument("password", help=f"Password ({PASSWORD_MIN_LEN}-{PASSWORD_MAX_LEN} chars)")
    parser.add_argument("email", help="Email address")
    parser.add_argument("role", nargs="?", default="user", help="Role name (must already exist)")
    parser.add_argument("--name", default="", help="Display name (defaults to the username)")
    args = parser.parse_args()

    username = args.username.strip()
    if not username or len(username) > USERNAME_MAX_LEN:
        print("Invalid username length.", file=sys.stderr)
        return 1
    if not (PASSWORD_MIN_LEN <= len(args.password) <= PASSWORD_MAX_LEN):
        print(f"Password must be {PASSWORD_MIN_LEN}-{PASSWORD_MAX_LEN} characters.", file=sys.stderr)
        return 1

    db = SessionLocal()
    try:
        role = db.query(Role).filter(Role.name == args.role).first()
        if role is None:
            print(f"Role '{args.role}' does not exist; run accounts.scripts.init_security first.", file=sys.stderr)
            return 1
        service = UserService(db, get_settings())
        try:
            user = service.create_user(
                username,
                args.password,
                args.name or username,
                args.email.strip(),
                role_id=role.id,
                active=True,
            )
        except AccountsError as e:
            print(e.message, file=sys.stderr)
            return 1
        print(f"Created user '{user.username}' (id={user.id}) with role '{args.role}'.")
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
