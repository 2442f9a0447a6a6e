"""Print a bearer token for a staff member to stdout.

Usage:
    python -m backend.print_access_token staff@clinic.example
"""
import sys

from backend.auth.jwt_handler import create_access_token
from backend.database import SessionLocal
from backend.models.user import User


def main(argv: list[str] | None = None) -> None:
    args = sys.argv[1:] if argv is None else argv
    if len(args) != 1:
        print("Usage: python -m backend.print_access_token <email>", file=sys.stderr)
        sys.exit(2)

    email = args[0].strip().lower()
    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == email).first()
    finally:
        db.close()

    if user is None:
        print(f"No staff member with e-mail {email}", file=sys.stderr)
        sys.exit(1)
    print(create_access_token(subject=user.email, organization_id=user.organization_id))


if __name__ == "__main__":
    main()
