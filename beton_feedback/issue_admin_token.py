"""Print a signed admin token for an existing administrator.

Used with ``ADMIN_AUTH_SCHEME=jwt``; the printed value goes into the admin
token header instead of the raw phone number.

Usage:
    python -m beton_feedback.issue_admin_token "+7 999 111-22-33"
"""
import sys

from beton_feedback.auth.authenticators import find_admin
from beton_feedback.auth.jwt_handler import create_admin_token
from beton_feedback.auth.phone import normalize_phone
from beton_feedback.core.errors import FeedbackError
from beton_feedback.database import SessionLocal
from beton_feedback.models import evaluation, user  # noqa: F401


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    if len(args) != 1:
        print("Usage: python -m beton_feedback.issue_admin_token <phone>", file=sys.stderr)
        return 2

    db = SessionLocal()
    try:
        admin = find_admin(db, normalize_phone(args[0]))
    except FeedbackError as exc:
        print(exc.detail, file=sys.stderr)
        return 1
    finally:
        db.close()

    print(create_admin_token(admin.phone))
    return 0


if __name__ == "__main__":
    sys.exit(main())
