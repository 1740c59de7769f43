from fastapi import Depends, Request
from sqlalchemy.orm import Session

from beton_feedback.auth.authenticators import AdminIdentity
from beton_feedback.core import config
from beton_feedback.database import get_db
from beton_feedback.state import AppState, get_state


def require_admin(
    request: Request,
    db: Session = Depends(get_db),
    state: AppState = Depends(get_state),
) -> AdminIdentity:
    # Starlette header lookups are case-insensitive.
    token = request.headers.get(config.ADMIN_TOKEN_HEADER)
    admin = state.authenticator.authenticate(token, db)
    request.state.admin = admin
    return admin
