"""Admin credential checks.

The default scheme treats the administrator's own phone number as a bearer
token: the header value is normalized and must match the phone of a user with
``is_admin`` set. The scheme has no expiry and no secret beyond the number
itself. ``JWTAdminAuthenticator`` replaces the raw phone with a signed,
expiring token while keeping the same admin lookup, and is selected with
``ADMIN_AUTH_SCHEME=jwt``.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

import jwt
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from beton_feedback.auth import jwt_handler
from beton_feedback.auth.phone import normalize_phone
from beton_feedback.core import config
from beton_feedback.core.errors import Forbidden, InternalError, Unauthorized
from beton_feedback.core.log_setup import mask_token
from beton_feedback.models.user import User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AdminIdentity:
    user_id: int
    username: str
    phone: str


def find_admin(db: Session, phone: str) -> AdminIdentity:
    try:
        admin = db.query(User).filter(User.phone == phone, User.is_admin.is_(True)).first()
    except SQLAlchemyError as exc:
        logger.exception("Admin lookup failed")
        raise InternalError("Internal server error during admin check") from exc

    if admin is None:
        logger.warning("Invalid admin credentials for %s", mask_token(phone))
        raise Forbidden("Invalid admin credentials")

    return AdminIdentity(user_id=admin.id, username=admin.username, phone=admin.phone)


class AdminAuthenticator(ABC):
    @abstractmethod
    def authenticate(self, token: str | None, db: Session) -> AdminIdentity:
        """Resolve ``token`` to an admin or raise ``Unauthorized``/``Forbidden``."""


class PhoneTokenAuthenticator(AdminAuthenticator):
    def authenticate(self, token: str | None, db: Session) -> AdminIdentity:
        if not token or not token.strip():
            logger.info("Admin check rejected: no token provided")
            raise Unauthorized("No admin token provided")

        phone = normalize_phone(token)
        if not phone:
            raise Forbidden("Invalid admin credentials")

        identity = find_admin(db, phone)
        logger.info("Admin check passed for user %s", identity.user_id)
        return identity


class JWTAdminAuthenticator(AdminAuthenticator):
    def authenticate(self, token: str | None, db: Session) -> AdminIdentity:
        if not token or not token.strip():
            logger.info("Admin check rejected: no token provided")
            raise Unauthorized("No admin token provided")

        try:
            payload = jwt_handler.decode_admin_token(token.strip())
        except jwt.PyJWTError as exc:
            logger.warning("Admin token rejected: %s", exc)
            raise Forbidden("Invalid admin credentials") from exc

        phone = normalize_phone(payload.get("sub"))
        if not phone:
            raise Forbidden("Invalid admin credentials")

        identity = find_admin(db, phone)
        logger.info("Admin check passed for user %s", identity.user_id)
        return identity


def build_authenticator(scheme: str | None = None) -> AdminAuthenticator:
    scheme = scheme or config.ADMIN_AUTH_SCHEME
    if scheme == "jwt":
        return JWTAdminAuthenticator()
    if scheme == "phone":
        return PhoneTokenAuthenticator()
    raise ValueError(f"Unknown admin auth scheme: {scheme}")
