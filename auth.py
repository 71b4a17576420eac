from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from config import get_settings
from errors import Unauthenticated
from models import User

logger = logging.getLogger(__name__)


def _serializer() -> URLSafeTimedSerializer:
    settings = get_settings()
    return URLSafeTimedSerializer(settings.session_secret, salt="session-token")


@dataclass(frozen=True)
class SessionState:
    user_id: Optional[str] = None

    def current_owner(self) -> Optional[str]:
        return self.user_id

    def require_owner(self) -> str:
        if not self.user_id:
            raise Unauthenticated("No authenticated user")
        return self.user_id


ANONYMOUS = SessionState()


def issue_session_token(user_id: str) -> str:
    return _serializer().dumps({"u": user_id})


def load_session(token: Optional[str], max_age_secs: Optional[int] = None) -> SessionState:
    if not token:
        return ANONYMOUS
    if max_age_secs is None:
        max_age_secs = get_settings().session_max_age_secs
    try:
        data = _serializer().loads(token, max_age=max_age_secs)
    except SignatureExpired:
        logger.info("session_expired")
        return ANONYMOUS
    except BadSignature:
        logger.warning("session_invalid_signature")
        return ANONYMOUS

    user_id = data.get("u") if isinstance(data, dict) else None
    if not isinstance(user_id, str) or not user_id:
        return ANONYMOUS
    return SessionState(user_id)


class AuthService:
    """Development sign-in: one user row per e-mail address."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, user_id: str) -> Optional[User]:
        return self.session.get(User, user_id)

    def sign_in(self, email: str) -> User:
        clean_email = email.strip().lower()
        if not clean_email:
            raise ValueError("Email cannot be empty")

        user = self.session.scalar(
            select(User).where(func.lower(User.email) == clean_email)
        )
        if user is None:
            user = User(email=clean_email)
            self.session.add(user)
            self.session.commit()
            self.session.refresh(user)
            logger.info("user_created: user_id=%s", user.id)
        return user
