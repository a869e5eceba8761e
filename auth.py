from typing import Optional

from fastapi import Depends, Request
from itsdangerous import BadSignature, URLSafeTimedSerializer
from sqlalchemy.orm import Session

from config import get_settings
from database import get_db
from models import User


def _serializer() -> URLSafeTimedSerializer:
    settings = get_settings()
    return URLSafeTimedSerializer(settings.session_secret, salt="auth-session")


class AuthSession:
    """Per-request authentication state.

    Created anonymous, bound to a user by ``login`` and cleared by ``logout``.
    Tokens are signed user ids; nothing is kept server side.
    """

    def __init__(self, user: Optional[User] = None) -> None:
        self.user = user

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    def login(self, user: User) -> str:
        self.user = user
        return _serializer().dumps({"u": user.id})

    def logout(self) -> None:
        self.user = None

    @classmethod
    def from_token(cls, token: Optional[str], session: Session) -> "AuthSession":
        if not token:
            return cls()
        max_age = get_settings().session_max_age_hours * 3600
        try:
            data = _serializer().loads(token, max_age=max_age)
        except BadSignature:
            return cls()
        user_id = data.get("u") if isinstance(data, dict) else None
        if not user_id:
            return cls()
        return cls(session.get(User, user_id))


def bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    return token.strip()


def get_auth_session(
    request: Request, db: Session = Depends(get_db)
) -> AuthSession:
    return AuthSession.from_token(bearer_token(request), db)
