from typing import Optional

from fastapi import Request, Response

from src.core.service.siwf.models.session import UserSession
from src.infra.config.settings import get_settings

settings = get_settings()


def set_session_cookie(response: Response, session: UserSession) -> None:
    """Emit the session cookie; mini apps run in a third-party iframe, so SameSite=None"""
    max_age = max(0, int((session.expires_at - session.created_at).total_seconds()))
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=session.token,
        max_age=max_age,
        path="/",
        secure=True,
        httponly=True,
        samesite="none",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(
        key=settings.SESSION_COOKIE_NAME,
        path="/",
        secure=True,
        httponly=True,
        samesite="none",
    )


def read_session_token(request: Request) -> Optional[str]:
    """Session token from the cookie, or from an Authorization: Bearer header"""
    token = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if token:
        return token

    authorization = request.headers.get("Authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return None
