"""
Session-token authentication for MonkeyBets
Players sign in by SMS code; the API hands back an opaque token that the
client sends on every request in the X-Session-Token header.
"""

from typing import Optional
from urllib.parse import urlencode

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import APIKeyHeader
from sqlalchemy.orm import Session

from backend.models import Monkey, get_db
from backend.services.identity import resolve_session

# Session token header
SESSION_HEADER = APIKeyHeader(name="X-Session-Token", auto_error=False)

SIGN_IN_PATH = "/login"


def sign_in_path(return_to: str) -> str:
    """Sign-in location that brings the player back to ``return_to`` afterwards."""
    return f"{SIGN_IN_PATH}?{urlencode({'next': return_to})}"


async def get_optional_monkey(
    token: Optional[str] = Security(SESSION_HEADER),
    db: Session = Depends(get_db),
) -> Optional[Monkey]:
    """Signed-in monkey, or None for anonymous callers."""
    if not token:
        return None
    return resolve_session(db, token)


async def get_current_monkey(
    request: Request,
    monkey: Optional[Monkey] = Depends(get_optional_monkey),
) -> Monkey:
    """
    Require a signed-in monkey

    Usage in FastAPI routes:
        @app.get("/protected")
        async def protected_route(monkey: Monkey = Depends(get_current_monkey)):
            return {"monkey": monkey.id}
    """
    if monkey is None:
        return_to = request.url.path
        if request.url.query:
            return_to = f"{return_to}?{request.url.query}"
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "message": "Sign in required. Include 'X-Session-Token' header.",
                "sign_in": sign_in_path(return_to),
            },
            headers={"WWW-Authenticate": "Session"},
        )

    return monkey
