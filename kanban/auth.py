from typing import Optional

from fastapi import Header, Request

from .errors import Unauthorized


def get_current_user(request: Request, authorization: Optional[str] = Header(default=None)) -> str:
    """Resolve the caller's user id from the bearer token.

    With ``KANBAN_AUTH_TOKENS`` configured only the listed tokens are accepted.
    Without it the bearer token itself is taken as the user identifier, which
    is only meant for local development.
    """
    prefix = "Bearer "
    if not authorization or not authorization.startswith(prefix):
        raise Unauthorized("User not authorized, no token")
    token = authorization[len(prefix) :].strip()
    if not token:
        raise Unauthorized("User not authorized, no token")
    tokens = request.app.state.settings.auth_tokens
    if not tokens:
        return token
    user_id = tokens.get(token)
    if user_id is None:
        raise Unauthorized()
    return user_id
