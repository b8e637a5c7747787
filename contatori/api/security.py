import secrets

from fastapi import Header, HTTPException, Request, status


def _presented_token(authorization: str | None, x_api_key: str | None) -> str | None:
    if x_api_key:
        return x_api_key
    if authorization and authorization.lower().startswith("bearer "):
        return authorization[7:].strip()
    return None


async def require_api_token(
    request: Request,
    authorization: str | None = Header(default=None),
    x_api_key: str | None = Header(default=None),
) -> None:
    """Reject calls that do not carry the configured API token.

    A deployment with no ``API_TOKEN`` accepts every call.
    """
    expected: str = request.app.state.config.api.api_token
    if not expected:
        return

    presented = _presented_token(authorization, x_api_key)
    if presented is None or not secrets.compare_digest(presented, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token non valido",
            headers={"WWW-Authenticate": "Bearer"},
        )
