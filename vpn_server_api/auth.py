import hmac
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

security = HTTPBearer(auto_error=False)

USER_PORTAL = "vpn-user-portal"
ADMIN_PORTAL = "vpn-admin-portal"
SERVER_NODE = "vpn-server-node"


def get_api_consumer(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> str:
    """Name of the API consumer whose bearer token was presented."""
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    consumers = request.app.state.context.settings.api_consumers
    for name, token in consumers.items():
        if hmac.compare_digest(token.encode(), credentials.credentials.encode()):
            return name

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid token",
        headers={"WWW-Authenticate": "Bearer"},
    )


def require_consumer(*allowed: str):
    """Dependency: the caller must be one of the named API consumers."""

    def dependency(consumer: str = Depends(get_api_consumer)) -> str:
        if consumer not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f'"{consumer}" is not allowed to call this API.',
            )
        return consumer

    return dependency
