"""Authentication and authorization dependencies."""

from dataclasses import dataclass

from fastapi import Depends, Header, Request

from erp_backoffice.common.exceptions import AuthenticationRequiredError, ForbiddenError


@dataclass
class ClientInfo:
    """Caller details recorded with activity log entries."""
    ip_address: str = ""
    user_agent: str = ""


def client_info(request: Request) -> ClientInfo:
    forwarded = request.headers.get("x-forwarded-for", "")
    ip = forwarded.split(",")[0].strip() if forwarded else ""
    if not ip and request.client:
        ip = request.client.host
    return ClientInfo(ip_address=ip, user_agent=request.headers.get("user-agent", ""))


async def get_current_user_id(
    authorization: str | None = Header(None),
) -> int:
    """FastAPI dependency returning the user id carried by the bearer access token."""
    if not authorization:
        raise AuthenticationRequiredError()
    scheme, _, token = authorization.partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        raise AuthenticationRequiredError("Authorization header must be 'Bearer <token>'")

    from erp_backoffice.deps import get_token_service
    return get_token_service().verify_access(token)


def require_access(menu_path: str, action: str = "read"):
    """Build a dependency that admits the caller only if its roles grant ``action`` on ``menu_path``.

    ``read`` is granted by any role linking the menu; ``create``, ``update``
    and ``delete`` need the matching permission flag.
    """
    from erp_backoffice.rbac.service import ACTIONS

    if action not in ACTIONS:
        raise ValueError(f"Unknown action {action!r}")

    async def dependency(user_id: int = Depends(get_current_user_id)) -> int:
        from erp_backoffice.deps import get_db, get_rbac_service

        async with get_db().get_session() as session:
            allowed = await get_rbac_service().is_allowed(session, user_id, menu_path, action)
        if not allowed:
            raise ForbiddenError()
        return user_id

    return dependency
