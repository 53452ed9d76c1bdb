"""Authentication API router: login, 2FA, token rotation and password lifecycle."""

from datetime import datetime

from fastapi import APIRouter, Depends, Query, Request, Response
from pydantic import BaseModel

from erp_backoffice.activity import service as activity
from erp_backoffice.auth.schemas import (
    AccessTokenResponse,
    ChangePasswordRequest,
    LoginRequest,
    PasswordResetRequest,
    SendPasswordResetRequest,
    TwoFactorEnrolment,
    TwoFactorRequest,
    UserResponse,
)
from erp_backoffice.common.exceptions import AuthenticationRequiredError, BackofficeError
from erp_backoffice.common.schemas import ApiResponse
from erp_backoffice.common.security import (
    ClientInfo,
    client_info,
    get_current_user_id,
    require_access,
)

router = APIRouter(prefix="/auth")

USER_PATH = "/admin/master/user"


class PasswordResetIssued(BaseModel):
    id: int
    user_id: int
    expired_at: datetime
    emailed: bool


def _get_service():
    from erp_backoffice.deps import get_session_service
    return get_session_service()


def _get_activity():
    from erp_backoffice.deps import get_activity_service
    return get_activity_service()


def _get_db():
    from erp_backoffice.deps import get_db
    return get_db()


async def _record(
    client: ClientInfo,
    action: str,
    *,
    user_id: int | None = None,
    error: BackofficeError | None = None,
    message: str = "",
) -> None:
    """Append to the activity log in its own transaction so failures are kept."""
    async with _get_db().get_session() as session:
        await _get_activity().record(
            session,
            action,
            is_success=error is None,
            message=error.message if error else message,
            user_id=user_id,
            ip_address=client.ip_address,
            user_agent=client.user_agent,
        )


def _refresh_cookie(request: Request) -> str:
    name = _get_service().settings.refresh_cookie_name
    token = request.cookies.get(name)
    if not token:
        raise AuthenticationRequiredError("Missing refresh token")
    return token


def _set_refresh_cookie(response: Response, token: str) -> None:
    settings = _get_service().settings
    response.set_cookie(
        key=settings.refresh_cookie_name,
        value=token,
        max_age=settings.refresh_token_ttl,
        path="/",
        httponly=True,
        secure=settings.cookie_secure,
        samesite=settings.cookie_samesite,
    )


# ── Login ──


@router.post("/login", response_model=ApiResponse[AccessTokenResponse])
async def login(
    body: LoginRequest, response: Response, client: ClientInfo = Depends(client_info)
):
    svc = _get_service()
    try:
        async with _get_db().get_session() as session:
            issued = await svc.login(session, body.username, body.password)
    except BackofficeError as exc:
        await _record(client, activity.LOGIN, error=exc)
        raise
    _set_refresh_cookie(response, issued.refresh_token)
    await _record(client, activity.LOGIN, user_id=issued.user.id, message="Login successful")
    return ApiResponse(
        status=200,
        message="Login successful",
        data=AccessTokenResponse(access_token=issued.access_token),
    )


@router.post("/two-fa", response_model=ApiResponse[AccessTokenResponse])
async def two_factor_login(
    body: TwoFactorRequest, response: Response, client: ClientInfo = Depends(client_info)
):
    svc = _get_service()
    try:
        async with _get_db().get_session() as session:
            issued = await svc.verify_two_fa(session, body.username, body.otp_key)
    except BackofficeError as exc:
        await _record(client, activity.TWO_FA, error=exc)
        raise
    _set_refresh_cookie(response, issued.refresh_token)
    await _record(client, activity.TWO_FA, user_id=issued.user.id, message="Login successful")
    return ApiResponse(
        status=200,
        message="Login successful",
        data=AccessTokenResponse(access_token=issued.access_token),
    )


# ── Rotation ──


@router.get("/token", response_model=ApiResponse[AccessTokenResponse])
async def refresh_access_token(request: Request):
    token = _refresh_cookie(request)
    async with _get_db().get_session() as session:
        access = await _get_service().refresh_access(session, token)
    return ApiResponse(
        status=200, message="Token refreshed", data=AccessTokenResponse(access_token=access)
    )


@router.delete("/logout", response_model=ApiResponse[None])
async def logout(request: Request, response: Response, client: ClientInfo = Depends(client_info)):
    token = _refresh_cookie(request)
    async with _get_db().get_session() as session:
        user = await _get_service().logout(session, token)
    response.delete_cookie(_get_service().settings.refresh_cookie_name, path="/")
    await _record(client, activity.LOGOUT, user_id=user.id, message="Logout successful")
    return ApiResponse(status=200, message="Logout successful")


# ── Current user ──


@router.get("/user-info", response_model=ApiResponse[UserResponse])
async def user_info(user_id: int = Depends(get_current_user_id)):
    async with _get_db().get_session() as session:
        user = UserResponse.model_validate(await _get_service().get_user(session, user_id))
    return ApiResponse(status=200, message="Success", data=user)


@router.put("/change-password", response_model=ApiResponse[None])
async def change_password(
    body: ChangePasswordRequest,
    user_id: int = Depends(get_current_user_id),
    client: ClientInfo = Depends(client_info),
):
    try:
        async with _get_db().get_session() as session:
            await _get_service().change_password(session, user_id, body.current, body.new)
    except BackofficeError as exc:
        await _record(client, activity.CHANGE_PASSWORD, user_id=user_id, error=exc)
        raise
    await _record(client, activity.CHANGE_PASSWORD, user_id=user_id, message="Password changed")
    return ApiResponse(status=200, message="Password changed")


# ── Administration ──


@router.put("/{target_id}/two-fa", response_model=ApiResponse[TwoFactorEnrolment])
async def enable_two_factor(
    target_id: int, user_id: int = Depends(require_access(USER_PATH, "update"))
):
    async with _get_db().get_session() as session:
        setup = await _get_service().enable_two_fa(session, target_id, user_id)
    return ApiResponse(
        status=200,
        message="Two-factor authentication enabled",
        data=TwoFactorEnrolment(
            otp_key=setup.otp_key, otp_url=setup.otp_url, qr_image=setup.qr_image
        ),
    )


@router.post("/send-password-reset", response_model=ApiResponse[PasswordResetIssued])
async def send_password_reset(
    body: SendPasswordResetRequest,
    user_id: int = Depends(require_access(USER_PATH, "update")),
    client: ClientInfo = Depends(client_info),
):
    async with _get_db().get_session() as session:
        reset, sent = await _get_service().send_password_reset(session, body.id, user_id)
        data = PasswordResetIssued(
            id=reset.id, user_id=reset.user_id, expired_at=reset.expired_at, emailed=sent
        )
    await _record(
        client,
        activity.SEND_PASSWORD_RESET,
        user_id=user_id,
        message=f"Password reset issued for user {body.id}",
    )
    message = "Password reset link sent" if sent else "Password reset link created"
    return ApiResponse(status=200, message=message, data=data)


@router.post("/password-reset", response_model=ApiResponse[None])
async def reset_password(
    body: PasswordResetRequest,
    token: str = Query(..., min_length=1),
    client: ClientInfo = Depends(client_info),
):
    try:
        async with _get_db().get_session() as session:
            user = await _get_service().reset_password(session, token, body.password, body.confirm)
    except BackofficeError as exc:
        await _record(client, activity.RESET_PASSWORD, error=exc)
        raise
    await _record(client, activity.RESET_PASSWORD, user_id=user.id, message="Password reset")
    return ApiResponse(status=200, message="Password has been reset")
