from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, Dict, Optional

from infinitiflow.core.config import settings
from infinitiflow.core.database import get_db
from infinitiflow.core.exceptions import EmailDeliveryError, InfinitiFlowError, ValidationError
from infinitiflow.core.logging_config import logger, set_user_id
from infinitiflow.core.rate_limiter import limiter, LOGIN_LIMIT, REGISTER_LIMIT, EMAIL_FLOW_LIMIT
from infinitiflow.core.security import create_token_pair
from infinitiflow.models.user import User
from infinitiflow.modules.auth.dependencies import get_current_user
from infinitiflow.modules.auth.usage_limits import get_subscription
from infinitiflow.schemas.auth import (
    AuthResponse,
    ChangePasswordRequest,
    EmailRequest,
    MeResponse,
    RefreshTokenRequest,
    ResetPasswordRequest,
    TokenPairResponse,
    UserData,
    UserLogin,
    UserRegister,
)
from infinitiflow.schemas.common import MessageResponse
from infinitiflow.schemas.subscription import SubscriptionResponse
from infinitiflow.schemas.user import UserResponse
from infinitiflow.services.auth_service import auth_service
from infinitiflow.services.email_service import (
    EmailService,
    get_email_service,
    TEMPLATE_EMAIL_VERIFICATION,
    TEMPLATE_PASSWORD_RESET,
    TEMPLATE_WELCOME,
)


router = APIRouter()

ACCESS_COOKIE = "jwt"
REFRESH_COOKIE = "refreshToken"
LOGGED_OUT = "loggedout"

GENERIC_RESET_MESSAGE = "If an account with that email exists, a password reset link has been sent."
GENERIC_VERIFY_MESSAGE = "If an account with that email exists, a verification email has been sent."


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def _set_auth_cookies(response: Response, token: str, refresh_token: str) -> None:
    common = {"httponly": True, "samesite": "strict", "secure": settings.is_production}
    response.set_cookie(
        ACCESS_COOKIE, token,
        max_age=settings.JWT_COOKIE_EXPIRES_IN * 24 * 60 * 60,
        **common
    )
    response.set_cookie(
        REFRESH_COOKIE, refresh_token,
        max_age=settings.REFRESH_COOKIE_EXPIRES_IN * 24 * 60 * 60,
        **common
    )


def _token_response(user: User, response: Response, message: Optional[str] = None) -> Dict[str, Any]:
    """Issue a fresh pair, set both cookies, return the auth envelope"""
    token, refresh_token = create_token_pair(user.id)
    _set_auth_cookies(response, token, refresh_token)
    return AuthResponse(
        message=message,
        token=token,
        refresh_token=refresh_token,
        data=UserData(user=UserResponse.from_user(user)),
    ).to_json()


# ==========================================
# Registration and login
# ==========================================

@router.post("/register", status_code=status.HTTP_201_CREATED)
@limiter.limit(REGISTER_LIMIT)
async def register(
    request: Request,
    response: Response,
    user_data: UserRegister,
    db: AsyncSession = Depends(get_db),
    email_service: EmailService = Depends(get_email_service)
):
    """Register new user (rate limited: 3/min)"""
    client_ip = _client_ip(request)

    try:
        user, verification_token = await auth_service.register(db, user_data)
    except InfinitiFlowError as e:
        logger.log_auth_event(
            event="register",
            success=False,
            user_email=user_data.email,
            reason=e.message,
            client_ip=client_ip
        )
        raise

    await db.commit()
    await db.refresh(user)

    logger.log_auth_event(event="register", success=True, user_email=user.email, client_ip=client_ip)

    sent = await email_service.send_email(
        user.email,
        TEMPLATE_EMAIL_VERIFICATION,
        {
            "firstName": user.first_name,
            "verifyURL": f"{settings.CLIENT_URL}/verify-email/{verification_token}",
        },
    )
    if not sent:
        # Registration still succeeds; the user can ask for a new link
        logger.warning(f"[Auth] Verification email not delivered to {user.email}")
        user.clear_email_verification_token()
        await db.commit()
        await db.refresh(user)

    return _token_response(
        user,
        response,
        "User registered successfully. Please check your email to verify your account.",
    )


@router.post("/login")
@limiter.limit(LOGIN_LIMIT)
async def login(
    request: Request,
    response: Response,
    credentials: UserLogin,
    db: AsyncSession = Depends(get_db)
):
    """Login (rate limited: 5/min, account locks after repeated failures)"""
    client_ip = _client_ip(request)

    try:
        user = await auth_service.verify_credentials(db, credentials.email, credentials.password)
    except InfinitiFlowError as e:
        logger.log_auth_event(
            event="login",
            success=False,
            user_email=credentials.email,
            reason=e.code,
            client_ip=client_ip
        )
        raise

    await db.commit()
    await db.refresh(user)

    set_user_id(user.id)
    logger.log_auth_event(event="login", success=True, user_email=user.email, client_ip=client_ip)

    return _token_response(user, response, "Logged in successfully")


@router.post("/logout")
async def logout(response: Response):
    """Overwrite both cookies with a short-lived placeholder"""
    for name in (ACCESS_COOKIE, REFRESH_COOKIE):
        response.set_cookie(
            name, LOGGED_OUT,
            max_age=10,
            httponly=True,
            samesite="strict",
            secure=settings.is_production,
        )
    return MessageResponse(message="Logged out successfully").to_json()


# ==========================================
# Password reset
# ==========================================

@router.post("/forgot-password")
@limiter.limit(EMAIL_FLOW_LIMIT)
async def forgot_password(
    request: Request,
    body: EmailRequest,
    db: AsyncSession = Depends(get_db),
    email_service: EmailService = Depends(get_email_service)
):
    """Mail a reset link (the answer never reveals whether the e-mail exists)"""
    user = await auth_service.get_by_email(db, body.email)
    if not user:
        logger.log_auth_event(
            event="forgot_password",
            success=False,
            user_email=body.email,
            reason="unknown email",
            client_ip=_client_ip(request)
        )
        return MessageResponse(message=GENERIC_RESET_MESSAGE).to_json()

    reset_token = user.create_password_reset_token()
    await db.commit()

    sent = await email_service.send_email(
        user.email,
        TEMPLATE_PASSWORD_RESET,
        {
            "firstName": user.first_name,
            "resetURL": f"{settings.CLIENT_URL}/reset-password/{reset_token}",
        },
    )
    if not sent:
        user.clear_password_reset_token()
        await db.commit()
        raise EmailDeliveryError()

    logger.log_auth_event(event="forgot_password", success=True, user_email=user.email)
    return MessageResponse(message=GENERIC_RESET_MESSAGE).to_json()


@router.patch("/reset-password/{token}")
async def reset_password(
    token: str,
    request: Request,
    response: Response,
    body: ResetPasswordRequest,
    db: AsyncSession = Depends(get_db)
):
    """Consume a reset token and log the user in"""
    user = await auth_service.consume_reset_token(db, token, body.password)
    await db.commit()
    await db.refresh(user)

    logger.log_auth_event(
        event="reset_password", success=True, user_email=user.email, client_ip=_client_ip(request)
    )
    return _token_response(user, response, "Password reset successfully")


# ==========================================
# E-mail verification
# ==========================================

@router.patch("/verify-email/{token}")
async def verify_email(
    token: str,
    db: AsyncSession = Depends(get_db),
    email_service: EmailService = Depends(get_email_service)
):
    """Mark the e-mail verified (token valid for 24 hours)"""
    user = await auth_service.consume_verification_token(db, token)
    await db.commit()

    logger.log_auth_event(event="verify_email", success=True, user_email=user.email)

    sent = await email_service.send_email(
        user.email,
        TEMPLATE_WELCOME,
        {
            "firstName": user.first_name,
            "dashboardURL": f"{settings.CLIENT_URL}/dashboard",
            "templatesURL": f"{settings.CLIENT_URL}/templates",
        },
    )
    if not sent:
        logger.info(f"[Auth] Welcome email not delivered to {user.email}")

    return MessageResponse(message="Email verified successfully").to_json()


@router.post("/resend-verification")
@limiter.limit(EMAIL_FLOW_LIMIT)
async def resend_verification(
    request: Request,
    body: EmailRequest,
    db: AsyncSession = Depends(get_db),
    email_service: EmailService = Depends(get_email_service)
):
    user = await auth_service.get_by_email(db, body.email)
    if not user:
        return MessageResponse(message=GENERIC_VERIFY_MESSAGE).to_json()

    if user.is_email_verified:
        raise ValidationError("Email is already verified", field="email")

    verification_token = user.create_email_verification_token()
    await db.commit()

    sent = await email_service.send_email(
        user.email,
        TEMPLATE_EMAIL_VERIFICATION,
        {
            "firstName": user.first_name,
            "verifyURL": f"{settings.CLIENT_URL}/verify-email/{verification_token}",
        },
    )
    if not sent:
        user.clear_email_verification_token()
        await db.commit()
        raise EmailDeliveryError()

    return MessageResponse(message=GENERIC_VERIFY_MESSAGE).to_json()


# ==========================================
# Tokens and session
# ==========================================

@router.post("/refresh-token")
async def refresh_token(
    request: Request,
    response: Response,
    body: Optional[RefreshTokenRequest] = None,
    db: AsyncSession = Depends(get_db)
):
    """Exchange a refresh token (body or cookie) for a new pair"""
    token = (body.refresh_token if body else None) or request.cookies.get(REFRESH_COOKIE)
    if not token or token == LOGGED_OUT:
        raise ValidationError("Refresh token is required", field="refreshToken")

    try:
        user = await auth_service.user_for_refresh_token(db, token)
    except InfinitiFlowError as e:
        logger.log_auth_event(
            event="refresh_token", success=False, reason=e.message, client_ip=_client_ip(request)
        )
        raise

    new_token, new_refresh_token = create_token_pair(user.id)
    _set_auth_cookies(response, new_token, new_refresh_token)

    return TokenPairResponse(token=new_token, refresh_token=new_refresh_token).to_json()


@router.get("/me")
async def get_me(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Current user, with the full subscription record"""
    user_json = UserResponse.from_user(current_user).to_json()

    subscription = await get_subscription(db, current_user.id)
    if subscription:
        user_json["subscription"] = SubscriptionResponse.from_subscription(subscription).to_json()

    return MeResponse(data={"user": user_json}).to_json()


@router.patch("/change-password")
async def change_password(
    request: Request,
    response: Response,
    body: ChangePasswordRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        user = await auth_service.change_password(db, current_user, body.current_password, body.new_password)
    except InfinitiFlowError as e:
        logger.log_auth_event(
            event="change_password",
            success=False,
            user_email=current_user.email,
            reason=e.message,
            client_ip=_client_ip(request)
        )
        raise

    await db.commit()
    await db.refresh(user)

    logger.log_auth_event(event="change_password", success=True, user_email=user.email)
    return _token_response(user, response, "Password updated successfully")
