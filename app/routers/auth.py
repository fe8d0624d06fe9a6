"""
Authentication API endpoints: registration, login, logout, current user and Google sign-in.
Tokens are returned in the body and also set as an httpOnly cookie.
"""

from fastapi import APIRouter, Depends, Query, Request, Response, status
from fastapi.responses import RedirectResponse
from typing import Optional
from urllib.parse import urlencode
import logging
import secrets

from app.config import settings
from app.models.user import User
from app.schemas.auth import RegisterRequest, LoginRequest, UserResponse
from app.services.auth import AuthService
from app.utils.auth import set_auth_cookie, clear_auth_cookie
from app.utils.dependencies import get_auth_service, get_current_user
from app.utils.exceptions import APIException
from app.utils.google_oauth import GoogleOAuthClient, get_google_oauth_client
from app.utils.responses import success_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])

OAUTH_STATE_COOKIE = "oauth_state"


def _user_payload(user: User) -> dict:
    return UserResponse.model_validate(user).model_dump(mode="json")


@router.post(
    "/register",
    status_code=status.HTTP_201_CREATED,
    summary="Register",
    description="Create a local account and sign in"
)
async def register(
    register_data: RegisterRequest,
    response: Response,
    auth_service: AuthService = Depends(get_auth_service)
) -> dict:
    """
    Register a new user.

    Raises:
        ConflictError: If the email is already registered
    """
    user, token = await auth_service.register(register_data)
    set_auth_cookie(response, token)
    return success_response(
        {"user": _user_payload(user), "token": token},
        message="Registration successful"
    )


@router.post(
    "/login",
    status_code=status.HTTP_200_OK,
    summary="User login",
    description="Authenticate with email and password, returns a JWT and sets the auth cookie"
)
async def login(
    login_data: LoginRequest,
    response: Response,
    auth_service: AuthService = Depends(get_auth_service)
) -> dict:
    """
    Authenticate user and return a JWT.

    Raises:
        InvalidCredentialsError: If credentials are invalid or the account is Google-only
    """
    user, token = await auth_service.login(email=login_data.email, password=login_data.password)
    set_auth_cookie(response, token)
    return success_response({"user": _user_payload(user), "token": token}, message="Login successful")


@router.get(
    "/me",
    status_code=status.HTTP_200_OK,
    summary="Get current user",
    description="Get current authenticated user information"
)
async def get_current_user_info(current_user: User = Depends(get_current_user)) -> dict:
    return success_response(_user_payload(current_user))


@router.post(
    "/logout",
    status_code=status.HTTP_200_OK,
    summary="User logout",
    description="Clear the auth cookie"
)
async def logout(response: Response) -> dict:
    """
    Logout user.

    JWTs are stateless, so logging out only removes the cookie; clients holding the
    token in memory should discard it.
    """
    clear_auth_cookie(response)
    return success_response(message="Logged out successfully")


@router.get(
    "/google",
    summary="Start Google sign-in",
    description="Redirect to Google's consent screen"
)
async def google_login(
    oauth_client: GoogleOAuthClient = Depends(get_google_oauth_client)
) -> RedirectResponse:
    state = secrets.token_urlsafe(24)
    redirect = RedirectResponse(oauth_client.authorization_url(state), status_code=status.HTTP_302_FOUND)
    redirect.set_cookie(
        key=OAUTH_STATE_COOKIE,
        value=state,
        max_age=600,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
    )
    return redirect


@router.get(
    "/google/callback",
    summary="Google sign-in callback",
    description="Exchange the authorization code, sign the user in and redirect to the frontend"
)
async def google_callback(
    request: Request,
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    auth_service: AuthService = Depends(get_auth_service),
    oauth_client: GoogleOAuthClient = Depends(get_google_oauth_client)
) -> RedirectResponse:
    """
    Finish Google sign-in.

    On success the frontend receives the auth cookie; on failure it is redirected
    to its login page with an ``error`` query parameter.
    """
    failure_url = f"{settings.frontend_url}/login?" + urlencode({"error": "google_auth_failed"})

    if error or not code:
        logger.warning(f"Google callback without code: {error}")
        return RedirectResponse(failure_url, status_code=status.HTTP_302_FOUND)

    expected_state = request.cookies.get(OAUTH_STATE_COOKIE)
    if expected_state and expected_state != state:
        logger.warning("Google callback state mismatch")
        return RedirectResponse(failure_url, status_code=status.HTTP_302_FOUND)

    try:
        user, token = await auth_service.google_login(code, oauth_client)
    except APIException as e:
        logger.warning(f"Google sign-in failed: {e.detail}")
        return RedirectResponse(failure_url, status_code=status.HTTP_302_FOUND)

    redirect = RedirectResponse(f"{settings.frontend_url}/dashboard", status_code=status.HTTP_302_FOUND)
    set_auth_cookie(redirect, token)
    redirect.delete_cookie(OAUTH_STATE_COOKIE)
    logger.info(f"Google sign-in completed for user {user.id}")
    return redirect
