from fastapi import APIRouter, Depends, status

from identity_service.features.auth.dependencies import get_auth_service, get_current_user
from identity_service.features.auth.models import User
from identity_service.features.auth.schemas.auth import (
    EmailRequest,
    LoginRequest,
    LoginResponse,
    RefreshTokenRequest,
    ResetPasswordRequest,
    SignupRequest,
    TokenResponse,
    UserResponse,
    VerifyEmailRequest,
)
from identity_service.features.auth.services.auth_service import AuthResult, AuthService
from identity_service.platform.response import api_response

router = APIRouter(prefix="/auth", tags=["Authentication"])


def login_payload(result: AuthResult) -> LoginResponse:
    return LoginResponse(
        access_token=result.tokens.access_token,
        refresh_token=result.tokens.refresh_token,
        token_type=result.tokens.token_type,
        expires_in=result.tokens.expires_in,
        user=UserResponse.model_validate(result.user),
    )


@router.post(
    "/signup",
    response_model=dict,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new user",
    description="Create an unverified account and email a verification link",
)
async def signup(request: SignupRequest, auth_service: AuthService = Depends(get_auth_service)):
    """
    Register a new user account.
    - **password**: 8 to 128 characters with at least one uppercase, lowercase, and digit
    - **account_type**: `standard` or `creator`; creators also get a creator profile
    """
    user = await auth_service.register(request)
    return api_response(
        data=UserResponse.model_validate(user),
        message="User registered successfully. Please check your email to verify your account.",
        status_code=status.HTTP_201_CREATED,
    )


@router.post(
    "/verify-email",
    response_model=dict,
    summary="Verify email address",
    description="Consume the verification token sent by email",
)
async def verify_email(request: VerifyEmailRequest, auth_service: AuthService = Depends(get_auth_service)):
    user = await auth_service.verify_email(request.token)
    return api_response(data=UserResponse.model_validate(user), message="Email verified successfully")


@router.post(
    "/resend-verification",
    response_model=dict,
    summary="Resend verification email",
)
async def resend_verification(request: EmailRequest, auth_service: AuthService = Depends(get_auth_service)):
    await auth_service.resend_verification(request.email)
    return api_response(data={"email": request.email}, message="Verification email sent")


@router.post(
    "/login",
    response_model=dict,
    summary="Login user",
    description="Authenticate user with email and password",
)
async def login(request: LoginRequest, auth_service: AuthService = Depends(get_auth_service)):
    """
    Login with email and password.
    Returns an access token and a single-use refresh token.
    """
    result = await auth_service.login(request.email, request.password)
    return api_response(data=login_payload(result), message="Login successful")


@router.post(
    "/refresh",
    response_model=dict,
    summary="Rotate refresh token",
    description="Exchange a refresh token for a new access/refresh pair; the old refresh token stops working",
)
async def refresh(request: RefreshTokenRequest, auth_service: AuthService = Depends(get_auth_service)):
    tokens = await auth_service.refresh(request.refresh_token)
    return api_response(
        data=TokenResponse(
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            token_type=tokens.token_type,
            expires_in=tokens.expires_in,
        ),
        message="Token refreshed successfully",
    )


@router.post(
    "/logout",
    response_model=dict,
    summary="Logout user",
    description="Revoke a single refresh token; unknown or already revoked tokens are accepted",
)
async def logout(request: RefreshTokenRequest, auth_service: AuthService = Depends(get_auth_service)):
    await auth_service.logout(request.refresh_token)
    return api_response(message="Logout successful")


@router.post(
    "/logout-all",
    response_model=dict,
    summary="Logout everywhere",
    description="Revoke every refresh token of the authenticated user",
)
async def logout_all(
    current_user: User = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
):
    revoked = await auth_service.logout_all(current_user.id)
    return api_response(data={"revoked_sessions": revoked}, message="Logged out from all devices")


@router.post(
    "/forgot-password",
    response_model=dict,
    summary="Request password recovery",
    description="Email a 6-digit recovery code if the account exists; the response is always the same",
)
async def forgot_password(request: EmailRequest, auth_service: AuthService = Depends(get_auth_service)):
    await auth_service.request_password_recovery(request.email)
    return api_response(message="If an account exists for this email, a recovery code has been sent")


@router.post(
    "/reset-password",
    response_model=dict,
    summary="Reset password with recovery code",
    description="Set a new password using the emailed code; signs out every session",
)
async def reset_password(request: ResetPasswordRequest, auth_service: AuthService = Depends(get_auth_service)):
    await auth_service.confirm_password_recovery(request.email, request.code, request.new_password)
    return api_response(message="Password reset successfully. Please log in again.")
