from fastapi import status

from identity_service.platform.exceptions import AppError


class EmailAlreadyExistsError(AppError):
    status_code = status.HTTP_409_CONFLICT
    error_code = "EMAIL_ALREADY_EXISTS"
    message = "An account with this email already exists"


class InvalidVerificationTokenError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "INVALID_VERIFICATION_TOKEN"
    message = "Verification token is invalid or has expired"


class EmailAlreadyVerifiedError(AppError):
    status_code = status.HTTP_409_CONFLICT
    error_code = "EMAIL_ALREADY_VERIFIED"
    message = "Email is already verified"


class AccountNotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "ACCOUNT_NOT_FOUND"
    message = "Account not found"


class InvalidCredentialsError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error_code = "INVALID_CREDENTIALS"
    message = "Invalid email or password"


class AccountInactiveError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    error_code = "ACCOUNT_INACTIVE"
    message = "Account is deactivated"


class EmailNotVerifiedError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    error_code = "EMAIL_NOT_VERIFIED"
    message = "Please verify your email before logging in"


class InvalidExternalTokenError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error_code = "INVALID_EXTERNAL_TOKEN"
    message = "External identity token could not be verified"


class FederatedLoginDisabledError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    error_code = "FEDERATED_LOGIN_DISABLED"
    message = "Google sign-in is disabled for this account"


class InvalidRefreshTokenError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error_code = "INVALID_REFRESH_TOKEN"
    message = "Refresh token is invalid or has expired"


class InvalidPasswordResetTokenError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "INVALID_PASSWORD_RESET_TOKEN"
    message = "Recovery code is invalid or has expired"


class InvalidNewPasswordError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "INVALID_NEW_PASSWORD"
    message = "New password must be different from the current password"


class ForbiddenError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    error_code = "FORBIDDEN"
    message = "You are not allowed to perform this action"


class InvalidAccessTokenError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error_code = "INVALID_ACCESS_TOKEN"
    message = "Could not validate credentials"


class AlreadyCreatorError(AppError):
    status_code = status.HTTP_409_CONFLICT
    error_code = "ALREADY_CREATOR"
    message = "This account already has a creator profile"


class CreatorProfileNotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "CREATOR_PROFILE_NOT_FOUND"
    message = "This account has no creator profile"
