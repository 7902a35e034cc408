from fastapi import APIRouter, Depends, status

from identity_service.features.auth.dependencies import get_auth_service, get_current_user
from identity_service.features.auth.models import User
from identity_service.features.auth.routes.auth import login_payload
from identity_service.features.auth.schemas.auth import (
    ChangePasswordRequest,
    CreatorProfileRequest,
    UpdateProfileRequest,
    UserResponse,
)
from identity_service.features.auth.services.auth_service import AuthService
from identity_service.platform.response import api_response

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/me", response_model=dict, summary="Get current user profile")
async def get_me(current_user: User = Depends(get_current_user)):
    return api_response(data=UserResponse.model_validate(current_user), message="User profile retrieved")


@router.post(
    "/me/creator-profile",
    response_model=dict,
    status_code=status.HTTP_201_CREATED,
    summary="Become a creator",
    description="Attach a creator profile to your account; the returned tokens carry the creator profile id",
)
async def become_creator(
    request: CreatorProfileRequest,
    current_user: User = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
):
    result = await auth_service.convert_to_creator(
        caller_id=current_user.id,
        display_name=request.display_name,
        biography=request.biography,
    )
    return api_response(
        data=login_payload(result),
        message="Creator profile created",
        status_code=status.HTTP_201_CREATED,
    )


@router.delete(
    "/me/creator-profile",
    response_model=dict,
    summary="Renounce creator profile",
    description="Remove your creator profile and return to a standard account",
)
async def renounce_creator(
    current_user: User = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
):
    result = await auth_service.renounce_creator_profile(caller_id=current_user.id)
    return api_response(data=login_payload(result), message="Creator profile removed")


@router.put("/{user_id}", response_model=dict, summary="Update your profile")
async def update_profile(
    user_id: str,
    request: UpdateProfileRequest,
    current_user: User = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
):
    user = await auth_service.update_profile(
        user_id=user_id,
        caller_id=current_user.id,
        changes=request.model_dump(exclude_unset=True),
    )
    return api_response(data=UserResponse.model_validate(user), message="Profile updated")


@router.delete(
    "/{user_id}",
    response_model=dict,
    summary="Deactivate your account",
    description="Deactivate your own account; every session is revoked and stored payment methods are removed",
)
async def deactivate_account(
    user_id: str,
    current_user: User = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
):
    await auth_service.deactivate_account(user_id=user_id, caller_id=current_user.id)
    return api_response(message="Account deactivated")


@router.put(
    "/{user_id}/password",
    response_model=dict,
    summary="Change password",
    description="Change the password of your own account; every refresh token is revoked",
)
async def change_password(
    user_id: str,
    request: ChangePasswordRequest,
    current_user: User = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
):
    await auth_service.change_password(
        user_id=user_id,
        caller_id=current_user.id,
        current_password=request.current_password,
        new_password=request.new_password,
    )
    return api_response(message="Password changed successfully. Please log in again.")
