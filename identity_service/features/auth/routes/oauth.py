from fastapi import APIRouter, Depends

from identity_service.features.auth.dependencies import get_auth_service
from identity_service.features.auth.routes.auth import login_payload
from identity_service.features.auth.schemas.auth import GoogleAuthRequest
from identity_service.features.auth.services.auth_service import AuthService
from identity_service.platform.response import api_response

router = APIRouter(prefix="/auth/oauth", tags=["OAuth"])


@router.post(
    "/google",
    response_model=dict,
    summary="Sign in with Google",
    description="Verify a Google ID token, link or create the account, and start a session",
)
async def google_login(request: GoogleAuthRequest, auth_service: AuthService = Depends(get_auth_service)):
    result = await auth_service.login_with_google(request.id_token)
    return api_response(data=login_payload(result), message="Google authentication successful")
