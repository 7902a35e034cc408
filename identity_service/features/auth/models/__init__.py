from identity_service.features.auth.models.creator_profile import CreatorProfile
from identity_service.features.auth.models.refresh_token import RefreshToken
from identity_service.features.auth.models.user import AccountType, User

__all__ = ["AccountType", "CreatorProfile", "RefreshToken", "User"]
