from fastapi import APIRouter

from identity_service.features.auth.routes.auth import router as auth_router
from identity_service.features.auth.routes.oauth import router as oauth_router
from identity_service.features.auth.routes.users import router as users_router
from identity_service.features.health.routes.health import router as health_router
from identity_service.features.payments.routes.payment_methods import router as payment_methods_router

api_router = APIRouter()

# Register all feature routes
api_router.include_router(auth_router)
api_router.include_router(oauth_router)
api_router.include_router(users_router)
api_router.include_router(payment_methods_router)
api_router.include_router(health_router)
