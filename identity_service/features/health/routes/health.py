from fastapi import APIRouter, Depends, status
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from identity_service.platform.config import settings
from identity_service.platform.db.session import get_db
from identity_service.platform.response import api_response

router = APIRouter()


@router.get("/health", tags=["health"])
async def health_check(db: AsyncSession = Depends(get_db)):
    await db.execute(text("SELECT 1"))
    return api_response(
        data={"status": "ok", "service": settings.APP_NAME, "database": "ok"},
        message="Service is healthy",
        status_code=status.HTTP_200_OK,
    )
