from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String

from identity_service.platform.db.base import BaseModel


class RefreshToken(BaseModel):
    __tablename__ = "refresh_tokens"

    token = Column(String(255), unique=True, nullable=False, index=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    expires_at = Column(DateTime, nullable=False, index=True)
    revoked = Column(Boolean, nullable=False, default=False)

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now

    def is_valid(self, now: datetime) -> bool:
        return not self.revoked and not self.is_expired(now)

    def __repr__(self):
        return f"<RefreshToken(id={self.id}, user_id={self.user_id}, revoked={self.revoked})>"
