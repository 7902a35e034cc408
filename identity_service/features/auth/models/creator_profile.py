from sqlalchemy import Column, ForeignKey, String, Text

from identity_service.platform.db.base import BaseModel


class CreatorProfile(BaseModel):
    __tablename__ = "creator_profiles"

    user_id = Column(String, ForeignKey("users.id"), unique=True, nullable=False, index=True)
    display_name = Column(String(200), nullable=False)
    biography = Column(Text, nullable=False, default="")

    def __repr__(self):
        return f"<CreatorProfile(id={self.id}, user_id={self.user_id})>"
