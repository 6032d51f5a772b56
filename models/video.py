from sqlalchemy import Column, String, Integer, Float, Boolean, Text, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship

from models.base_model import BaseModel, Base


class Video(BaseModel, Base):
    __tablename__ = "videos"

    video_file = Column(String(512), nullable=False)
    thumbnail = Column(String(512), nullable=False)
    title = Column(String(255), nullable=False, index=True)
    description = Column(Text, nullable=True)
    duration = Column(Float, nullable=False, default=0)  # seconds
    views = Column(Integer, nullable=False, default=0)
    is_published = Column(Boolean, nullable=False, default=True)

    owner_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    owner = relationship("User", back_populates="videos")

    __table_args__ = (
        CheckConstraint("views >= 0", name="ck_videos_views_nonnegative"),
        CheckConstraint("duration >= 0", name="ck_videos_duration_nonnegative"),
    )
