from models.base_model import Base, BaseModel
from sqlalchemy import Column, String, Text, JSON
from sqlalchemy.orm import relationship


class User(BaseModel, Base):
    __tablename__ = "users"
    # Always stored lower-cased; uniqueness is therefore case-insensitive
    username = Column(String(64), nullable=False, unique=True, index=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    fullname = Column(String(255), nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    avatar = Column(String(512), nullable=False)
    cover_image = Column(String(512), nullable=True, default="")
    # Video ids, oldest first
    watch_history = Column(JSON, nullable=False, default=list)
    # Only the Session Authority reads or writes this column
    refresh_token = Column(Text, nullable=True)

    videos = relationship("Video", back_populates="owner", passive_deletes=True)

    @property
    def password(self):
        raise AttributeError("Password: Write-only field")
