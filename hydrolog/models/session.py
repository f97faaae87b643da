from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from hydrolog.config.database import Base, utcnow

class AuthSession(Base):
    __tablename__ = "sessions"

    id = Column(String(32), primary_key=True) # uuid4 hex, carried inside the JWT
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    user = relationship("User", back_populates="sessions")
