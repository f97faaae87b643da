from sqlalchemy import Column, Integer, Boolean, DateTime, ForeignKey, UniqueConstraint, Index, text
from sqlalchemy.orm import relationship
from hydrolog.config.database import Base, utcnow

class UserSystem(Base):
    __tablename__ = "user_systems"
    __table_args__ = (
        UniqueConstraint("user_id", "system_id", name="uq_user_systems_user_system"),
        # At most one active link per user, enforced by the store itself
        Index(
            "uq_user_systems_one_active",
            "user_id",
            unique=True,
            sqlite_where=text("is_active = 1"),
            postgresql_where=text("is_active"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    system_id = Column(Integer, ForeignKey("systems.id"), nullable=False, index=True)
    is_active = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    user = relationship("User", back_populates="system_links")
    system = relationship("System", back_populates="user_links")
