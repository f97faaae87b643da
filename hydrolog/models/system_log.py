from sqlalchemy import Column, Integer, String, Float, DateTime, Text, ForeignKey
from sqlalchemy.orm import relationship
from hydrolog.config.database import Base, utcnow

class SystemLog(Base):
    __tablename__ = "system_logs"

    id = Column(Integer, primary_key=True, index=True)
    type = Column(String, nullable=False, index=True) # e.g. "ph_measurement", "water_refill"
    value = Column(Float, nullable=False)
    unit = Column(String, nullable=False)
    note = Column(Text, nullable=True)
    log_date = Column(DateTime, default=utcnow, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    system_id = Column(Integer, ForeignKey("systems.id"), nullable=False, index=True)
    system_name = Column(String, nullable=True) # denormalized for admin listings

    user = relationship("User")
