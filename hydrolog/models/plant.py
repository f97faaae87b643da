from sqlalchemy import Column, Integer, String, Float, DateTime, Text, ForeignKey
from sqlalchemy.orm import relationship
from hydrolog.config.database import Base, utcnow

PLANT_STATUS_PLANTED = "planted"
PLANT_STATUS_REMOVED = "removed"

class Plant(Base):
    __tablename__ = "plants"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    type = Column(String, nullable=True)
    position = Column(String, nullable=True) # cleared once the plant is removed
    status = Column(String, default=PLANT_STATUS_PLANTED, nullable=False, index=True)
    start_date = Column(DateTime, default=utcnow, nullable=False)

    # Tolerance ranges
    ph_min = Column(Float, nullable=True)
    ph_max = Column(Float, nullable=True)
    ec_min = Column(Float, nullable=True)
    ec_max = Column(Float, nullable=True)
    ppm_min = Column(Integer, nullable=True)
    ppm_max = Column(Integer, nullable=True)

    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    system_id = Column(Integer, ForeignKey("systems.id"), nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    logs = relationship("PlantLog", back_populates="plant", order_by="PlantLog.log_date.desc()")

class PlantLog(Base):
    __tablename__ = "plant_logs"

    id = Column(Integer, primary_key=True, index=True)
    plant_id = Column(Integer, ForeignKey("plants.id"), nullable=False, index=True)
    status = Column(String, nullable=False)
    note = Column(Text, nullable=True)
    log_date = Column(DateTime, default=utcnow, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    plant = relationship("Plant", back_populates="logs")
