from sqlalchemy import Column, String
import uuid
from hms_realtime.database import Base

class Doctor(Base):
    __tablename__ = "doctors"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, nullable=False)
    specialty = Column(String, nullable=True)
