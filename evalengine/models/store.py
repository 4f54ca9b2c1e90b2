# evalengine/models/store.py
from sqlalchemy import Column, Integer, String, DateTime, func
from evalengine.database import Base

class Store(Base):
    __tablename__ = "stores"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
