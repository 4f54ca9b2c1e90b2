# evalengine/models/user.py
from sqlalchemy import Column, Integer, String, Boolean, Date, DateTime, ForeignKey, func
from evalengine.database import Base

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=True)
    hashed_password = Column(String, nullable=True)
    is_active = Column(Boolean, default=True)
    role = Column(String, default="staff")            # staff, admin
    position = Column(String, default="Team Member")  # Team Member, Trainer, Leader, Director
    department = Column(String, nullable=True)
    manager_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    store_id = Column(Integer, ForeignKey("stores.id"), nullable=True, index=True)
    start_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    @property
    def display_name(self) -> str:
        return self.name or self.email.split("@")[0]

    @property
    def effective_department(self) -> str | None:
        # Positions read like "Kitchen Leader"; fall back to their first word.
        if self.department:
            return self.department
        if self.position:
            return self.position.split(" ")[0]
        return None
